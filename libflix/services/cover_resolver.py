"""
Cover resolution loop.

Given a catalog item, build a scored candidate list and try each URL in order
until one decodes into a usable image:

    Idle -> Attempting(i) -> Succeeded
                          -> Attempting(i + 1) ... -> AllFailed
    AllFailed -> (retry_delay) -> RetryPass -> Succeeded | Failure

Only one candidate can win a resolution; nothing after it is attempted. The
first pass skips URLs that failed recently; retry passes try everything again.
Running out of candidates is an ordinary outcome, returned as a
``ResolutionFailure`` value rather than raised.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from libflix.domain.errors import ImageLoadError, ImageTimeoutError
from libflix.domain.models import (
    AttemptOutcome,
    AttemptRecord,
    Candidate,
    CatalogItem,
    LoadedImage,
    Priority,
    ResolutionFailure,
    ResolutionResult,
    ResolutionSuccess,
)
from libflix.services.candidate_generator import merge_candidates
from libflix.services.cover_diagnostics import CoverDiagnostics
from libflix.services.host_policy import HostPolicy, ReliabilityScorer, extract_host
from libflix.services.result_cache import ResultCache
from libflix.utils.cover_settings import CoverSettings

logger = logging.getLogger(__name__)


class ImageLoader(Protocol):
    def __call__(self, url: str, *, timeout_ms: int, cross_origin: bool = False) -> Awaitable[LoadedImage]:
        ...


FailureSink = Callable[[ResolutionFailure], None]


class CoverResolver:
    """Owns the cache, the host policy and the in-flight map for one process."""

    def __init__(self, loader: ImageLoader, *, cache: Optional[ResultCache] = None,
                 scorer: Optional[ReliabilityScorer] = None, settings: Optional[CoverSettings] = None,
                 diagnostics: Optional[CoverDiagnostics] = None, on_failure: Optional[FailureSink] = None):
        self.loader = loader
        self.settings = settings or CoverSettings()
        self.cache = cache or ResultCache(success_ttl=self.settings.success_ttl,
                                          failure_ttl=self.settings.failure_ttl)
        self.scorer = scorer or ReliabilityScorer()
        self.diagnostics = diagnostics
        self.on_failure = on_failure
        self._pending: Dict[str, asyncio.Future] = {}
        self._sweeper: Optional[asyncio.Task] = None

    # --- public API --------------------------------------------------------

    def build_candidates(self, item: CatalogItem) -> List[Candidate]:
        return merge_candidates(item, self.scorer, self.settings.max_candidates)

    async def resolve_image(self, item: CatalogItem, priority=Priority.NORMAL) -> ResolutionResult:
        """Resolve a displayable cover for ``item``.

        Concurrent calls for the same item id share one in-flight resolution.
        """
        priority = Priority.coerce(priority)
        cached = self.cache.get(item.id)
        if cached is not None:
            logger.debug(f"[COVER][RESOLVE] cache hit item={item.id} ok={cached.ok}")
            return cached

        task = self._pending.get(item.id)
        if task is None:
            task = asyncio.ensure_future(self._resolve(item, priority))
            self._pending[item.id] = task
            task.add_done_callback(lambda done, key=item.id: self._forget(key, done))
        else:
            logger.debug(f"[COVER][RESOLVE] joining in-flight resolution item={item.id}")
        # Shielded so one caller giving up does not cancel the others.
        return await asyncio.shield(task)

    async def preload(self, items: Iterable[CatalogItem], priority=Priority.NORMAL,
                      concurrency: Optional[int] = None) -> List[ResolutionResult]:
        """Warm the cache for many items with a bounded number in flight."""
        semaphore = asyncio.Semaphore(concurrency or self.settings.preload_concurrency)

        async def _one(item: CatalogItem, prio: Priority) -> ResolutionResult:
            async with semaphore:
                return await self.resolve_image(item, prio)

        prio = Priority.coerce(priority)
        return list(await asyncio.gather(*(_one(item, prio) for item in items)))

    async def preload_visible(self, items: Sequence[CatalogItem], start: int = 0,
                              count: int = 12) -> List[ResolutionResult]:
        """Preload a viewport slice; the first few items get HIGH priority."""
        visible = list(items[start:start + count])
        semaphore = asyncio.Semaphore(self.settings.preload_concurrency)
        high = self.settings.high_priority_count

        async def _one(index: int, item: CatalogItem) -> ResolutionResult:
            async with semaphore:
                return await self.resolve_image(item, Priority.HIGH if index < high else Priority.NORMAL)

        return list(await asyncio.gather(*(_one(i, item) for i, item in enumerate(visible))))

    def reset(self, failed_only: bool = False) -> None:
        if failed_only:
            cleared = self.cache.clear_failed()
            logger.info(f"[COVER][CACHE] cleared {cleared} failed urls")
        else:
            self.cache.clear()
            logger.info("[COVER][CACHE] cleared all entries")

    def stats(self) -> Dict[str, int]:
        stats = self.cache.stats()
        stats['in_flight'] = len(self._pending)
        return stats

    async def start_sweeper(self, interval: Optional[float] = None) -> asyncio.Task:
        """Start periodic cache sweeping on the running loop (idempotent)."""
        if self._sweeper is None or self._sweeper.done():
            period = interval or self.settings.sweep_interval
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(period))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
        self._sweeper = None

    # --- internals ---------------------------------------------------------

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.cache.sweep()
            except Exception as e:
                logger.error(f"[COVER][CACHE] sweep failed: {e}")

    def _timeout_ms(self, policy: HostPolicy, priority: Priority) -> int:
        if priority is Priority.HIGH:
            return max(1, int(policy.timeout_ms * self.settings.high_priority_timeout_factor))
        return policy.timeout_ms

    def _record(self, item: CatalogItem, url: str, outcome: AttemptOutcome, pass_index: int,
                elapsed_ms: float = 0.0, detail: Optional[str] = None) -> None:
        if self.diagnostics is None:
            return
        self.diagnostics.record_attempt(AttemptRecord(
            item_id=item.id, url=url, host=extract_host(url), outcome=outcome,
            pass_index=pass_index, elapsed_ms=elapsed_ms, detail=detail,
        ))

    async def _attempt(self, item: CatalogItem, candidate: Candidate, priority: Priority,
                       pass_index: int) -> Optional[LoadedImage]:
        policy = self.scorer.policy_for(candidate.url)
        timeout_ms = self._timeout_ms(policy, priority)
        t0 = time.perf_counter()
        image: Optional[LoadedImage] = None
        try:
            # wait_for cancels the load on timeout, so a late success is never seen.
            image = await asyncio.wait_for(
                self.loader(candidate.url, timeout_ms=timeout_ms, cross_origin=policy.use_cross_origin),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            outcome, detail = AttemptOutcome.TIMEOUT, f"timeout after {timeout_ms}ms"
        except ImageTimeoutError as e:
            outcome, detail = AttemptOutcome.TIMEOUT, e.message
        except ImageLoadError as e:
            outcome, detail = AttemptOutcome.DECODE_FAILURE, e.message
        except Exception as e:
            logger.warning(f"[COVER][ATTEMPT] unexpected loader error url={candidate.url} err={e!r}")
            outcome, detail = AttemptOutcome.DECODE_FAILURE, f"unexpected {e.__class__.__name__}"
        else:
            minimum = self.settings.min_dimension
            if image.width <= minimum or image.height <= minimum:
                outcome, detail = AttemptOutcome.DECODE_FAILURE, f"placeholder {image.width}x{image.height}"
                image = None
            else:
                outcome, detail = AttemptOutcome.SUCCESS, f"{image.width}x{image.height}"
        elapsed_ms = (time.perf_counter() - t0) * 1000.0

        self._record(item, candidate.url, outcome, pass_index, elapsed_ms, detail)
        if outcome is AttemptOutcome.SUCCESS:
            return image

        self.cache.mark_failed(candidate.url)
        logger.info(
            f"[COVER][ATTEMPT] item={item.id} pass={pass_index} score={candidate.score} "
            f"outcome={outcome.value} detail={detail} url={candidate.url[:80]}"
        )
        return None

    async def _resolve(self, item: CatalogItem, priority: Priority) -> ResolutionResult:
        t0 = time.perf_counter()
        candidates = self.build_candidates(item)
        if not candidates:
            logger.info(f"[COVER][RESOLVE] item={item.id} has no isbn or usable urls; no attempts made")
            return self._fail(item, [], reason='no_candidates')

        tried: List[str] = []
        for pass_index in range(self.settings.retry_passes + 1):
            retrying = pass_index > 0
            if retrying:
                logger.info(f"[COVER][RESOLVE] retry pass {pass_index} for item={item.id} "
                            f"after {self.settings.retry_delay}s")
                await asyncio.sleep(self.settings.retry_delay)

            for candidate in candidates:
                if not retrying and self.cache.is_failed(candidate.url):
                    self._record(item, candidate.url, AttemptOutcome.SKIPPED, pass_index,
                                 detail='failed recently')
                    continue
                if candidate.url not in tried:
                    tried.append(candidate.url)

                image = await self._attempt(item, candidate, priority, pass_index)
                if image is None:
                    continue

                result = ResolutionSuccess(
                    item_id=item.id, url=candidate.url, width=image.width, height=image.height,
                    resolved_at=self.cache.now(), source=candidate.source,
                )
                self.cache.put(item.id, result, timestamp=result.resolved_at)
                self.cache.clear_failed(candidate.url)
                logger.info(
                    f"[COVER][RESOLVE] item={item.id} title='{item.title[:40]}' ok url={candidate.url} "
                    f"pass={pass_index} elapsed={time.perf_counter() - t0:.3f}s"
                )
                return result

        if not tried:
            # Every candidate was skipped and no retry pass ran.
            return self._fail(item, tried, reason='all_candidates_recently_failed')
        return self._fail(item, tried)

    def _fail(self, item: CatalogItem, tried: List[str],
              reason: str = 'exhausted_all_candidates') -> ResolutionFailure:
        failure = ResolutionFailure(
            item_id=item.id, title=item.title, author=item.author, isbn=item.isbn,
            tried_urls=tuple(tried), reason=reason, failed_at=self.cache.now(),
        )
        self.cache.put(item.id, failure, timestamp=failure.failed_at)
        logger.warning(f"[COVER][RESOLVE] No cover found for item={item.id} title='{item.title[:40]}' "
                       f"tried={len(tried)} reason={reason}")
        if self.on_failure is not None:
            try:
                self.on_failure(failure)
            except Exception as e:
                logger.error(f"[COVER][RESOLVE] failure sink raised for item={item.id}: {e}")
        return failure

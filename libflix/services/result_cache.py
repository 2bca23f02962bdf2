"""In-process cache for resolution results and recently failed URLs.

Two stores with separate lifetimes:

- results keyed by catalog item id; successes live ``success_ttl`` seconds,
  failures live ``failure_ttl`` seconds;
- failed URL markers, also ``failure_ttl``, so transient failures get retried
  sooner than an already-resolved item is re-resolved.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from libflix.domain.models import ResolutionResult

logger = logging.getLogger(__name__)


class ResultCache:
    def __init__(self, success_ttl: float = 30 * 60, failure_ttl: float = 10 * 60,
                 clock: Callable[[], float] = time.time):
        self.success_ttl = success_ttl
        self.failure_ttl = failure_ttl
        self._clock = clock
        self._results: Dict[str, Tuple[float, ResolutionResult]] = {}
        self._failed_urls: Dict[str, float] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def _ttl_for(self, result: ResolutionResult) -> float:
        return self.success_ttl if result.ok else self.failure_ttl

    # --- results -----------------------------------------------------------

    def get(self, key: str) -> Optional[ResolutionResult]:
        now = self._clock()
        with self._lock:
            entry = self._results.get(key)
            if not entry:
                return None
            ts, result = entry
            if now - ts > self._ttl_for(result):
                self._results.pop(key, None)
                return None
            return result

    def put(self, key: str, result: ResolutionResult, timestamp: Optional[float] = None) -> bool:
        """Store a result. Returns False when a newer entry already exists."""
        ts = self._clock() if timestamp is None else timestamp
        with self._lock:
            current = self._results.get(key)
            if current is not None and current[0] > ts:
                logger.debug(f"[COVER][CACHE] stale write ignored key={key}")
                return False
            self._results[key] = (ts, result)
            return True

    # --- failed urls -------------------------------------------------------

    def mark_failed(self, url: str) -> None:
        with self._lock:
            self._failed_urls[url] = self._clock()

    def is_failed(self, url: str) -> bool:
        now = self._clock()
        with self._lock:
            ts = self._failed_urls.get(url)
            if ts is None:
                return False
            if now - ts > self.failure_ttl:
                self._failed_urls.pop(url, None)
                return False
            return True

    def clear_failed(self, url: Optional[str] = None) -> int:
        with self._lock:
            if url is not None:
                return 1 if self._failed_urls.pop(url, None) is not None else 0
            count = len(self._failed_urls)
            self._failed_urls.clear()
            return count

    # --- housekeeping ------------------------------------------------------

    def sweep(self, max_age: Optional[float] = None) -> int:
        """Drop expired entries; returns how many were removed.

        ``max_age`` tightens every lifetime for this sweep only: an entry goes
        when it is older than its own TTL or older than ``max_age``.
        """
        now = self._clock()
        removed = 0
        with self._lock:
            for key, (ts, result) in list(self._results.items()):
                ttl = self._ttl_for(result)
                if max_age is not None:
                    ttl = min(ttl, max_age)
                if now - ts > ttl:
                    del self._results[key]
                    removed += 1
            url_ttl = self.failure_ttl if max_age is None else min(self.failure_ttl, max_age)
            for url, ts in list(self._failed_urls.items()):
                if now - ts > url_ttl:
                    del self._failed_urls[url]
                    removed += 1
        if removed:
            logger.info(f"[COVER][CACHE] sweep removed={removed}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._results.clear()
            self._failed_urls.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            successes = sum(1 for _, r in self._results.values() if r.ok)
            return {
                'cached': successes,
                'failures': len(self._results) - successes,
                'failed_urls': len(self._failed_urls),
            }

"""Diagnostics for cover resolution (temporary instrumentation turned permanent).

Collects a bounded log of candidate attempts and the items that exhausted all
candidates, so operators can see which hosts are failing and why.
"""
from __future__ import annotations

import csv
import io
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Tuple

from libflix.domain.models import AttemptOutcome, AttemptRecord, ResolutionFailure

logger = logging.getLogger(__name__)

CSV_HEADERS = ['item_id', 'url', 'host', 'outcome', 'pass', 'elapsed_ms', 'detail']


class CoverDiagnostics:
    def __init__(self, max_attempts: int = 5000, max_failures: int = 1000):
        self._attempts: Deque[AttemptRecord] = deque(maxlen=max_attempts)
        self._failures: Dict[Tuple[str, str], ResolutionFailure] = {}
        self._max_failures = max_failures
        self._lock = threading.Lock()

    def record_attempt(self, record: AttemptRecord) -> None:
        with self._lock:
            self._attempts.append(record)

    def report_failure(self, failure: ResolutionFailure) -> None:
        """Failure sink for the resolver; one entry per (title, author)."""
        key = (failure.title, failure.author)
        with self._lock:
            if key in self._failures:
                return
            if len(self._failures) >= self._max_failures:
                self._failures.pop(next(iter(self._failures)))
            self._failures[key] = failure
            count = len(self._failures)
        logger.warning(
            f"[COVER][FAILING] #{count} item={failure.item_id} title='{failure.title[:40]}' "
            f"author='{failure.author[:30]}' tried={len(failure.tried_urls)} reason={failure.reason}"
        )

    def failing_items(self) -> List[ResolutionFailure]:
        with self._lock:
            return list(self._failures.values())

    def attempts(self) -> List[AttemptRecord]:
        with self._lock:
            return list(self._attempts)

    def summary(self) -> Dict[str, Any]:
        attempts = [a for a in self.attempts() if a.outcome is not AttemptOutcome.SKIPPED]
        total = len(attempts)
        successful = sum(1 for a in attempts if a.outcome is AttemptOutcome.SUCCESS)

        error_types: Dict[str, int] = {}
        domain_stats: Dict[str, Dict[str, Any]] = {}
        for a in attempts:
            if a.outcome is not AttemptOutcome.SUCCESS:
                error_types[a.outcome.value] = error_types.get(a.outcome.value, 0) + 1
            stats = domain_stats.setdefault(a.host or 'invalid', {'attempts': 0, 'successes': 0})
            stats['attempts'] += 1
            if a.outcome is AttemptOutcome.SUCCESS:
                stats['successes'] += 1
        for stats in domain_stats.values():
            stats['success_rate'] = round(stats['successes'] / stats['attempts'] * 100, 1)

        return {
            'total': total,
            'successful': successful,
            'failed': total - successful,
            'success_rate': round(successful / total * 100, 1) if total else 0.0,
            'error_types': error_types,
            'domain_stats': domain_stats,
            'average_elapsed_ms': round(sum(a.elapsed_ms for a in attempts) / total, 1) if total else 0.0,
            'failing_items': len(self.failing_items()),
        }

    def failure_patterns(self) -> Dict[str, int]:
        failures = self.failing_items()
        with_isbn = sum(1 for f in failures if f.isbn)
        return {
            'total': len(failures),
            'missing_isbn': len(failures) - with_isbn,
            'has_isbn': with_isbn,
            'no_candidates': sum(1 for f in failures if f.reason == 'no_candidates'),
            'recently_failed': sum(1 for f in failures if f.reason == 'all_candidates_recently_failed'),
        }

    def export_csv(self) -> str:
        out = io.StringIO()
        writer = csv.writer(out, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADERS)
        for a in self.attempts():
            writer.writerow([a.item_id, a.url, a.host, a.outcome.value, a.pass_index,
                             f"{a.elapsed_ms:.1f}", a.detail or ''])
        return out.getvalue()

    def clear(self) -> None:
        with self._lock:
            self._attempts.clear()
            self._failures.clear()

"""
Lightweight runtime metrics for health/observability.

Uses in-process counters so it works without extra dependencies.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict

from trello_sync.core.constants import ERROR_WINDOW_SECONDS


class _RuntimeMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sync_runs = 0
        self._cards_created = 0
        self._checkitems_created = 0
        self._checkitems_updated = 0
        self._deliverable_failures = 0
        self._error_timestamps: Deque[float] = deque()

    def record_sync_run(self) -> None:
        with self._lock:
            self._sync_runs += 1

    def increment_cards_created(self, amount: int = 1) -> None:
        with self._lock:
            self._cards_created += max(0, int(amount))

    def record_checkitem(self, created: bool) -> None:
        with self._lock:
            if created:
                self._checkitems_created += 1
            else:
                self._checkitems_updated += 1

    def record_deliverable_failure(self, ts: float | None = None) -> None:
        with self._lock:
            self._deliverable_failures += 1
        self.record_error(ts)

    def record_error(self, ts: float | None = None) -> None:
        now = ts if ts is not None else time.time()
        with self._lock:
            self._error_timestamps.append(now)
            self._prune_locked(time.time())

    def snapshot(self) -> Dict[str, int]:
        now = time.time()
        with self._lock:
            self._prune_locked(now)
            return {
                "sync_runs": self._sync_runs,
                "cards_created": self._cards_created,
                "checkitems_created": self._checkitems_created,
                "checkitems_updated": self._checkitems_updated,
                "deliverable_failures": self._deliverable_failures,
                "errors_last_hour": len(self._error_timestamps),
            }

    def reset_for_tests(self) -> None:
        with self._lock:
            self._sync_runs = 0
            self._cards_created = 0
            self._checkitems_created = 0
            self._checkitems_updated = 0
            self._deliverable_failures = 0
            self._error_timestamps.clear()

    def _prune_locked(self, now: float) -> None:
        cutoff = now - ERROR_WINDOW_SECONDS
        while self._error_timestamps and self._error_timestamps[0] < cutoff:
            self._error_timestamps.popleft()


_METRICS = _RuntimeMetrics()


def record_sync_run() -> None:
    _METRICS.record_sync_run()


def increment_cards_created(amount: int = 1) -> None:
    _METRICS.increment_cards_created(amount)


def record_checkitem(created: bool) -> None:
    _METRICS.record_checkitem(created)


def record_deliverable_failure(ts: float | None = None) -> None:
    _METRICS.record_deliverable_failure(ts)


def record_error(ts: float | None = None) -> None:
    _METRICS.record_error(ts)


def metrics_snapshot() -> Dict[str, int]:
    return _METRICS.snapshot()


def reset_metrics_for_tests() -> None:
    _METRICS.reset_for_tests()

"""
Per-provider call bookkeeping and rate budget checks.

Two window modes are supported:

- ``sliding``: a call counts against a budget while it is younger than the
  window (60 s or 3600 s). Strict, never over-admits.
- ``lenient``: counters only grow and are zeroed at the next check once a full
  window has passed since the last call. A burst straddling the boundary can
  be admitted past the budget.
"""

from __future__ import annotations

import time
from collections import deque
from threading import RLock
from typing import Callable

from ..models import CallRecord, FailureKind, ProviderConfig, ProviderStats, RateWindowMode

MAX_RECORDS_PER_PROVIDER = 100
MINUTE_SEC = 60.0
HOUR_SEC = 3600.0


class CallMonitor:
    def __init__(self, mode: RateWindowMode = "sliding", clock: Callable[[], float] | None = None):
        if mode not in ("sliding", "lenient"):
            raise ValueError(f"unsupported rate window mode: {mode}")
        self.mode = mode
        self._clock = clock or time.time
        self._lock = RLock()
        self._records: dict[str, deque[CallRecord]] = {}
        self._window_calls: dict[str, deque[float]] = {}
        self._minute_counts: dict[str, int] = {}
        self._hour_counts: dict[str, int] = {}
        self._last_call: dict[str, float] = {}
        self._lifetime: dict[str, int] = {}

    def record_call(
        self,
        provider: str,
        success: bool,
        response_time_ms: int,
        error: str | None = None,
        error_kind: FailureKind | None = None,
    ) -> CallRecord:
        now = self._clock()
        record = CallRecord(
            provider=provider,
            timestamp=now,
            success=success,
            response_time_ms=max(0, int(response_time_ms)),
            error=error,
            error_kind=error_kind,
        )
        with self._lock:
            self._records.setdefault(provider, deque(maxlen=MAX_RECORDS_PER_PROVIDER)).append(record)
            self._window_calls.setdefault(provider, deque()).append(now)
            self._prune(provider, now)
            self._minute_counts[provider] = self._minute_counts.get(provider, 0) + 1
            self._hour_counts[provider] = self._hour_counts.get(provider, 0) + 1
            self._last_call[provider] = now
            self._lifetime[provider] = self._lifetime.get(provider, 0) + 1
        return record

    def _prune(self, provider: str, now: float) -> None:
        calls = self._window_calls.get(provider)
        while calls and now - calls[0] >= HOUR_SEC:
            calls.popleft()

    def _sliding_count(self, provider: str, now: float, window: float) -> int:
        calls = self._window_calls.get(provider)
        if not calls:
            return 0
        return sum(1 for ts in calls if now - ts < window)

    def can_call(self, provider: str, config: ProviderConfig) -> bool:
        now = self._clock()
        with self._lock:
            if self.mode == "sliding":
                self._prune(provider, now)
                if self._sliding_count(provider, now, MINUTE_SEC) >= config.max_calls_per_minute:
                    return False
                if self._sliding_count(provider, now, HOUR_SEC) >= config.max_calls_per_hour:
                    return False
                return True
            return self._lenient_can_call(provider, config, now)

    def _lenient_can_call(self, provider: str, config: ProviderConfig, now: float) -> bool:
        last_call = self._last_call.get(provider)
        if self._minute_counts.get(provider, 0) >= config.max_calls_per_minute:
            if last_call is not None and now - last_call < MINUTE_SEC:
                return False
            self._minute_counts[provider] = 0
        if self._hour_counts.get(provider, 0) >= config.max_calls_per_hour:
            if last_call is not None and now - last_call < HOUR_SEC:
                return False
            self._hour_counts[provider] = 0
        return True

    def call_count(self, provider: str) -> int:
        """Calls counted against the hourly budget right now."""
        with self._lock:
            if self.mode == "sliding":
                now = self._clock()
                self._prune(provider, now)
                return self._sliding_count(provider, now, HOUR_SEC)
            return self._hour_counts.get(provider, 0)

    def total_calls(self, provider: str) -> int:
        with self._lock:
            return self._lifetime.get(provider, 0)

    def success_rate(self, provider: str) -> float:
        with self._lock:
            records = self._records.get(provider)
            if not records:
                return 0.0
            return sum(1 for record in records if record.success) / len(records)

    def average_response_time(self, provider: str) -> int:
        with self._lock:
            records = self._records.get(provider)
            if not records:
                return 0
            return sum(record.response_time_ms for record in records) // len(records)

    def recent_calls(self, provider: str, limit: int = 10) -> list[CallRecord]:
        with self._lock:
            records = list(self._records.get(provider, ()))
        if limit <= 0:
            return []
        return records[-limit:]

    def stats(self, provider: str, display_name: str | None = None) -> ProviderStats:
        return ProviderStats(
            provider=provider,
            display_name=display_name or provider,
            total_calls=self.call_count(provider),
            success_rate_percent=round(self.success_rate(provider) * 100, 2),
            avg_response_time_ms=self.average_response_time(provider),
            recent_call_count=len(self.recent_calls(provider)),
        )

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._window_calls.clear()
            self._minute_counts.clear()
            self._hour_counts.clear()
            self._last_call.clear()
            self._lifetime.clear()

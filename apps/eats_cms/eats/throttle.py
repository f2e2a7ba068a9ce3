"""Login failure throttling keyed by client address.

The in-memory implementation is per process: several workers or instances
each keep their own counts. Swap in another ``LoginThrottle`` backed by a
shared store if that ever matters.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

MAX_FAILURES = 8
WINDOW_SECONDS = 15 * 60
BLOCK_SECONDS = 15 * 60


class LoginThrottle(Protocol):
    def check(self, key: str) -> bool:
        """Return True if ``key`` may attempt a login, False while blocked."""
        ...

    def record_failure(self, key: str) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


@dataclass
class ThrottleRecord:
    failure_count: int
    window_started_at: float
    blocked_until: Optional[float] = None


class InMemoryLoginThrottle:
    def __init__(
        self,
        max_failures: int = MAX_FAILURES,
        window_seconds: float = WINDOW_SECONDS,
        block_seconds: float = BLOCK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self._clock = clock
        self._records: dict[str, ThrottleRecord] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._records)

    def check(self, key: str) -> bool:
        rec = self._records.get(key)
        if rec is None:
            return True
        now = self._clock()
        if self._expired(rec, now):
            del self._records[key]
            return True
        return rec.blocked_until is None

    def record_failure(self, key: str) -> None:
        now = self._clock()
        self._sweep(now)

        rec = self._records.get(key)
        if rec is None or self._expired(rec, now):
            rec = ThrottleRecord(failure_count=1, window_started_at=now)
            self._records[key] = rec
        else:
            rec.failure_count += 1

        if rec.failure_count >= self.max_failures and rec.blocked_until is None:
            rec.blocked_until = now + self.block_seconds
            logger.warning(
                "Blocking logins from %s for %ds after %d failures",
                key, self.block_seconds, rec.failure_count,
            )

    def clear(self, key: str) -> None:
        self._records.pop(key, None)

    def _window_elapsed(self, rec: ThrottleRecord, now: float) -> bool:
        return now - rec.window_started_at >= self.window_seconds

    def _expired(self, rec: ThrottleRecord, now: float) -> bool:
        if rec.blocked_until is not None:
            return now >= rec.blocked_until
        return self._window_elapsed(rec, now)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [key for key, rec in self._records.items() if self._expired(rec, now)]
        for key in expired:
            del self._records[key]

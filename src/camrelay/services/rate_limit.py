"""Sliding-window login throttling keyed by caller origin."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from camrelay.core.settings import settings


@dataclass(frozen=True)
class AttemptRecord:
    """One login attempt seen from an origin."""

    timestamp: float
    success: bool


class LoginRateLimiter:
    """Counts failed logins per origin inside a trailing window.

    Old records are pruned lazily whenever an origin is evaluated; there is
    no background sweep. A success wipes the origin's history.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        window_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = (
            settings.rate_limit_max_attempts if max_attempts is None else max_attempts
        )
        self.window_seconds = (
            settings.rate_limit_window_seconds if window_seconds is None else window_seconds
        )
        self._clock = clock
        self._attempts: dict[str, list[AttemptRecord]] = {}
        self._lock = Lock()

    def _prune(self, origin: str, now: float) -> list[AttemptRecord]:
        """Drop records older than the window; caller must hold the lock."""
        cutoff = now - self.window_seconds
        recent = [a for a in self._attempts.get(origin, []) if a.timestamp > cutoff]
        if recent:
            self._attempts[origin] = recent
        else:
            self._attempts.pop(origin, None)
        return recent

    def record(self, origin: str, success: bool) -> None:
        """Record an attempt. A success resets the origin."""
        if success:
            self.reset(origin)
            return
        now = self._clock()
        with self._lock:
            self._prune(origin, now)
            self._attempts.setdefault(origin, []).append(AttemptRecord(now, False))

    def failures(self, origin: str) -> int:
        """Return the number of failed attempts still inside the window."""
        now = self._clock()
        with self._lock:
            return sum(1 for a in self._prune(origin, now) if not a.success)

    def is_blocked(self, origin: str) -> bool:
        return self.failures(origin) >= self.max_attempts

    def retry_after(self, origin: str) -> int:
        """Seconds until the oldest counted failure leaves the window (0 if not blocked)."""
        now = self._clock()
        with self._lock:
            failed = [a for a in self._prune(origin, now) if not a.success]
            if len(failed) < self.max_attempts:
                return 0
            # Blocked until enough failures age out to drop below the threshold.
            pivot = failed[len(failed) - self.max_attempts]
            return int(self.window_seconds - (now - pivot.timestamp)) + 1

    def reset(self, origin: str) -> None:
        with self._lock:
            self._attempts.pop(origin, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

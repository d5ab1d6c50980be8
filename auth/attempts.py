"""
auth/attempts.py -- Per-email failed-login throttling.

Two layers protect POST /login:
  1. api/limiter.py (slowapi) caps requests per client IP.
  2. LoginAttemptLimiter (this module) locks one email after N wrong
     passwords inside a rolling window, regardless of which IP they came from.

Policy:
  Each failure is timestamped. is_blocked(email) is True while the number of
  failures younger than window_seconds is >= max_attempts. The block lifts
  when enough failures age out of the window, or immediately on reset()
  (called after a successful login). Emails never affect each other.

State is in-process and per-key locked (see auth/locks.py): concurrent
attempts for the same email serialize, attempts for different emails do not.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Callable

from auth.locks import KeyedLock

logger = logging.getLogger("musiclib.auth")


class LoginAttemptLimiter:
    """Count failed logins per identity inside a rolling time window.

    Usage:
        limiter = LoginAttemptLimiter(max_attempts=5, window_seconds=900)
        if limiter.is_blocked(email): ...
        limiter.record_failure(email)
        limiter.reset(email)
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 900,
        clock: Callable[[], float] = time.monotonic,
        stripes: int = 64,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._failures: dict[str, deque[float]] = {}
        self._locks = KeyedLock(stripes)

    def _prune(self, identity: str, now: float) -> deque[float] | None:
        # Caller holds the identity's lock.
        failures = self._failures.get(identity)
        if failures is None:
            return None
        cutoff = now - self.window_seconds
        while failures and failures[0] <= cutoff:
            failures.popleft()
        if not failures:
            del self._failures[identity]
            return None
        return failures

    def record_failure(self, identity: str) -> None:
        with self._locks(identity):
            now = self._clock()
            failures = self._prune(identity, now)
            if failures is None:
                failures = self._failures[identity] = deque()
            failures.append(now)
            count = len(failures)
        if count >= self.max_attempts:
            logger.warning("Login locked for %s after %d failed attempts", identity, count)

    def is_blocked(self, identity: str) -> bool:
        with self._locks(identity):
            failures = self._prune(identity, self._clock())
            return failures is not None and len(failures) >= self.max_attempts

    def retry_after(self, identity: str) -> int:
        """Seconds until is_blocked(identity) turns False (0 if not blocked)."""
        with self._locks(identity):
            now = self._clock()
            failures = self._prune(identity, now)
            if failures is None or len(failures) < self.max_attempts:
                return 0
            # The block lifts once the failure that keeps the count at the
            # threshold ages out of the window.
            pivot = failures[len(failures) - self.max_attempts]
            return max(1, math.ceil(pivot + self.window_seconds - now))

    def reset(self, identity: str) -> None:
        with self._locks(identity):
            self._failures.pop(identity, None)

    def failures(self, identity: str) -> int:
        """Number of failures currently counted for an identity."""
        with self._locks(identity):
            failures = self._prune(identity, self._clock())
            return 0 if failures is None else len(failures)

    def purge_expired(self) -> int:
        """Drop identities whose failures have all aged out. Returns how many."""
        now = self._clock()
        purged = 0
        for identity in list(self._failures.copy()):
            with self._locks(identity):
                if identity in self._failures and self._prune(identity, now) is None:
                    purged += 1
        return purged

"""
auth/sessions.py -- In-process registry of live session tokens.

Signed tokens are self-certifying: the signature alone says a token was
issued by us and has not expired, but it cannot say the user has since
logged out. SessionRegistry is the authority for that second question.

Lifecycle of an entry:
  register()             -- TokenService.issue() inserts the token id.
  revoke()               -- logout removes exactly one token id.
  revoke_all_for_user()  -- user deletion removes every token of one user.
  purge_expired()        -- the lifespan purge task drops entries whose
                            natural expiry has passed, bounding memory.

A token id that was never registered is not live. After a process restart
the registry is empty, so every previously issued token stops working.

Concurrency:
  Per-token operations hold the token's stripe; per-user operations hold the
  user's stripe and then each token's stripe, always in that order. Once
  revoke() returns, every later is_live() for that token sees False.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from auth.locks import KeyedLock

logger = logging.getLogger("musiclib.auth")


@dataclass
class _Session:
    user_id: str
    expires_at: float  # epoch seconds, same clock as the JWT "exp" claim


class SessionRegistry:
    """Track which issued tokens are still usable.

    Usage:
        registry = SessionRegistry()
        registry.register(jti, user_id, expires_at)
        registry.is_live(jti)   # True
        registry.revoke(jti)
        registry.is_live(jti)   # False
    """

    def __init__(self, clock: Callable[[], float] = time.time, stripes: int = 64) -> None:
        self._clock = clock
        self._sessions: dict[str, _Session] = {}
        self._by_user: dict[str, set[str]] = {}
        self._user_locks = KeyedLock(stripes)
        self._token_locks = KeyedLock(stripes)

    def __len__(self) -> int:
        return len(self._sessions)

    def register(self, token_id: str, user_id: str, expires_at: float) -> None:
        with self._user_locks(user_id):
            with self._token_locks(token_id):
                self._sessions[token_id] = _Session(user_id=user_id, expires_at=expires_at)
            self._by_user.setdefault(user_id, set()).add(token_id)

    def is_live(self, token_id: str) -> bool:
        """True if the token was registered, not revoked, and not yet expired."""
        with self._token_locks(token_id):
            session = self._sessions.get(token_id)
            return session is not None and session.expires_at > self._clock()

    def revoke(self, token_id: str) -> bool:
        """Remove one token. Returns False if it was not registered (or already gone)."""
        with self._token_locks(token_id):
            session = self._sessions.pop(token_id, None)
        if session is None:
            return False
        with self._user_locks(session.user_id):
            tokens = self._by_user.get(session.user_id)
            if tokens is not None:
                tokens.discard(token_id)
                if not tokens:
                    del self._by_user[session.user_id]
        return True

    def revoke_all_for_user(self, user_id: str) -> int:
        """Remove every token of one user. Returns how many were removed."""
        with self._user_locks(user_id):
            token_ids = self._by_user.pop(user_id, set())
            removed = 0
            for token_id in token_ids:
                with self._token_locks(token_id):
                    if self._sessions.pop(token_id, None) is not None:
                        removed += 1
        if removed:
            logger.info("Revoked %d session(s) for user %s", removed, user_id)
        return removed

    def sessions_for_user(self, user_id: str) -> int:
        """Number of live sessions a user currently holds."""
        with self._user_locks(user_id):
            token_ids = list(self._by_user.get(user_id, ()))
        return sum(1 for token_id in token_ids if self.is_live(token_id))

    def purge_expired(self) -> int:
        """Drop entries past their natural expiry. Returns how many were dropped."""
        now = self._clock()
        expired = [(tid, s.user_id) for tid, s in self._sessions.copy().items() if s.expires_at <= now]
        purged = 0
        for token_id, user_id in expired:
            with self._user_locks(user_id):
                with self._token_locks(token_id):
                    session = self._sessions.get(token_id)
                    if session is None or session.expires_at > now:
                        continue
                    del self._sessions[token_id]
                    purged += 1
                tokens = self._by_user.get(user_id)
                if tokens is not None:
                    tokens.discard(token_id)
                    if not tokens:
                        del self._by_user[user_id]
        if purged:
            logger.info("Purged %d expired session(s)", purged)
        return purged

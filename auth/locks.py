"""
auth/locks.py -- Striped locks for process-wide, per-key state.

A fixed pool of threading.Lock objects; a key always maps to the same lock.
Operations on one key are serialized, while operations on keys that land in
different stripes run in parallel. Memory stays bounded no matter how many
distinct keys (tokens, emails) pass through.

Two keys may share a stripe. That only costs a little contention, never
correctness -- but code that holds two stripes at once must take them from
two different KeyedLock instances in a fixed order, or it can deadlock.
"""

from __future__ import annotations

import threading
import zlib


class KeyedLock:
    """Map string keys onto a fixed set of locks.

    Usage:
        locks = KeyedLock()
        with locks("some-key"):
            ...
    """

    def __init__(self, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._locks = [threading.Lock() for _ in range(stripes)]

    def __call__(self, key: str) -> threading.Lock:
        # crc32 rather than hash(): stable across processes and PYTHONHASHSEED.
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]

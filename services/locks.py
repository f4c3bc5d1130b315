"""
Per-key mutual exclusion.

Every check-then-write on a car or driver runs while holding that resource's
lock. Locks for several keys are always taken in sorted order so two requests
for the same car+driver pair cannot deadlock each other.
"""

from contextlib import contextmanager
import threading
import time

from loguru import logger

from services.errors import SerializationTimeoutError


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockTable:
    def __init__(self, timeout: float):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._entries = {}

    def _checkout(self, key) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key, entry: _Entry):
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    @contextmanager
    def hold(self, *keys, timeout: float = None, window=None):
        """Hold the locks for ``keys`` for the duration of the block.

        The timeout bounds the total wait across all keys. On timeout every
        lock already taken is released before SerializationTimeoutError is
        raised.
        """
        timeout = self.timeout if timeout is None else timeout
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        held = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                remaining = max(deadline - time.monotonic(), 0)
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key, entry)
                    logger.warning(f"Lock wait timed out on {key} after {timeout}s")
                    raise SerializationTimeoutError(ordered, timeout, window=window)
                held.append((key, entry))
            yield
        finally:
            for key, entry in reversed(held):
                entry.lock.release()
                self._checkin(key, entry)

    def __len__(self):
        with self._guard:
            return len(self._entries)

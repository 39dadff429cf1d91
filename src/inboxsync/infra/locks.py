"""Per-key locking for read-then-write sequences.

Two threads holding the same key are serialized; different keys never
block each other. Entries are reference-counted and dropped once the
last holder releases, so the table does not grow with every message id.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """One mutex per key, created on demand."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._refs: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for `key` for the duration of the block.

        Args:
            key: Lock key (e.g. message id).
            timeout: Seconds to wait before giving up. None waits forever.

        Raises:
            TimeoutError: If the lock could not be acquired in time.
        """
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refs[key] = self._refs.get(key, 0) + 1

        acquired = False
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                raise TimeoutError(f"timed out waiting for lock on {key!r}")
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

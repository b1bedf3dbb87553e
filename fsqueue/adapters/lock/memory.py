"""
InMemoryLock — threading.Lock-based lock for testing and development.

Zero external dependencies. Safe across threads of one process (including
the worker threads QueueStore runs its file I/O on). NOT safe across
processes: use FlockLock when more than one process shares a queue
directory.
"""
from __future__ import annotations

import dataclasses
import threading


@dataclasses.dataclass
class InMemoryLock:
    """
    In-process lock.

    acquisitions counts successful acquire() calls, which tests use to
    check that every operation went through the lock.
    """

    acquisitions: int = 0

    def __post_init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()

    def acquire(self, blocking: bool = True) -> bool:
        acquired = self._lock.acquire(blocking)
        if acquired:
            self.acquisitions += 1
        return acquired

    def release(self) -> None:
        self._lock.release()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

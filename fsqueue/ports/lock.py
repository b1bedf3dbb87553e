"""
LockPort — the mutual-exclusion collaborator of QueueStore.

The lock guards the index file and the data file together. Every publish()
and get() runs its whole read/append/truncate sequence while holding it.

Contract
--------
acquire(blocking=True)
  - blocking=True  → waits until the lock is held (no timeout), returns True
  - blocking=False → returns True if acquired, False if held elsewhere

release()
  - gives the lock up; only called by the holder
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LockPort(Protocol):
    """
    Minimal interface required by QueueStore.

    Implementing adapters (built-in):
      - FlockLock     — fcntl.flock on a lock file, POSIX cross-process
      - InMemoryLock  — threading.Lock, single process
    """

    def acquire(self, blocking: bool = True) -> bool: ...

    def release(self) -> None: ...

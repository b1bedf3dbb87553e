"""
FlockLock — fcntl.flock-based advisory lock for POSIX systems.

Every process (or thread) that builds a FlockLock on the same lock file
excludes every other one, which is what QueueStore needs to keep the index
and data files in step across workers on one machine.

Lock file
---------
The lock is taken on a dedicated file, not on the queue files themselves:
QueueStore truncates the queue files and may have to create them, while the
lock must already be held at that point. The lock file (and its parent
directory) is created on first acquire and never removed.

Threads
-------
flock locks belong to an open file description. An internal threading.Lock
serialises threads that share one FlockLock instance, so the descriptor held
for the current owner is never replaced underneath it.

POSIX-only (Linux, macOS). Not compatible with NFS or distributed filesystems.
"""

from __future__ import annotations

import dataclasses
import fcntl
import os
import threading
from pathlib import Path


@dataclasses.dataclass
class FlockLock:
    """
    Exclusive advisory lock on `path`.

    Parameters
    ----------
    path : lock file location (parent directory created if absent)
    """

    path: Path

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._mutex = threading.Lock()
        self._fd: int | None = None

    def acquire(self, blocking: bool = True) -> bool:
        """Take the lock. Returns False only when blocking=False and it is held."""
        if not self._mutex.acquire(blocking):
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.path), os.O_RDWR | os.O_CREAT, 0o644)
        except BaseException:
            self._mutex.release()
            raise

        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(fd, flags)
        except BlockingIOError:
            os.close(fd)
            self._mutex.release()
            return False
        except BaseException:
            os.close(fd)
            self._mutex.release()
            raise

        self._fd = fd
        return True

    def release(self) -> None:
        """Unlock and close the lock file. Raises RuntimeError if not held."""
        fd = self._fd
        if fd is None:
            raise RuntimeError(f"FlockLock {self.path} is not held")
        self._fd = None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
            self._mutex.release()

    @property
    def locked(self) -> bool:
        """True while this instance holds the lock."""
        return self._fd is not None

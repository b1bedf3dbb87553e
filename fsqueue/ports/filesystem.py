"""
FilesystemPort — directory and file bootstrap for QueueStore.

QueueStore only needs three operations to lazily create its storage
directory; all reads and writes of queue contents go through plain file
handles inside the store itself.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class FilesystemPort(Protocol):
    """
    Minimal interface required by QueueStore.

    Implementing adapters (built-in):
      - LocalFilesystem — pathlib on the local disk
    """

    def exists(self, paths: Iterable[Path]) -> bool:
        """True only if every path exists."""
        ...

    def mkdir(self, path: Path) -> None:
        """Create the directory and its parents. No-op if it exists."""
        ...

    def touch(self, paths: Iterable[Path]) -> None:
        """Create each missing file empty. Existing files are left as they are."""
        ...

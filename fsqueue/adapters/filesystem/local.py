"""
LocalFilesystem — pathlib-backed FilesystemPort.

Creates the storage directory and the empty queue files the first time a
QueueStore touches a path. touch() never truncates, so calling setup() over
a half-initialised directory only fills in what is missing.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from pathlib import Path


@dataclasses.dataclass(frozen=True)
class LocalFilesystem:
    """Stateless; one instance can serve any number of stores."""

    def exists(self, paths: Iterable[Path]) -> bool:
        return all(Path(p).exists() for p in paths)

    def mkdir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def touch(self, paths: Iterable[Path]) -> None:
        for p in paths:
            Path(p).touch(exist_ok=True)

"""
QueueStore — a durable message queue kept in two plain files.

Directory layout
----------------
    <path>/queue.data    encoded blocks, concatenated in publish order
    <path>/queue.index   one 8-byte big-endian length per queued block

The index is a fixed-width trailer: its last record is the length of the
last block in the data file. That is all get() needs to find and cut the
newest block off the end of both files, so retrieval is LIFO — the most
recently published block comes back first.

Invariants (whenever the lock is free):
  - index size == 8 × number of queued blocks
  - sum of index records == data size
  - the Nth-from-last index record is the length of the Nth-from-last block

Locking
-------
publish() and get() run their whole file sequence while holding the lock
passed in at construction. The lock is released on every exit path, errors
included. File I/O runs in a worker thread via asyncio.to_thread, the same
way for both operations, so blocking on the lock never stalls the event loop.

Failure model
-------------
StorageUnavailable — nothing was mutated; the call may be retried.
IndexDesyncRisk    — one file was changed and its pair could not be (or the
                     files were found inconsistent). The directory needs
                     manual repair; nothing is retried or healed here.
DecodeError        — get() removed a record that does not decode. The
                     record is lost.

A crash between the two writes of publish(), or between the two truncations
of get(), leaves the files out of step in the same way.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import os
import struct
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from fsqueue.adapters.filesystem.local import LocalFilesystem
from fsqueue.adapters.lock.flock import FlockLock
from fsqueue.core.codec import BlockCodec
from fsqueue.core.dsn import parse_dsn
from fsqueue.domain.errors import (
    DecodeError,
    IndexDesyncRisk,
    InvalidMessage,
    StorageUnavailable,
)
from fsqueue.domain.models import Block, ConnectionOptions
from fsqueue.ports.filesystem import FilesystemPort
from fsqueue.ports.lock import LockPort

logger = structlog.get_logger(__name__)

QUEUE_DATA_FILENAME = "queue.data"
QUEUE_INDEX_FILENAME = "queue.index"

# Unsigned 64-bit, big-endian ("network") byte order.
INDEX_RECORD = struct.Struct(">Q")
INDEX_RECORD_SIZE = INDEX_RECORD.size


@dataclasses.dataclass
class QueueStore:
    """
    Append/pop storage for one queue directory.

    Parameters
    ----------
    path       : storage directory (created lazily with its two files)
    filesystem : FilesystemPort used to bootstrap the directory
    lock       : LockPort guarding both files
    options    : ConnectionOptions, or a mapping of raw option values
    """

    path: Path
    filesystem: FilesystemPort
    lock: LockPort
    options: ConnectionOptions

    def __init__(
        self,
        path: str | Path,
        filesystem: FilesystemPort,
        lock: LockPort,
        options: ConnectionOptions | Mapping[str, Any] | None = None,
    ) -> None:
        self.path = Path(path)
        self.filesystem = filesystem
        self.lock = lock
        self.options = ConnectionOptions.resolve(options)
        self.codec = BlockCodec(compress=self.options.compress)

    @classmethod
    def from_dsn(
        cls,
        dsn: str,
        options: ConnectionOptions | Mapping[str, Any] | None = None,
        *,
        filesystem: FilesystemPort | None = None,
        lock: LockPort | None = None,
    ) -> QueueStore:
        """
        Build a store from a `filesystem://` DSN.

        Defaults to the local filesystem and a FlockLock on `<path>.lock`.
        Raises InvalidConfiguration for a malformed DSN or option value.
        """
        path, resolved = parse_dsn(dsn, options)
        return cls(
            path,
            filesystem if filesystem is not None else LocalFilesystem(),
            lock if lock is not None else FlockLock(f"{path}.lock"),
            resolved,
        )

    @property
    def data_path(self) -> Path:
        return self.path / QUEUE_DATA_FILENAME

    @property
    def index_path(self) -> Path:
        return self.path / QUEUE_INDEX_FILENAME

    @property
    def queue_files(self) -> tuple[Path, Path]:
        return self.data_path, self.index_path

    def get_connection_options(self) -> ConnectionOptions:
        return self.options

    # ------------------------------------------------------------------ #
    # Setup                                                                #
    # ------------------------------------------------------------------ #

    def should_setup(self) -> bool:
        """True unless the directory holds both queue files."""
        return not self.filesystem.exists(self.queue_files)

    def setup(self) -> None:
        """Create the directory and any missing queue file. Idempotent."""
        self.filesystem.mkdir(self.path)
        self.filesystem.touch(self.queue_files)
        logger.info("Initialised queue directory", path=str(self.path))

    def _ensure_initialized(self) -> None:
        if not self.should_setup():
            return
        try:
            self.setup()
        except OSError as exc:
            raise StorageUnavailable(
                "Filesystem queue: unable to initialise directory", self.path, exc
            ) from exc

    # ------------------------------------------------------------------ #
    # Public operations                                                    #
    # ------------------------------------------------------------------ #

    async def publish(
        self,
        body: bytes | str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """
        Append a block to the queue.

        On success the data file grew by exactly the encoded length and the
        index file by one 8-byte record holding that length. Raises
        InvalidMessage, with both files untouched, if body and headers do not
        form a Block.
        """
        try:
            block = Block(body=body, headers=headers or {})
        except ValidationError as exc:
            raise InvalidMessage(f"Invalid message: {exc}") from exc
        data = self.codec.encode(block)
        await asyncio.to_thread(self._sync_publish, data)

    async def get(self) -> Block | None:
        """
        Pop the most recently published block, or None if the queue is empty.

        The record is removed from disk before it is decoded; a DecodeError
        here means the record is gone.
        """
        raw = await asyncio.to_thread(self._sync_get)
        if raw is None:
            return None
        try:
            return self.codec.decode(raw)
        except DecodeError:
            logger.warning(
                "Discarded undecodable block",
                path=str(self.path),
                size=len(raw),
                compress=self.options.compress,
            )
            raise

    # ------------------------------------------------------------------ #
    # Synchronous implementations (executed in a thread-pool worker)      #
    # ------------------------------------------------------------------ #

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.lock.acquire(True)
        try:
            yield
        finally:
            self.lock.release()

    def _sync_publish(self, data: bytes) -> None:
        with self._locked():
            self._ensure_initialized()

            try:
                fd = os.open(self.data_path, os.O_WRONLY | os.O_APPEND)
            except OSError as exc:
                raise StorageUnavailable(
                    "Filesystem queue: unable to open data-file", self.data_path, exc
                ) from exc
            try:
                data_size = os.fstat(fd).st_size
                try:
                    _write_all(fd, data)
                except OSError as exc:
                    self._rollback_append(fd, data_size, exc)
            finally:
                os.close(fd)

            # From here on the data file holds a record the index does not know.
            try:
                fd = os.open(self.index_path, os.O_WRONLY | os.O_APPEND)
            except OSError as exc:
                raise self._desync(
                    "Filesystem queue: unable to open index-file", self.index_path, exc
                ) from exc
            try:
                _write_all(fd, INDEX_RECORD.pack(len(data)))
            except OSError as exc:
                raise self._desync(
                    "Filesystem queue: unable to write index-file", self.index_path, exc
                ) from exc
            finally:
                os.close(fd)

        logger.debug(
            "Published block",
            path=str(self.path),
            size=len(data),
            compress=self.options.compress,
        )

    def _sync_get(self) -> bytes | None:
        with self._locked():
            self._ensure_initialized()

            try:
                fd = os.open(self.index_path, os.O_RDWR)
            except OSError as exc:
                raise StorageUnavailable(
                    "Filesystem queue: unable to open index-file", self.index_path, exc
                ) from exc
            try:
                size = self._pop_index_record(fd)
            finally:
                os.close(fd)
            if size is None:
                return None

            # The index is one record shorter than the data file from here on.
            try:
                fd = os.open(self.data_path, os.O_RDWR)
            except OSError as exc:
                raise self._desync(
                    "Filesystem queue: unable to open data-file", self.data_path, exc
                ) from exc
            try:
                raw = self._pop_data_record(fd, size)
            finally:
                os.close(fd)

        logger.debug(
            "Popped block",
            path=str(self.path),
            size=size,
            compress=self.options.compress,
        )
        return raw

    def _pop_index_record(self, fd: int) -> int | None:
        """Read and cut the last index record. None if the index is empty."""
        try:
            index_size = os.fstat(fd).st_size
            if index_size == 0:
                return None
            if index_size % INDEX_RECORD_SIZE:
                raise self._desync(
                    f"Filesystem queue: size {index_size} is not a multiple of "
                    f"{INDEX_RECORD_SIZE} bytes in index-file",
                    self.index_path,
                )
            os.lseek(fd, -INDEX_RECORD_SIZE, os.SEEK_END)
            record = _read_exact(fd, INDEX_RECORD_SIZE)
            (size,) = INDEX_RECORD.unpack(record)

            data_size = self.data_path.stat().st_size
            if size > data_size:
                raise self._desync(
                    f"Filesystem queue: record of {size} bytes exceeds the "
                    f"{data_size} bytes of data-file",
                    self.data_path,
                )
        except OSError as exc:
            raise StorageUnavailable(
                "Filesystem queue: unable to read index-file", self.index_path, exc
            ) from exc

        try:
            os.ftruncate(fd, index_size - INDEX_RECORD_SIZE)
        except OSError as exc:
            raise StorageUnavailable(
                "Filesystem queue: unable to truncate index-file", self.index_path, exc
            ) from exc
        return size

    def _pop_data_record(self, fd: int, size: int) -> bytes:
        """Read and cut the last `size` bytes of the data file."""
        try:
            data_size = os.fstat(fd).st_size
            if size > data_size:
                raise self._desync(
                    f"Filesystem queue: record of {size} bytes exceeds the "
                    f"{data_size} bytes of data-file",
                    self.data_path,
                )
            os.lseek(fd, data_size - size, os.SEEK_SET)
            raw = _read_exact(fd, size)
            if len(raw) != size:
                raise self._desync(
                    f"Filesystem queue: short read ({len(raw)} of {size} bytes) "
                    "from data-file",
                    self.data_path,
                )
            os.ftruncate(fd, data_size - size)
        except OSError as exc:
            raise self._desync(
                "Filesystem queue: unable to pop record from data-file",
                self.data_path,
                exc,
            ) from exc
        return raw

    def _rollback_append(self, fd: int, size: int, exc: OSError) -> None:
        """Cut a failed append back to `size` bytes, then raise."""
        try:
            os.ftruncate(fd, size)
        except OSError as rollback_exc:
            raise self._desync(
                "Filesystem queue: unable to roll back partial write to data-file",
                self.data_path,
                rollback_exc,
            ) from exc
        raise StorageUnavailable(
            "Filesystem queue: unable to write data-file", self.data_path, exc
        ) from exc

    def _desync(
        self, message: str, path: Path, cause: Exception | None = None
    ) -> IndexDesyncRisk:
        logger.error(
            "Queue files out of sync",
            path=str(self.path),
            file=str(path),
            reason=message,
        )
        return IndexDesyncRisk(message, path, cause)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def _read_exact(fd: int, size: int) -> bytes:
    """Read up to `size` bytes, stopping early only at end of file."""
    chunks: list[bytes] = []
    remaining = size
    while remaining:
        chunk = os.read(fd, remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)

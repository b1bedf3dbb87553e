"""
fsqueue — a durable message queue in two plain files.

A queue is a directory holding:
  queue.data   — encoded messages, appended one after another
  queue.index  — one 8-byte big-endian length per message

publish() appends a message to the data file and its length to the index.
get() reads the last length from the index, cuts that many bytes off the end
of the data file and returns the message, so the newest message is always
returned first (LIFO). Both run under an exclusive lock and keep no state in
memory between calls: the files are the queue.

Quick start
-----------
    import asyncio
    from fsqueue import QueueStore

    async def main():
        store = QueueStore.from_dsn("filesystem://tmp/my-queue?compress=true")

        await store.publish(b'{"to": "user@example.com"}', {"type": "email"})

        block = await store.get()
        print(block.body, block.headers)

    asyncio.run(main())

Collaborators
-------------
QueueStore takes two small collaborators, both structural Protocols:
  LockPort        acquire(blocking) -> bool, release()
  FilesystemPort  exists(paths) -> bool, mkdir(path), touch(paths)

Built-in adapters:
  - FlockLock        — fcntl.flock on a lock file (POSIX, cross-process)
  - InMemoryLock     — threading.Lock, for tests and single-process use
  - LocalFilesystem  — pathlib on the local disk

Architecture
------------
Follows the Ports & Adapters pattern:
  domain/   — pure value types (Block, ConnectionOptions) and errors
  ports/    — Protocol interfaces (LockPort, FilesystemPort)
  core/     — codec, QueueStore, DSN parsing, FilesystemTransport
  adapters/ — concrete lock and filesystem implementations
"""
from __future__ import annotations

from fsqueue.adapters.filesystem.local import LocalFilesystem
from fsqueue.adapters.lock.flock import FlockLock
from fsqueue.adapters.lock.memory import InMemoryLock
from fsqueue.core.codec import DEFLATE, BlockCodec, Compression
from fsqueue.core.dsn import parse_dsn
from fsqueue.core.store import QueueStore
from fsqueue.core.transport import FilesystemTransport, supports
from fsqueue.domain.errors import (
    DecodeError,
    FSQueueError,
    IndexDesyncRisk,
    InvalidConfiguration,
    InvalidMessage,
    StorageUnavailable,
)
from fsqueue.domain.models import Block, ConnectionOptions
from fsqueue.ports.filesystem import FilesystemPort
from fsqueue.ports.lock import LockPort

__all__ = [
    # Domain models
    "Block",
    "ConnectionOptions",
    # Errors
    "FSQueueError",
    "InvalidConfiguration",
    "InvalidMessage",
    "StorageUnavailable",
    "IndexDesyncRisk",
    "DecodeError",
    # Ports (for typing custom collaborators)
    "LockPort",
    "FilesystemPort",
    # Codec
    "BlockCodec",
    "Compression",
    "DEFLATE",
    # Queue API
    "QueueStore",
    "FilesystemTransport",
    "parse_dsn",
    "supports",
    # Built-in adapters
    "FlockLock",
    "InMemoryLock",
    "LocalFilesystem",
]

"""
FilesystemTransport — send/receive glue over a QueueStore.

Usage
-----
    transport = FilesystemTransport.from_dsn("filesystem://var/spool/mail")

    await transport.send(b'{"to": "user@example.com"}', {"type": "email"})

    async for block in transport.listen(max_messages=1):
        handle(block)
        await transport.ack(block)

Delivery
--------
A block leaves the queue files the moment get() returns it, so ack() and
reject() have nothing left to change on disk; they only record the outcome.
A consumer that crashes after get() loses that block. There is no
redelivery.

listen() polls: when the queue is empty it sleeps for the store's
loop_sleep option (microseconds) before trying again.
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator, Mapping
from typing import Any

import structlog

from fsqueue.core.dsn import SCHEME
from fsqueue.core.store import QueueStore
from fsqueue.domain.models import Block, ConnectionOptions

logger = structlog.get_logger(__name__)


def supports(dsn: str) -> bool:
    """True for DSNs this transport can open."""
    return dsn.startswith(f"{SCHEME}://")


@dataclasses.dataclass
class FilesystemTransport:
    """
    Parameters
    ----------
    store : the QueueStore messages are sent to and received from
    """

    store: QueueStore

    @classmethod
    def from_dsn(
        cls,
        dsn: str,
        options: ConnectionOptions | Mapping[str, Any] | None = None,
    ) -> FilesystemTransport:
        return cls(QueueStore.from_dsn(dsn, options))

    async def send(
        self,
        body: bytes | str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        await self.store.publish(body, headers)

    async def get(self) -> list[Block]:
        """Zero or one block: the newest one in the queue."""
        block = await self.store.get()
        return [] if block is None else [block]

    async def ack(self, block: Block) -> None:
        logger.debug("Acknowledged block", path=str(self.store.path), size=len(block.body))

    async def reject(self, block: Block) -> None:
        logger.info(
            "Rejected block", path=str(self.store.path), headers=dict(block.headers)
        )

    async def listen(self, max_messages: int | None = None) -> AsyncIterator[Block]:
        """Yield blocks as they arrive, sleeping loop_sleep between empty polls."""
        delay = self.store.get_connection_options().loop_sleep_seconds
        received = 0
        while max_messages is None or received < max_messages:
            block = await self.store.get()
            if block is None:
                await asyncio.sleep(delay)
                continue
            received += 1
            yield block

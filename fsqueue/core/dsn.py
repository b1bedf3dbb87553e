"""
DSN parsing for filesystem queues.

    filesystem://var/spool/messages?compress=true&loop_sleep=250000

The host and path are joined into an absolute storage directory
(`/var/spool/messages` above). Query parameters are connection options and
override any options passed explicitly.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from fsqueue.domain.errors import InvalidConfiguration
from fsqueue.domain.models import ConnectionOptions

SCHEME = "filesystem"


def parse_dsn(
    dsn: str,
    options: ConnectionOptions | Mapping[str, Any] | None = None,
) -> tuple[Path, ConnectionOptions]:
    """Return (storage directory, options). Raises InvalidConfiguration."""
    try:
        parts = urlsplit(dsn)
    except ValueError as exc:
        raise InvalidConfiguration(
            f'The given Filesystem DSN "{dsn}" is invalid.'
        ) from exc

    # Neither user info nor a port is part of the directory.
    host = parts.netloc.rpartition("@")[2].partition(":")[0]
    if not host or not parts.path:
        raise InvalidConfiguration(
            f'The given Filesystem DSN "{dsn}" is invalid: path missing.'
        )

    merged: dict[str, Any] = (
        options.model_dump()
        if isinstance(options, ConnectionOptions)
        else dict(options or {})
    )
    merged.update(parse_qsl(parts.query, keep_blank_values=True))

    return Path("/" + host + parts.path), ConnectionOptions.resolve(merged)

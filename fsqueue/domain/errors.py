"""
Exception hierarchy for fsqueue.

FSQueueError
├── InvalidConfiguration  — malformed DSN or connection option values
├── InvalidMessage        — a body or headers that do not form a Block
├── StorageUnavailable    — a queue file could not be opened or written; no state change
├── IndexDesyncRisk       — one queue file was mutated, its pair could not be matched
└── DecodeError           — record bytes do not decode to a Block
"""

from __future__ import annotations

from pathlib import Path


class FSQueueError(Exception):
    """Base class for all fsqueue exceptions."""


class InvalidConfiguration(FSQueueError):
    """Raised at construction time for an unusable DSN or option value."""


class InvalidMessage(FSQueueError):
    """Raised by publish() for a body or header value that cannot form a Block."""


class StorageUnavailable(FSQueueError):
    """
    A queue file could not be opened or written before anything was mutated.

    The lock has been released and both files are unchanged, so the
    operation can be retried by the caller.

    Attributes
    ----------
    path  : the file that could not be used
    cause : the original exception, if any
    """

    def __init__(
        self, message: str, path: str | Path, cause: Exception | None = None
    ) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = f"{message} {self.path}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)


class IndexDesyncRisk(FSQueueError):
    """
    The index file and the data file no longer agree, or risk not agreeing.

    Raised when a failure happens after one of the two files was already
    mutated (or when their sizes are found inconsistent). Not retryable:
    the queue directory needs manual reconciliation.

    Attributes
    ----------
    path  : the file that could not be brought in line with its pair
    cause : the original exception, if any
    """

    def __init__(
        self, message: str, path: str | Path, cause: Exception | None = None
    ) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = f"{message} {self.path}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(
            f"{detail}. Critical: the queue files are not in sync anymore!"
        )


class DecodeError(FSQueueError):
    """
    Raised when stored bytes are not a valid encoded Block.

    Records are removed from disk before they are decoded, so the record
    that triggered this error is gone.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

"""
Domain models for fsqueue — backed by Pydantic v2.

Pydantic handles:
  - JSON serialization / deserialization of a Block (via codec.py)
  - bytes ↔ base64 encoding in JSON mode
  - coercion of boolean-ish and integer strings coming from a DSN query

All models are frozen (immutable). Block headers are exposed as a read-only
mapping, so a Block is hashable and cannot change after construction.
"""

import base64
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_serializer,
    field_validator,
)

from fsqueue.domain.errors import InvalidConfiguration

DEFAULT_LOOP_SLEEP: int = 500_000


class Block(BaseModel):
    """
    A single queued message.

    body    — opaque payload bytes (serialised as base64 in JSON)
    headers — read-only string key/value mapping; keys are unique, order is
              irrelevant

    Only these two fields are accepted. Unknown keys in stored JSON are
    rejected so that nothing but a Block is ever reconstructed from disk.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    body: bytes
    headers: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("body", mode="before")
    @classmethod
    def _decode_body(cls, v: Any, info: ValidationInfo) -> bytes:
        """Accept base64 strings from JSON; UTF-8 encode str in Python mode."""
        match v:
            case bytes():
                return v
            case str() if info.mode == "json":
                return base64.b64decode(v, validate=True)
            case str():
                return v.encode("utf-8")
            case _:
                raise ValueError(
                    f"body must be bytes or str, got {type(v).__name__}"
                )

    @field_serializer("body", when_used="json")
    def _encode_body(self, v: bytes) -> str:
        """Encode bytes as base64 ASCII for JSON serialisation."""
        return base64.b64encode(v).decode("ascii")

    @field_validator("headers", mode="after")
    @classmethod
    def _freeze_headers(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    @field_serializer("headers")
    def _dump_headers(self, v: Mapping[str, str]) -> dict[str, str]:
        return dict(v)

    def __hash__(self) -> int:
        return hash((self.body, frozenset(self.headers.items())))


class ConnectionOptions(BaseModel):
    """
    Connection configuration, resolved once when a QueueStore is built.

    compress   — pass encoded records through the compression transform
    loop_sleep — microseconds a polling consumer waits on an empty queue;
                 the store itself never reads it
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    compress: bool = False
    loop_sleep: int = Field(default=DEFAULT_LOOP_SLEEP, ge=0)

    @classmethod
    def resolve(
        cls, options: "ConnectionOptions | Mapping[str, Any] | None" = None
    ) -> "ConnectionOptions":
        """Validate a mapping of raw option values. Raises InvalidConfiguration."""
        if isinstance(options, ConnectionOptions):
            return options
        try:
            return cls.model_validate(dict(options or {}))
        except ValidationError as exc:
            raise InvalidConfiguration(f"Invalid connection options: {exc}") from exc

    @property
    def loop_sleep_seconds(self) -> float:
        return self.loop_sleep / 1_000_000

"""
Codec — serialize and deserialize a Block to/from bytes using Pydantic v2.

Wire format (produced by model_dump_json):
------------------------------------------
{"body":"aGVsbG8=","headers":{"type":"greeting"}}

  - body is base64-encoded, so it can never collide with JSON delimiters
  - headers is a flat string → string object

With compress=True the JSON bytes are passed through a Compression transform
(raw DEFLATE by default) before they are written to the data file.

Decoding is typed: bytes are validated against the Block model only, with
unknown keys rejected. Anything else is a DecodeError.
"""
from __future__ import annotations

import dataclasses
import zlib
from collections.abc import Callable

from pydantic import ValidationError

from fsqueue.domain.errors import DecodeError
from fsqueue.domain.models import Block


def _deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def _inflate(data: bytes) -> bytes:
    decompressor = zlib.decompressobj(wbits=-zlib.MAX_WBITS)
    out = decompressor.decompress(data) + decompressor.flush()
    if not decompressor.eof:
        raise zlib.error("incomplete or truncated deflate stream")
    return out


@dataclasses.dataclass(frozen=True)
class Compression:
    """A reversible byte transform: decompress(compress(b)) == b."""

    name: str
    compress: Callable[[bytes], bytes]
    decompress: Callable[[bytes], bytes]


# Raw DEFLATE stream (no zlib/gzip header).
DEFLATE = Compression(name="deflate", compress=_deflate, decompress=_inflate)


@dataclasses.dataclass(frozen=True)
class BlockCodec:
    """
    Encodes Blocks for the data file.

    Parameters
    ----------
    compress    : apply `compression` after JSON serialisation
    compression : the transform pair used when compress is True
    """

    compress: bool = False
    compression: Compression = DEFLATE

    def encode(self, block: Block) -> bytes:
        """Serialize a Block to bytes, compressed if enabled."""
        data = block.model_dump_json().encode("utf-8")
        if self.compress:
            data = self.compression.compress(data)
        return data

    def decode(self, data: bytes) -> Block:
        """Deserialize bytes written by encode(). Raises DecodeError."""
        if self.compress:
            try:
                data = self.compression.decompress(data)
            except Exception as exc:
                raise DecodeError(
                    f"{self.compression.name} decompression failed", exc
                ) from exc
        try:
            return Block.model_validate_json(data)
        except ValidationError as exc:
            raise DecodeError("invalid encoded block", exc) from exc

from __future__ import annotations

import io
from typing import Any

import cbor2

from .errors import CodecError, PayloadDecodeError


def encode(value: Any) -> bytes:
    try:
        return cbor2.dumps(value)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
        raise CodecError(f"CBOR encoding failed: {e}") from e


def decode(data: bytes) -> Any:
    """Decode a payload that must hold exactly one CBOR item."""
    fp = io.BytesIO(data)
    decoder = cbor2.CBORDecoder(fp)
    try:
        value = decoder.decode()
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise PayloadDecodeError(f"CBOR decoding failed: {e}") from e
    if fp.tell() < len(data):
        raise PayloadDecodeError(f"CBOR payload has {len(data) - fp.tell()} trailing bytes")
    # The decoder may read ahead of the item it returned, so also make sure
    # nothing else decodes from what is left.
    try:
        decoder.decode()
    except cbor2.CBORDecodeEOF:
        return value
    except (cbor2.CBORDecodeError, ValueError):
        pass
    raise PayloadDecodeError("CBOR payload has trailing data after the first item")

from __future__ import annotations

import json
import warnings
from typing import Any, Dict

from . import notation
from .codec import Codec
from .errors import LengthMismatch, MetadataDecodeError
from .header import read_header


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def unpack_bytes(buf: bytes) -> Dict[str, Any]:
    """Parse a preset container into its logical document.

    Returns ``{"metadata": ..., "data": ...}``. Every section is decoded and
    checked before anything is returned, so a failure never yields a
    partial document.

    Raises:
        FormatMismatch: magic identifier is wrong (HeaderTruncated when the
            framing runs past the end of ``buf``).
        MetadataDecodeError: metadata is not UTF-8 JSON.
        CodecError: the zstd stream is corrupt.
        LengthMismatch: decompressed size differs from the declared size.
        PayloadDecodeError: the payload is not valid CBOR.
    """
    buf = bytes(buf)
    hdr = read_header(buf)

    raw_meta = buf[hdr.metadata_offset:hdr.metadata_offset + hdr.metadata_len]
    try:
        metadata = json.loads(raw_meta.decode("utf-8"), parse_constant=_reject_constant)
    except UnicodeDecodeError as e:
        raise MetadataDecodeError(f"Metadata is not valid UTF-8: {e}") from e
    except ValueError as e:
        raise MetadataDecodeError(f"Metadata is not valid JSON: {e}") from e

    if not hdr.flags_known:
        warnings.warn(f"Unknown payload flags {hdr.flags:#x}; assuming zstd", RuntimeWarning, stacklevel=2)

    cbor_buf = Codec().decompress(buf[hdr.payload_offset:])
    if len(cbor_buf) != hdr.payload_len:
        raise LengthMismatch(hdr.payload_len, len(cbor_buf))

    data = notation.decode(cbor_buf)
    return {"metadata": metadata, "data": data}

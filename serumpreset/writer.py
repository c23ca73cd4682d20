from __future__ import annotations

import json
from typing import Any, Mapping

from . import notation
from .codec import Codec
from .constants import CONTAINER_MAGIC, DOCUMENT_KEYS, RESERVED_VALUE, ZSTD_LEVEL, PayloadFlags
from .errors import DocumentError
from .header import pack_word_pair


def _encode_metadata(metadata: Any) -> bytes:
    # Compact separators and raw UTF-8 match what the reference producer emits.
    try:
        text = json.dumps(metadata, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise DocumentError(f"Metadata is not JSON serialisable: {e}") from e
    return text.encode("utf-8")


def pack_bytes(doc: Mapping[str, Any]) -> bytes:
    """Serialise a logical document into preset container bytes.

    The reserved word is written as 0 and the flags word as
    ``PayloadFlags.COMPRESSED``; the payload is always zstd-compressed at
    the fixed level, so identical documents produce identical bytes.
    """
    if not isinstance(doc, Mapping):
        raise DocumentError(f"Document must be an object, got {type(doc).__name__}")
    missing = [k for k in DOCUMENT_KEYS if k not in doc]
    if missing:
        raise DocumentError(f"Document is missing key(s): {', '.join(missing)}")

    m_buf = _encode_metadata(doc["metadata"])
    c_buf = notation.encode(doc["data"])
    z_buf = Codec(ZSTD_LEVEL).compress(c_buf)

    return b"".join(
        (
            CONTAINER_MAGIC,
            pack_word_pair(len(m_buf), RESERVED_VALUE),
            m_buf,
            pack_word_pair(len(c_buf), PayloadFlags.COMPRESSED),
            z_buf,
        )
    )

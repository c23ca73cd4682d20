from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import CONTAINER_MAGIC, MAGIC_LEN, PayloadFlags
from .errors import FormatMismatch, HeaderTruncated


# Each section is introduced by two little-endian u32 words:
#  - metadata: length, reserved
#  - payload:  decoded CBOR length, flags
_WORD_PAIR = struct.Struct("<II")

METADATA_OFFSET = MAGIC_LEN + _WORD_PAIR.size  # 0x11


@dataclass
class ContainerHeader:
    metadata_len: int
    reserved: int
    payload_len: int
    flags: int
    payload_offset: int
    compressed_len: int

    @property
    def flags_known(self) -> bool:
        return self.flags in {f.value for f in PayloadFlags}

    @property
    def metadata_offset(self) -> int:
        return METADATA_OFFSET


def pack_word_pair(first: int, second: int) -> bytes:
    return _WORD_PAIR.pack(first, second)


def _unpack_word_pair(buf: bytes, offset: int):
    if offset + _WORD_PAIR.size > len(buf):
        raise HeaderTruncated(f"Container truncated at offset {offset:#x}")
    return _WORD_PAIR.unpack_from(buf, offset)


def check_magic(buf: bytes) -> None:
    if bytes(buf[:MAGIC_LEN]) != CONTAINER_MAGIC:
        raise FormatMismatch("Not a valid .SerumPreset file (magic mismatch)")


def read_header(buf: bytes) -> ContainerHeader:
    """Validate the magic and locate both sections of a container.

    Only the fixed framing is inspected; the metadata text and the
    compressed payload are left undecoded.
    """
    check_magic(buf)
    metadata_len, reserved = _unpack_word_pair(buf, MAGIC_LEN)
    off = METADATA_OFFSET + metadata_len
    if off > len(buf):
        raise HeaderTruncated(
            f"Metadata section declares {metadata_len} bytes but only {len(buf) - METADATA_OFFSET} remain"
        )
    payload_len, flags = _unpack_word_pair(buf, off)
    off += _WORD_PAIR.size
    return ContainerHeader(
        metadata_len=metadata_len,
        reserved=reserved,
        payload_len=payload_len,
        flags=flags,
        payload_offset=off,
        compressed_len=len(buf) - off,
    )

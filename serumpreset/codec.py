from __future__ import annotations

import io
from typing import Optional

import zstandard
from zstandard import ZstdError

from .constants import ZSTD_LEVEL
from .errors import CodecError


class Codec:
    """zstd block codec for the payload section.

    A fresh compressor/decompressor is created per call so that a single
    Codec can be shared between threads.
    """

    def __init__(self, level: Optional[int] = None):
        self.level = level if level is not None else ZSTD_LEVEL

    def compress(self, data: bytes) -> bytes:
        try:
            c = zstandard.ZstdCompressor(level=self.level)
            return c.compress(data)
        except ZstdError as e:
            raise CodecError(f"zstd compression failed: {e}") from e

    def decompress(self, data: bytes) -> bytes:
        # Frames written by other producers may omit the content size, and the
        # payload may hold several frames; anything after them must decode too.
        try:
            reader = zstandard.ZstdDecompressor().stream_reader(io.BytesIO(data), read_across_frames=True)
            return reader.read()
        except ZstdError as e:
            raise CodecError(f"zstd decompression failed: {e}") from e

"""
serumpreset: lossless conversion between Xfer Serum ``.SerumPreset`` files and JSON.

A preset is a small container: a 9-byte ``XferJson\\0`` magic, a
length-prefixed UTF-8 JSON metadata section, and a length-prefixed,
zstd-compressed CBOR payload holding the synth state.

- ``unpack_bytes`` / ``pack_bytes`` convert between container bytes and the
  logical document ``{"metadata": ..., "data": ...}``.
- ``unpack_file`` / ``pack_file`` do the same against files, using the JSON
  interchange form from ``serumpreset.jsonform``.
- ``read_header`` inspects the framing without decoding the payload.
"""

__version__ = "0.1"

from .convert import pack_file, unpack_file
from .header import ContainerHeader, read_header
from .reader import unpack_bytes
from .writer import pack_bytes

__all__ = [
    "ContainerHeader",
    "pack_bytes",
    "pack_file",
    "read_header",
    "unpack_bytes",
    "unpack_file",
]

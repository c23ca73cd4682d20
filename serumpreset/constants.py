from enum import IntEnum


# Magic and layout
CONTAINER_MAGIC = b"XferJson\x00"  # 9 bytes: "XferJson\0"
MAGIC_LEN = len(CONTAINER_MAGIC)

RESERVED_VALUE = 0


class PayloadFlags(IntEnum):
    """Flags word that precedes the compressed payload."""

    COMPRESSED = 2


# zstd level used by the reference producer; fixed so output is reproducible
ZSTD_LEVEL = 3

# Interchange JSON
JSON_INDENT = 2
DOCUMENT_KEYS = ("metadata", "data")

# File suffixes
PRESET_SUFFIX = ".SerumPreset"
JSON_SUFFIX = ".json"
BATCH_OUTDIR = ".tmp"

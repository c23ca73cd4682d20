from __future__ import annotations

from pathlib import Path
from typing import Union

from .constants import JSON_INDENT
from .errors import ContainerIOError
from .jsonform import dumps_document, loads_document
from .reader import unpack_bytes
from .writer import pack_bytes


PathLike = Union[str, Path]


def _read(path: PathLike, binary: bool):
    try:
        p = Path(path)
        return p.read_bytes() if binary else p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ContainerIOError(f"Cannot read {path}: {e}") from e


def _write(path: PathLike, payload) -> None:
    try:
        p = Path(path)
        if isinstance(payload, bytes):
            p.write_bytes(payload)
        else:
            p.write_text(payload, encoding="utf-8")
    except OSError as e:
        raise ContainerIOError(f"Cannot write {path}: {e}") from e


def unpack_file(src: PathLike, dst: PathLike, *, indent: int = JSON_INDENT) -> None:
    """Convert a ``.SerumPreset`` file into its JSON interchange file."""
    doc = unpack_bytes(_read(src, binary=True))
    _write(dst, dumps_document(doc, indent=indent))


def pack_file(src: PathLike, dst: PathLike) -> None:
    """Convert a JSON interchange file back into a ``.SerumPreset`` file."""
    doc = loads_document(_read(src, binary=False))
    _write(dst, pack_bytes(doc))

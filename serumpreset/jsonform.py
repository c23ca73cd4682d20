"""
JSON interchange form of a logical document.

CBOR carries a few values JSON has no spelling for. They are written as
single-purpose marker objects so that ``unpack`` followed by ``pack``
reproduces the same payload:

- byte strings:  {"$bytes": "<base64>"}
- tagged items:  {"$tag": <int>, "value": <item>}

A real map with any key starting with "$" is wrapped as {"$map": {...}}
so it can never be mistaken for one of the markers above.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from cbor2 import CBORTag

from .constants import DOCUMENT_KEYS, JSON_INDENT
from .errors import DocumentError


_BYTES_KEY = "$bytes"
_TAG_KEY = "$tag"
_MAP_KEY = "$map"


def to_json_compatible(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES_KEY: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, CBORTag):
        return {_TAG_KEY: value.tag, "value": to_json_compatible(value.value)}
    if isinstance(value, dict):
        out = {k: to_json_compatible(v) for k, v in value.items()}
        if any(isinstance(k, str) and k.startswith("$") for k in value):
            return {_MAP_KEY: out}
        return out
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(v) for v in value]
    raise DocumentError(f"Value of type {type(value).__name__} has no JSON form")


def from_json_compatible(value: Any) -> Any:
    if isinstance(value, list):
        return [from_json_compatible(v) for v in value]
    if not isinstance(value, dict):
        return value
    if set(value) == {_BYTES_KEY} and isinstance(value[_BYTES_KEY], str):
        try:
            return base64.b64decode(value[_BYTES_KEY], validate=True)
        except binascii.Error as e:
            raise DocumentError(f"Invalid base64 in {_BYTES_KEY} marker: {e}") from e
    if set(value) == {_TAG_KEY, "value"} and isinstance(value[_TAG_KEY], int):
        return CBORTag(value[_TAG_KEY], from_json_compatible(value["value"]))
    if set(value) == {_MAP_KEY} and isinstance(value[_MAP_KEY], dict):
        return {k: from_json_compatible(v) for k, v in value[_MAP_KEY].items()}
    return {k: from_json_compatible(v) for k, v in value.items()}


def dumps_document(doc: Dict[str, Any], *, indent: int = JSON_INDENT) -> str:
    out = {k: to_json_compatible(doc[k]) for k in DOCUMENT_KEYS}
    try:
        return json.dumps(out, indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise DocumentError(f"Document is not JSON serialisable: {e}") from e


def loads_document(text: str) -> Dict[str, Any]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Invalid JSON document: {e}") from e
    if not isinstance(obj, dict):
        raise DocumentError(f"Document must be an object, got {type(obj).__name__}")
    missing = [k for k in DOCUMENT_KEYS if k not in obj]
    if missing:
        raise DocumentError(f"Document is missing key(s): {', '.join(missing)}")
    return {
        "metadata": obj["metadata"],
        "data": from_json_compatible(obj["data"]),
    }

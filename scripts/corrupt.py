from __future__ import annotations

import argparse
import os
import random
import struct
import sys
from typing import Optional

from serumpreset.constants import MAGIC_LEN
from serumpreset.errors import SerumPresetError
from serumpreset.header import read_header


def _section_at(buf: bytes, pos: int) -> str:
    """Name the container region holding byte ``pos``."""
    if pos < MAGIC_LEN:
        return "magic"
    try:
        hdr = read_header(buf)
    except SerumPresetError:
        return "unparsed"
    if pos < hdr.metadata_offset:
        return "metadata-header"
    if pos < hdr.metadata_offset + hdr.metadata_len:
        return "metadata"
    if pos < hdr.payload_offset:
        return "payload-header"
    return "payload"


def _flip_bytes(path: str, offsets: list[int], xor_val: int = 0xFF) -> list[str]:
    """XOR each offset in place and return the section each one hit."""
    with open(path, "rb") as f:
        buf = bytearray(f.read())
    # sections are resolved against the file before any flip
    sections = [_section_at(bytes(buf), off) for off in offsets]
    for off in offsets:
        if off < 0 or off >= len(buf):
            raise ValueError(f"Offset {off} outside file (0..{len(buf) - 1})")
        buf[off] ^= xor_val & 0xFF
    with open(path, "r+b") as f:
        f.write(buf)
        f.flush()
        os.fsync(f.fileno())
    return sections


def cmd_by_offset(args: argparse.Namespace) -> None:
    (section,) = _flip_bytes(args.preset, [args.offset], xor_val=args.xor)
    print(f"Flipped 1 byte at offset {args.offset} ({section})")


def cmd_section(args: argparse.Namespace) -> None:
    with open(args.preset, "rb") as f:
        hdr = read_header(f.read())
    spans = {
        "magic": (0, MAGIC_LEN),
        "metadata": (hdr.metadata_offset, hdr.metadata_len),
        "payload": (hdr.payload_offset, hdr.compressed_len),
    }
    start, length = spans[args.section]
    if args.within < 0 or args.within >= length:
        raise ValueError(f"--within must be within the {args.section} section (0..{length - 1})")
    _flip_bytes(args.preset, [start + args.within], xor_val=args.xor)
    print(f"Flipped 1 byte in {args.section} at offset {start + args.within}")


def cmd_declared_len(args: argparse.Namespace) -> None:
    """Rewrite the declared payload length so it no longer matches the payload."""
    with open(args.preset, "r+b") as f:
        hdr = read_header(f.read())
        off = hdr.payload_offset - 8
        f.seek(off)
        f.write(struct.pack("<I", (hdr.payload_len + args.delta) & 0xFFFFFFFF))
    print(f"Declared payload length {hdr.payload_len} -> {hdr.payload_len + args.delta}")


def cmd_random(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    size = os.path.getsize(args.preset)
    if size == 0:
        raise ValueError("File is empty")
    offsets = [rng.randrange(0, size) for _ in range(args.count)]
    sections = _flip_bytes(args.preset, offsets, xor_val=args.xor)
    for off, section in zip(offsets, sections):
        print(f"  {off:#08x} {section}")
    print(f"Flipped {len(offsets)} byte(s) at random offsets")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="serumpreset.corrupt", description="Corrupt .SerumPreset files for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_off = sub.add_parser("by-offset", help="Flip one byte at an absolute offset")
    p_off.add_argument("preset", help="Path to .SerumPreset file")
    p_off.add_argument("--offset", type=int, required=True, help="Absolute byte offset")
    p_off.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_off.set_defaults(func=cmd_by_offset)

    p_sec = sub.add_parser("section", help="Flip a byte inside one container section")
    p_sec.add_argument("preset", help="Path to .SerumPreset file")
    p_sec.add_argument("section", choices=["magic", "metadata", "payload"])
    p_sec.add_argument("--within", type=int, default=0, help="Byte offset within the section (default 0)")
    p_sec.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_sec.set_defaults(func=cmd_section)

    p_len = sub.add_parser("declared-len", help="Shift the declared decompressed payload length")
    p_len.add_argument("preset", help="Path to .SerumPreset file")
    p_len.add_argument("--delta", type=int, default=1, help="Amount added to the declared length (default 1)")
    p_len.set_defaults(func=cmd_declared_len)

    p_rand = sub.add_parser("random", help="Flip N random bytes anywhere in the file")
    p_rand.add_argument("preset", help="Path to .SerumPreset file")
    p_rand.add_argument("--count", type=int, default=1, help="Number of random byte flips (default 1)")
    p_rand.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_rand.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (SerumPresetError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

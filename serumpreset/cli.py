from __future__ import annotations

import os
import sys
import argparse
import json as _json
import concurrent.futures as _fut

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from serumpreset.constants import BATCH_OUTDIR, JSON_INDENT, JSON_SUFFIX, PRESET_SUFFIX, PayloadFlags
from serumpreset.convert import pack_file, unpack_file
from serumpreset.errors import SerumPresetError
from serumpreset.header import read_header


_MODES = {
    # mode: (input suffix, output suffix, converter)
    "unpack": (PRESET_SUFFIX, JSON_SUFFIX, unpack_file),
    "pack": (JSON_SUFFIX, PRESET_SUFFIX, pack_file),
}


def _iter_inputs(paths: Iterable[str], suffix: str, recursive: bool) -> Iterable[str]:
    """Yield files ending in ``suffix`` from a list of paths and/or directories.

    Args:
        paths: Paths to scan (files or directories).
        suffix: File suffix to match, compared case-insensitively.
        recursive: When True, traverse directories recursively.
    """
    suffix = suffix.lower()
    for p in paths:
        if os.path.isdir(p):
            if recursive:
                for root, dirs, files in os.walk(p):
                    # never descend into our own output folders
                    dirs[:] = sorted(d for d in dirs if d != BATCH_OUTDIR)
                    for fn in sorted(files):
                        if fn.lower().endswith(suffix):
                            yield os.path.join(root, fn)
            else:
                try:
                    entries = sorted(os.listdir(p))
                except OSError:
                    continue
                for fn in entries:
                    full = os.path.join(p, fn)
                    if fn.lower().endswith(suffix) and os.path.isfile(full):
                        yield full
        else:
            if p.lower().endswith(suffix):
                yield p


def _batch_target(src: str, out_suffix: str, outdir: Optional[str]) -> str:
    base = Path(src)
    dest_dir = Path(outdir) if outdir else base.parent / BATCH_OUTDIR
    dest_dir.mkdir(parents=True, exist_ok=True)
    return str(dest_dir / (base.stem + out_suffix))


def cmd_unpack(src: str, dst: str, *, indent: int = JSON_INDENT, quiet: bool = False) -> bool:
    """Convert a preset container into a JSON document.

    Args:
        src: Path to the ``.SerumPreset`` file.
        dst: Destination JSON path.
        indent: JSON indentation width.
    """
    unpack_file(src, dst, indent=indent)
    if not quiet:
        print(f"{src} -> {dst}")
    return True


def cmd_pack(src: str, dst: str, *, quiet: bool = False) -> bool:
    """Convert a JSON document (as written by unpack) into a preset container.

    Args:
        src: Path to the JSON document.
        dst: Destination ``.SerumPreset`` path.
    """
    pack_file(src, dst)
    if not quiet:
        print(f"{src} -> {dst}")
    return True


def cmd_info(preset: str) -> bool:
    """Show the container framing of a preset without decoding the payload."""
    buf = Path(preset).read_bytes()
    hdr = read_header(buf)
    flags = PayloadFlags(hdr.flags).name if hdr.flags_known else "unknown"
    print(f"Preset: {preset}")
    print(f"  Size: {len(buf)}")
    print(f"  Metadata: {hdr.metadata_len} bytes at {hdr.metadata_offset:#x} (reserved={hdr.reserved})")
    print(f"  Payload: {hdr.payload_len} bytes decoded, {hdr.compressed_len} bytes compressed at {hdr.payload_offset:#x}")
    print(f"  Flags: {hdr.flags} ({flags})")
    if hdr.payload_len:
        print(f"  Ratio: {hdr.compressed_len / hdr.payload_len:.3f}")
    return True


def _convert_one(mode: str, src: str, outdir: Optional[str]) -> Dict[str, Any]:
    _in_suffix, out_suffix, convert = _MODES[mode]
    res: Dict[str, Any] = {"path": src, "status": "unknown"}
    try:
        dst = _batch_target(src, out_suffix, outdir)
        convert(src, dst)
    except (SerumPresetError, OSError) as exc:
        res["status"] = "fail"
        res["message"] = str(exc)
        return res
    res["status"] = "ok"
    res["output"] = dst
    return res


def cmd_batch(
    mode: str,
    paths: List[str],
    *,
    recursive: bool = False,
    outdir: Optional[str] = None,
    jobs: int = 4,
    as_json: bool = False,
    quiet: bool = False
) -> bool:
    """Convert many files; failures are reported and the batch continues.

    Args:
        mode: "unpack" (presets to JSON) or "pack" (JSON to presets).
        paths: Files and/or directories to scan.
        recursive: Recurse into directories when True.
        outdir: Write all outputs here instead of a ".tmp" folder beside
            each input.
        jobs: Maximum parallel workers.
        as_json: When True, print a JSON result summary.

    Returns:
        True when every file converted, False otherwise.

    Raises:
        RuntimeError: If no input files were found.
    """
    in_suffix = _MODES[mode][0]
    inputs = list(_iter_inputs(paths, in_suffix, recursive))
    if not inputs:
        raise RuntimeError(f"No {in_suffix} files found")

    results: List[Dict[str, Any]] = []
    with _fut.ThreadPoolExecutor(max_workers=max(1, int(jobs))) as ex:
        for r in ex.map(lambda p: _convert_one(mode, p, outdir), inputs):
            results.append(r)
    ok = sum(1 for r in results if r["status"] == "ok")
    failed = len(results) - ok
    if as_json:
        print(_json.dumps({"results": results, "ok": ok, "failed": failed}))
    else:
        for r in results:
            if r["status"] == "ok":
                if not quiet:
                    print(f"OK       {r['path']} -> {r['output']}")
            else:
                print(f"FAIL     {r['path']}: {r['message']}", file=sys.stderr)
        print(f"Summary: ok={ok} failed={failed}")
    return failed == 0


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="serumpreset",
        description="Convert Serum .SerumPreset files to JSON and back",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_unpack = sub.add_parser("unpack", help="Convert a .SerumPreset file to JSON")
    ap_unpack.add_argument("src", help="Input .SerumPreset path")
    ap_unpack.add_argument("dst", help="Output .json path")
    ap_unpack.add_argument("--indent", type=int, default=JSON_INDENT, help=f"JSON indentation (default {JSON_INDENT})")
    ap_unpack.add_argument("--quiet", help="limit outputs to errors only", action="store_true")

    ap_pack = sub.add_parser("pack", help="Convert a JSON document to a .SerumPreset file")
    ap_pack.add_argument("src", help="Input .json path")
    ap_pack.add_argument("dst", help="Output .SerumPreset path")
    ap_pack.add_argument("--quiet", help="limit outputs to errors only", action="store_true")

    ap_info = sub.add_parser("info", help="Show container header fields")
    ap_info.add_argument("preset", help="Preset path")

    ap_batch = sub.add_parser("batch", help="Convert every matching file under the given paths")
    ap_batch.add_argument("mode", choices=sorted(_MODES), help="Conversion direction")
    ap_batch.add_argument("paths", nargs="+", help="Files or directories")
    ap_batch.add_argument("--recursive", "-r", action="store_true", help="Recurse into directories")
    ap_batch.add_argument("--outdir", help=f"Output directory (default: '{BATCH_OUTDIR}' beside each input)")
    ap_batch.add_argument("--jobs", "-j", type=int, default=4, help="Parallel jobs (default 4)")
    ap_batch.add_argument("--json", action="store_true", help="Emit JSON result summary")
    ap_batch.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "unpack":
            cmd_unpack(args.src, args.dst, indent=args.indent, quiet=args.quiet)
        elif args.cmd == "pack":
            cmd_pack(args.src, args.dst, quiet=args.quiet)
        elif args.cmd == "info":
            cmd_info(args.preset)
        elif args.cmd == "batch":
            success = cmd_batch(
                args.mode,
                args.paths,
                recursive=args.recursive,
                outdir=args.outdir,
                jobs=args.jobs,
                as_json=args.json,
                quiet=args.quiet
            )
            sys.exit(0 if success else 1)
        else:
            raise RuntimeError("Unknown command")
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (SerumPresetError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import json as _json
import sys
import time
from typing import List, Optional

from pharkit.constants import COMPRESSION_BZ2, COMPRESSION_GZ
from pharkit.errors import (
    CodecUnavailable,
    NotSignedError,
    OffsetNotFoundError,
    PharError,
    UnsupportedAlgorithmError,
)
from pharkit.extract import Codecs
from pharkit.reader import ArchiveReader


def _compression_label(flags: int) -> str:
    if flags & COMPRESSION_BZ2:
        return "bz2"
    if flags & COMPRESSION_GZ:
        return "gz"
    return "-"


def cmd_list(archive: str, *, offset: Optional[int] = None, as_json: bool = False) -> bool:
    """List archive entries.

    Args:
        archive: Path to a .phar file.
        offset: Manifest offset; found by scanning the stub when None.
        as_json: Print one JSON document instead of a table.
    """
    with ArchiveReader(archive, offset=offset) as r:
        entries = r.list()
    if as_json:
        print(
            _json.dumps(
                [
                    {
                        "name": e.name,
                        "size": e.uncompressed_size,
                        "compressed_size": e.compressed_size,
                        "timestamp": e.timestamp,
                        "crc32": e.crc32,
                        "flags": e.flags,
                        "offset": e.data_offset,
                        "dir": e.is_directory(),
                    }
                    for e in entries
                ]
            )
        )
        return True
    for e in entries:
        if e.is_directory():
            print(f"dir\t-\t{e.name}")
        else:
            print(f"file\t{e.uncompressed_size}\t{_compression_label(e.flags)}\t{e.name}")
    return True


def cmd_info(archive: str, *, offset: Optional[int] = None) -> bool:
    """Show the manifest header of an archive.

    Args:
        archive: Path to a .phar file.
        offset: Manifest offset; found by scanning the stub when None.
    """
    with ArchiveReader(archive, offset=offset) as r:
        m = r.manifest
        entries = r.list()
        print(f"Archive: {archive}")
        print(f"  Manifest offset: {m.offset}")
        print(f"  Manifest size: {m.size()}")
        print(f"  API version: {m.api_version()}")
        print(f"  Alias: {m.alias() or '-'}")
        print(f"  Global flags: 0x{m.global_flags():04x}")
        print(f"  Metadata: {m.metadata_size()} bytes")
        print(f"  Entries: {len(entries)}")
        print(f"    Files: {len([e for e in entries if not e.is_directory()])}")
        print(f"    Directories: {len([e for e in entries if e.is_directory()])}")
    try:
        with r.signature() as sig:
            info = sig.signature()
        print(f"  Signature: {info.algorithm_name} {info.digest_hex}")
    except NotSignedError:
        print("  Signature: none")
    except UnsupportedAlgorithmError:
        print("  Signature: unsupported algorithm")
    return True


def cmd_extract(
    archive: str,
    *,
    outdir: str = ".",
    offset: Optional[int] = None,
    paths: Optional[List[str]] = None,
    check_crc: bool = False,
    skip_unavailable: bool = False,
    quiet: bool = False,
) -> bool:
    """Extract entries to a directory.

    Args:
        archive: Path to a .phar file.
        outdir: Destination directory.
        offset: Manifest offset; found by scanning the stub when None.
        paths: Only extract entries equal to or beneath these names.
        check_crc: Compare each payload with its stored CRC32.
        skip_unavailable: Skip entries whose codec is missing instead of aborting.
        quiet: Only print the summary line.
    """
    wanted = [p.strip("/") for p in (paths or [])]
    skipped: List[str] = []

    with ArchiveReader(archive, offset=offset, codecs=Codecs.detect(), verify_crc=check_crc) as r:
        extractor = r.extractor

        def _filter(entry) -> bool:
            name = entry.name.strip("/")
            if wanted and not any(name == w or name.startswith(w + "/") for w in wanted):
                return True
            if entry.is_directory():
                return False
            try:
                extractor.require_codec(entry)
            except CodecUnavailable as exc:
                if not skip_unavailable:
                    raise
                print(f"Warning: {exc}", file=sys.stderr)
                skipped.append(entry.name)
                return True
            if not quiet:
                print(f" extracting: {entry.name}")
            return False

        t0 = time.time()
        count = r.extract_to(outdir, filter=_filter)
    dt = max(0.000001, time.time() - t0)
    print(f"Done: extracted {count} entries in {dt:.1f}s; skipped={len(skipped)}")
    return True


def cmd_verify(archive: str) -> bool:
    """Verify the archive signature.

    Prints:
        "OK" on a matching signature, "FAIL" on mismatch.
    """
    ok = ArchiveReader(archive).verify()
    print("OK" if ok else "FAIL")
    return ok


def cmd_signature(archive: str) -> bool:
    """Print the stored signature and its algorithm."""
    with ArchiveReader(archive).signature() as sig:
        info = sig.signature()
    print(f"{info.algorithm_name}\t{info.digest_hex}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="pharkit",
        description="Read and verify PHP archive (.phar) files",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--offset", type=int, help="Manifest offset (default: scan for the stub terminator)")
    ap_list.add_argument("--json", action="store_true", help="Emit JSON")

    ap_info = sub.add_parser("info", help="Show manifest header and signature")
    ap_info.add_argument("archive", help="Archive path")
    ap_info.add_argument("--offset", type=int, help="Manifest offset (default: scan for the stub terminator)")

    ap_extract = sub.add_parser("extract", help="Extract entries")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("paths", nargs="*", help="Specific entry names to extract (files or directories)")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--offset", type=int, help="Manifest offset (default: scan for the stub terminator)")
    ap_extract.add_argument("--check-crc", action="store_true", help="Compare payloads with their stored CRC32")
    ap_extract.add_argument(
        "--skip-unavailable",
        action="store_true",
        help="Skip entries compressed with a codec this interpreter lacks instead of aborting",
    )
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_verify = sub.add_parser("verify", help="Verify the archive signature")
    ap_verify.add_argument("archive", help="Archive path")

    ap_sig = sub.add_parser("signature", help="Print the stored signature")
    ap_sig.add_argument("archive", help="Archive path")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "list":
            cmd_list(args.archive, offset=args.offset, as_json=args.json)
        elif args.cmd == "info":
            cmd_info(args.archive, offset=args.offset)
        elif args.cmd == "extract":
            cmd_extract(
                args.archive,
                outdir=args.outdir,
                offset=args.offset,
                paths=args.paths,
                check_crc=args.check_crc,
                skip_unavailable=args.skip_unavailable,
                quiet=args.quiet,
            )
        elif args.cmd == "verify":
            ok = cmd_verify(args.archive)
            sys.exit(0 if ok else 1)
        elif args.cmd == "signature":
            cmd_signature(args.archive)
        else:
            raise RuntimeError("Unknown command")
    except OffsetNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Hint: pass --offset if the stub does not end with __HALT_COMPILER(); ?>", file=sys.stderr)
        sys.exit(2)
    except (PharError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

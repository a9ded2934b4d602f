from __future__ import annotations

import argparse
import os
import sys
import time
from typing import List, Optional

from asar.errors import AsarError, Status
from asar.reader import ArchiveReader, ListOptions
from asar.writer import CreateOptions, create_package


def cmd_pack(
    source_dir: str,
    output: str,
    *,
    unpack: Optional[str] = None,
    unpack_dir: Optional[str] = None,
    ordering: Optional[str] = None,
    exclude_hidden: bool = False,
    quiet: bool = False,
) -> bool:
    """Pack a directory into an archive.

    Args:
        source_dir: Directory whose contents become the archive root.
        output: Archive path to write; ``<output>.unpacked`` receives
            unpacked files.
        unpack: Glob of files to leave out of the data section.
        unpack_dir: Glob or path prefix of directories to leave unpacked.
        ordering: Optional ordering file for the data section layout.
        exclude_hidden: Skip dot-files and dot-directories.
        quiet: Only print the summary line.
    """
    t0 = time.time()
    opts = CreateOptions(unpack=unpack, unpack_dir=unpack_dir, ordering=ordering, exclude_hidden=exclude_hidden)
    result = create_package(source_dir, output, opts)
    if not quiet:
        for path, _src in result.unpacked_files:
            print(f"  unpacked: {path}")
    if result.ordering_coverage is not None:
        print(f"Ordering file has {result.ordering_coverage * 100:.0f}% coverage.")
    dt = max(0.000001, time.time() - t0)
    mib = len(result.data) / (1024.0 * 1024.0)
    print(
        f"Done: packed {mib:.2f} MiB into {output} in {dt:.1f}s; "
        f"unpacked={len(result.unpacked_files)}"
    )
    return True


def cmd_list(archive: str, *, is_pack: bool = False) -> bool:
    """Print every path in the archive, one per line."""
    with ArchiveReader(archive) as r:
        for line in r.list(ListOptions(is_pack=is_pack)):
            print(line)
    return True


def cmd_extract_file(archive: str, filename: str) -> bool:
    """Extract one file into the current directory under its base name."""
    dest = os.path.basename(filename.replace("\\", "/").rstrip("/"))
    with ArchiveReader(archive) as r:
        r.extract_file(filename, dest)
    return True


def cmd_extract(archive: str, dest: str, *, quiet: bool = False) -> bool:
    """Extract the whole archive into ``dest``."""
    t0 = time.time()
    symlink_warning_emitted = False

    def report(action: str, path: str) -> None:
        nonlocal symlink_warning_emitted
        if action == "skip":
            if not symlink_warning_emitted:
                print("symlinks not supported; skipping")
                symlink_warning_emitted = True
            return
        if quiet:
            return
        if action == "dir":
            print(f"   creating: {path}/")
        elif action == "link":
            print(f" symlinking: {path}")
        else:
            print(f" extracting: {path}")

    with ArchiveReader(archive) as r:
        summary = r.extract_all(dest, report=report)
    dt = max(0.000001, time.time() - t0)
    mib = summary.bytes / (1024.0 * 1024.0)
    print(
        f"Done: extracted {summary.files} files ({mib:.2f} MiB) in {dt:.1f}s; "
        f"dirs={summary.dirs} symlinks={summary.links} skipped={summary.skipped_links}"
    )
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(prog="asar", description="asar archive tool")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", aliases=["p"], help="Create an archive from a directory")
    ap_pack.add_argument("dir", help="Source directory")
    ap_pack.add_argument("output", help="Output archive path")
    ap_pack.add_argument("--unpack", help="Do not pack files matching this glob")
    ap_pack.add_argument("--unpack-dir", help="Do not pack directories matching this glob or path")
    ap_pack.add_argument("--ordering", help="Ordering file for the data section layout")
    ap_pack.add_argument("--exclude-hidden", action="store_true", help="Exclude hidden files")
    ap_pack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", aliases=["l"], help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("-i", "--is-pack", action="store_true", help="Show whether each entry is packed or unpacked")

    ap_ef = sub.add_parser("extract-file", aliases=["ef"], help="Extract one file into the current directory")
    ap_ef.add_argument("archive", help="Archive path")
    ap_ef.add_argument("filename", help="Path of the file inside the archive")

    ap_extract = sub.add_parser("extract", aliases=["e"], help="Extract the whole archive")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("dest", help="Destination directory")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    try:
        if args.cmd in ("pack", "p"):
            cmd_pack(
                args.dir,
                args.output,
                unpack=args.unpack,
                unpack_dir=args.unpack_dir,
                ordering=args.ordering,
                exclude_hidden=args.exclude_hidden,
                quiet=args.quiet,
            )
        elif args.cmd in ("list", "l"):
            cmd_list(args.archive, is_pack=args.is_pack)
        elif args.cmd in ("extract-file", "ef"):
            cmd_extract_file(args.archive, args.filename)
        elif args.cmd in ("extract", "e"):
            cmd_extract(args.archive, args.dest, quiet=args.quiet)
        else:
            raise RuntimeError("Unknown command")
    except AsarError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(int(e.status))
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(int(Status.INVALID_ARG))


if __name__ == "__main__":
    main()

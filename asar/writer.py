from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import header
from .constants import MAX_PACKED_FILE_SIZE, UNPACKED_SUFFIX
from .errors import ArchiveIOError, AsarError, FileTooLargeError, InvalidArgError
from .hashutil import bytes_integrity, file_integrity
from .node import DirectoryNode, FileNode
from .pathutil import norm_path
from .pattern import UnpackPattern
from .tree import depth_first, from_filesystem


@dataclass
class CreateOptions:
    """Options for building an archive.

    Attributes:
        unpack: Glob; matching files are kept out of the data section and
            copied to the companion ``.unpacked`` directory instead. A
            pattern without '/' is matched against the file name only.
        unpack_dir: Glob or literal path prefix; matching directories and
            everything below them are left unpacked.
        ordering: Path to a text file listing archive paths (one per line,
            optionally ``prefix:path``) whose data should be laid out first.
        exclude_hidden: Skip entries whose names start with '.'.
        include: Glob; when set, only matching files and links are packed.
    """

    unpack: Optional[str] = None
    unpack_dir: Optional[str] = None
    ordering: Optional[str] = None
    exclude_hidden: bool = False
    include: Optional[str] = None


@dataclass
class PackResult:
    tree: DirectoryNode
    data: bytes
    # (archive path, source path) of every file left out of the data section
    unpacked_files: List[Tuple[str, str]] = field(default_factory=list)
    source_dir: str = ""
    # share of data-section files placed by the ordering file, None without one
    ordering_coverage: Optional[float] = None

    def header_bytes(self) -> bytes:
        return header.encode(self.tree)


def _read_ordering(path: str) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except OSError as exc:
        raise ArchiveIOError(f"Cannot read ordering file {path}: {exc}") from exc
    out: List[str] = []
    for line in lines:
        entry = line.rsplit(":", 1)[-1].strip()
        if not entry:
            continue
        try:
            out.append("/".join(norm_path(entry.lstrip("/"))))
        except AsarError:
            # an ordering file is a hint; unusable lines are ignored
            continue
    return out


def _mark_unpacked(
    root: DirectoryNode,
    unpack: Optional[UnpackPattern],
    unpack_dir: Optional[UnpackPattern],
) -> None:
    unpacked_dirs = set()
    for path, node in depth_first(root):
        parent = path.rpartition("/")[0]
        inherited = parent in unpacked_dirs
        if isinstance(node, DirectoryNode):
            if inherited or (unpack_dir is not None and unpack_dir.covers_dir(path)):
                node.unpacked = True
                unpacked_dirs.add(path)
        elif isinstance(node, FileNode):
            if inherited or (unpack is not None and unpack.matches(path, match_base=True)):
                node.unpacked = True


def pack(source_dir: str, options: Optional[CreateOptions] = None) -> PackResult:
    """Scan ``source_dir`` and lay its files out into a data section.

    Packed files receive offsets equal to the running total of the sizes
    before them, in depth-first order unless an ordering file says
    otherwise. Unpacked files carry no offset and no bytes.
    """
    options = options or CreateOptions()
    unpack = UnpackPattern(options.unpack) if options.unpack else None
    unpack_dir = UnpackPattern(options.unpack_dir) if options.unpack_dir else None

    scanned = from_filesystem(source_dir, include=options.include, exclude_hidden=options.exclude_hidden)
    root = scanned.root
    _mark_unpacked(root, unpack, unpack_dir)

    files: Dict[str, FileNode] = {}
    unpacked_nodes: Dict[str, FileNode] = {}
    for path, node in depth_first(root):
        if not isinstance(node, FileNode):
            continue
        if node.unpacked:
            unpacked_nodes[path] = node
        else:
            files[path] = node

    layout = list(files)
    coverage = None
    if options.ordering:
        placed: List[str] = []
        seen = set()
        for path in _read_ordering(options.ordering):
            if path in files and path not in seen:
                placed.append(path)
                seen.add(path)
        coverage = (len(placed) / len(layout)) if layout else 1.0
        layout = placed + [p for p in layout if p not in seen]

    data = bytearray()
    for path in layout:
        node = files[path]
        src = scanned.sources[path]
        if node.size > MAX_PACKED_FILE_SIZE:
            raise FileTooLargeError(path, node.size, MAX_PACKED_FILE_SIZE)
        try:
            with open(src, "rb") as fh:
                content = fh.read()
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read {src}: {exc}") from exc
        if len(content) > MAX_PACKED_FILE_SIZE:
            raise FileTooLargeError(path, len(content), MAX_PACKED_FILE_SIZE)
        node.size = len(content)
        node.offset = len(data)
        node.integrity = bytes_integrity(content)
        data += content

    unpacked_files: List[Tuple[str, str]] = []
    for path, node in unpacked_nodes.items():
        src = scanned.sources[path]
        try:
            node.integrity = file_integrity(src)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read {src}: {exc}") from exc
        unpacked_files.append((path, src))

    return PackResult(
        tree=root,
        data=bytes(data),
        unpacked_files=unpacked_files,
        source_dir=scanned.source_dir,
        ordering_coverage=coverage,
    )


def unpacked_dir_for(archive_path: str) -> str:
    return str(archive_path) + UNPACKED_SUFFIX


def write_archive(result: PackResult, dest: str) -> str:
    """Write ``result`` to ``dest`` plus its ``.unpacked`` companion directory.

    Returns the absolute archive path.
    """
    if not dest:
        raise InvalidArgError("Destination archive path must not be empty")
    out = os.path.abspath(dest)
    try:
        os.makedirs(os.path.dirname(out) or ".", exist_ok=True)
        with open(out, "wb") as fh:
            fh.write(result.header_bytes())
            fh.write(result.data)
        unpacked_root = unpacked_dir_for(out)
        for path, src in result.unpacked_files:
            target = os.path.join(unpacked_root, *path.split("/"))
            os.makedirs(os.path.dirname(target), exist_ok=True)
            shutil.copy(src, target)
    except OSError as exc:
        raise ArchiveIOError(f"Cannot write archive {out}: {exc}") from exc
    return out


def create_package(source_dir: str, dest: str, options: Optional[CreateOptions] = None) -> PackResult:
    """Pack ``source_dir`` into the archive file ``dest``."""
    result = pack(source_dir, options)
    write_archive(result, dest)
    return result

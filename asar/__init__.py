"""
asar — reader and writer for the asar packed-archive format.

An asar archive is a directory tree stored as one file:

- A little-endian length-prefix framing announcing the header size.
- A JSON header describing directories, files and symbolic links.
- A data section holding the concatenated bytes of every packed file.

Files matching unpack rules are left out of the data section and stored
verbatim in a sibling ``<archive>.unpacked`` directory instead. Every file
carries a SHA-256 integrity record (whole-file hash plus 4 MiB blocks).
"""

from __future__ import annotations

from typing import List, Optional

from .errors import AsarError, Status
from .extract import ExtractSummary
from .header import RawHeader
from .node import DirectoryNode, FileNode, Integrity, LinkNode, Node
from .reader import ArchiveReader, ListOptions
from .writer import CreateOptions, PackResult
from . import writer as _writer

__version__ = "0.1"

__all__ = [
    "ArchiveReader",
    "AsarError",
    "CreateOptions",
    "DirectoryNode",
    "ExtractSummary",
    "FileNode",
    "Integrity",
    "LinkNode",
    "ListOptions",
    "Node",
    "PackResult",
    "RawHeader",
    "Status",
    "create_package",
    "extract_all",
    "extract_file",
    "get_raw_header",
    "list_package",
    "stat_file",
]


def list_package(archive: str, options: Optional[ListOptions] = None) -> List[str]:
    """Return every path in ``archive`` in depth-first order, root excluded."""
    with ArchiveReader(archive) as r:
        return r.list(options)


def extract_all(archive: str, dest_dir: str) -> ExtractSummary:
    with ArchiveReader(archive) as r:
        return r.extract_all(dest_dir)


def create_package(source_dir: str, dest_archive: str, options: Optional[CreateOptions] = None) -> PackResult:
    return _writer.create_package(source_dir, dest_archive, options)


def extract_file(archive: str, path: str) -> bytes:
    """Return the contents of one file, following links."""
    with ArchiveReader(archive) as r:
        return r.read_file(path)


def stat_file(archive: str, path: str, follow_links: bool = True) -> Node:
    with ArchiveReader(archive) as r:
        return r.stat(path, follow_links=follow_links)


def get_raw_header(archive: str) -> RawHeader:
    with ArchiveReader(archive) as r:
        return r.raw

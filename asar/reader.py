from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from . import header
from .constants import UNPACKED_SUFFIX
from .errors import ArchiveIOError, ExpectFileNodeError, InvalidArgError
from .extract import ExtractSummary, Reporter, extract, packed_bytes, write_file
from .hashutil import verify_integrity
from .header import RawHeader
from .node import DirectoryNode, FileNode, Node
from .pathutil import resolve, resolve_with_path
from .tree import depth_first, list_paths


@dataclass
class ListOptions:
    # prefix every path with its pack state ("pack   : " / "unpack : ")
    is_pack: bool = False


class ArchiveReader:
    """Read access to one archive file.

    The whole file is loaded and its header decoded on open(); every other
    call works on that in-memory image.
    """

    def __init__(self, path: str):
        if not path:
            raise InvalidArgError("Archive path must not be empty")
        self.path = str(path)
        self.unpacked_dir = self.path + UNPACKED_SUFFIX
        self.raw: Optional[RawHeader] = None
        self.data: bytes = b""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.raw is not None:
            return
        try:
            with open(self.path, "rb") as f:
                buf = f.read()
        except OSError as exc:
            raise ArchiveIOError(f"Cannot read archive {self.path}: {exc}") from exc
        self.raw = header.decode(buf)
        self.data = buf[self.raw.data_offset :]

    def close(self):
        self.raw = None
        self.data = b""

    @property
    def root(self) -> DirectoryNode:
        if self.raw is None:
            raise RuntimeError("Archive not open")
        return self.raw.root

    def list(self, options: Optional[ListOptions] = None) -> List[str]:
        options = options or ListOptions()
        return list_paths(self.root, is_pack=options.is_pack)

    def stat(self, path: str, *, follow_links: bool = True) -> Node:
        return resolve(self.root, path, follow_links=follow_links)

    def read_file(self, path: str) -> bytes:
        """Return the contents of the file at ``path``, following links."""
        node, real = resolve_with_path(self.root, path)
        if not isinstance(node, FileNode):
            raise ExpectFileNodeError(real or path)
        if node.unpacked:
            src = os.path.join(self.unpacked_dir, *real.split("/"))
            try:
                with open(src, "rb") as f:
                    return f.read()
            except OSError as exc:
                raise ArchiveIOError(f"Cannot read unpacked file {src}: {exc}") from exc
        return packed_bytes(node, self.data, real)

    def extract_file(self, path: str, dest: str) -> str:
        """Write the file at ``path`` to the filesystem path ``dest``."""
        node, real = resolve_with_path(self.root, path)
        if not isinstance(node, FileNode):
            raise ExpectFileNodeError(real or path)
        try:
            os.makedirs(os.path.dirname(os.path.abspath(dest)), exist_ok=True)
            write_file(node, self.data, dest, real, self.unpacked_dir)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot write {dest}: {exc}") from exc
        return dest

    def extract_all(self, dest_dir: str, report: Optional[Reporter] = None) -> ExtractSummary:
        if not dest_dir:
            raise InvalidArgError("Destination directory must not be empty")
        return extract(self.root, self.data, dest_dir, unpacked_dir=self.unpacked_dir, report=report)

    def verify(self) -> List[str]:
        """Check every file against its recorded integrity.

        Returns the paths whose contents do not match; files without an
        integrity record are not checked.
        """
        bad: List[str] = []
        for path, node in depth_first(self.root):
            if not isinstance(node, FileNode) or node.integrity is None:
                continue
            if not verify_integrity(self.read_file(path), node.integrity):
                bad.append(path)
        return bad

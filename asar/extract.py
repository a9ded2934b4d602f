from __future__ import annotations

import errno
import os
import shutil
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import ArchiveIOError, BadLinkError, UnknownOffsetError
from .node import DirectoryNode, FileNode, LinkNode
from .tree import depth_first


EXECUTABLE_MODE = 0o755

_UNSUPPORTED_SYMLINK_ERRNOS = {errno.EPERM, errno.EOPNOTSUPP}
if hasattr(errno, "ENOTSUP"):
    _UNSUPPORTED_SYMLINK_ERRNOS.add(errno.ENOTSUP)
# ERROR_PRIVILEGE_NOT_HELD
_UNSUPPORTED_WIN_ERRORS = {1314}


@dataclass
class ExtractSummary:
    dirs: int = 0
    files: int = 0
    links: int = 0
    skipped_links: int = 0
    bytes: int = 0


# Callback invoked as report(action, path) for every entry written; action is
# one of "dir", "file", "link" or "skip".
Reporter = Callable[[str, str], None]


def _is_within(path: str, root: str) -> bool:
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def _destination(dest_root: str, path: str) -> str:
    """Map an archive path to a filesystem path that stays inside dest_root.

    The parent directory is resolved through any links already on disk, so a
    pre-existing link cannot redirect the write elsewhere.
    """
    target = os.path.join(dest_root, *path.split("/"))
    parent = os.path.realpath(os.path.dirname(target))
    if not _is_within(parent, dest_root):
        raise BadLinkError(path, parent, "would be written outside the destination")
    return os.path.join(parent, os.path.basename(target))


def _clear(target: str, path: str) -> None:
    if os.path.isdir(target) and not os.path.islink(target):
        raise ArchiveIOError(f"{path}: cannot replace directory {target}")
    if os.path.lexists(target):
        os.remove(target)


def packed_bytes(node: FileNode, data: bytes, path: str) -> bytes:
    """Return the bytes of a packed file from the data section."""
    if node.offset is None or node.offset + node.size > len(data):
        raise UnknownOffsetError(path, f"bytes do not lie within the {len(data)}-byte data section")
    return data[node.offset : node.offset + node.size]


def write_file(node: FileNode, data: bytes, target: str, path: str, unpacked_dir: Optional[str]) -> None:
    """Write one file node to ``target``, replacing anything but a directory there."""
    _clear(target, path)
    if node.unpacked:
        if not unpacked_dir:
            raise ArchiveIOError(f"{path} is unpacked but no unpacked directory is known")
        shutil.copyfile(os.path.join(unpacked_dir, *path.split("/")), target)
    else:
        with open(target, "wb") as fh:
            fh.write(packed_bytes(node, data, path))
    if node.executable and os.name != "nt":
        os.chmod(target, EXECUTABLE_MODE)


def _make_link(node: LinkNode, target: str, path: str) -> bool:
    """Create a symlink; returns False when the platform cannot create one."""
    symlink_fn = getattr(os, "symlink", None)
    if symlink_fn is None:
        return False
    _clear(target, path)
    try:
        symlink_fn(node.link.replace("/", os.sep), target)
    except (NotImplementedError, AttributeError):
        return False
    except OSError as exc:
        if exc.errno in _UNSUPPORTED_SYMLINK_ERRNOS or getattr(exc, "winerror", None) in _UNSUPPORTED_WIN_ERRORS:
            return False
        raise
    return True


def extract(
    root: DirectoryNode,
    data: bytes,
    dest_dir: str,
    *,
    unpacked_dir: Optional[str] = None,
    report: Optional[Reporter] = None,
) -> ExtractSummary:
    """Materialize the tree under ``dest_dir``.

    Directories are created (existing ones are kept), files are written from
    the data section or copied from ``unpacked_dir``, links are recreated.
    Extraction stops at the first error; whatever was written stays on disk.
    """
    summary = ExtractSummary()
    try:
        os.makedirs(dest_dir, exist_ok=True)
        dest_root = os.path.realpath(dest_dir)
        for path, node in depth_first(root):
            target = _destination(dest_root, path)
            if isinstance(node, DirectoryNode):
                if os.path.islink(target) or (os.path.lexists(target) and not os.path.isdir(target)):
                    os.remove(target)
                os.makedirs(target, exist_ok=True)
                summary.dirs += 1
                action = "dir"
            elif isinstance(node, FileNode):
                write_file(node, data, target, path, unpacked_dir)
                summary.files += 1
                summary.bytes += node.size
                action = "file"
            elif isinstance(node, LinkNode):
                if _make_link(node, target, path):
                    summary.links += 1
                    action = "link"
                else:
                    summary.skipped_links += 1
                    action = "skip"
            else:
                raise TypeError(f"Not an archive node: {type(node).__name__}")
            if report is not None:
                report(action, path)
    except OSError as exc:
        raise ArchiveIOError(f"Extraction into {dest_dir} failed: {exc}") from exc
    return summary

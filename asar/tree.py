from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import ArchiveIOError, BadLinkError, GlobError, InvalidArgError
from .node import DirectoryNode, FileNode, LinkNode, Node, is_unpacked
from .pathutil import resolve, validate_name
from .pattern import UnpackPattern


def _sorted_children(node: DirectoryNode):
    return iter(sorted(node.files.items(), key=lambda kv: kv[0]))


def depth_first(root: DirectoryNode) -> Iterator[Tuple[str, Node]]:
    """Yield ``(path, node)`` for every entry below ``root``.

    Entries of a directory are visited in name order, each directory right
    before its contents. The root itself is not yielded. Every call returns a
    fresh generator.
    """
    stack = [((), _sorted_children(root))]
    while stack:
        parts, it = stack[-1]
        entry = next(it, None)
        if entry is None:
            stack.pop()
            continue
        name, node = entry
        child_parts = parts + (name,)
        yield "/".join(child_parts), node
        if isinstance(node, DirectoryNode):
            stack.append((child_parts, _sorted_children(node)))


def list_paths(root: DirectoryNode, *, is_pack: bool = False) -> List[str]:
    """Return every path below ``root`` in depth-first order.

    With ``is_pack`` each path is prefixed with its pack state
    (``"pack   : "`` or ``"unpack : "``).
    """
    out: List[str] = []
    for path, node in depth_first(root):
        if is_pack:
            state = "unpack" if is_unpacked(node) else "pack  "
            out.append(f"{state} : {path}")
        else:
            out.append(path)
    return out


def lookup(root: DirectoryNode, path: str, *, follow_links: bool = True) -> Node:
    return resolve(root, path, follow_links=follow_links)


@dataclass
class ScannedTree:
    root: DirectoryNode
    source_dir: str
    # archive path -> filesystem path, for every regular file
    sources: Dict[str, str] = field(default_factory=dict)


def _is_within(path: str, root: str) -> bool:
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def _link_target(fs_path: str, roots: Tuple[str, ...], parent_parts: Tuple[str, ...], rel: str) -> str:
    # the link's own target is recorded, rewritten relative to its directory;
    # absolute targets may name the source through either of its paths
    try:
        raw = os.readlink(fs_path)
    except OSError as exc:
        raise ArchiveIOError(f"Cannot read link {fs_path}: {exc}") from exc
    for root in roots:
        parent_dir = os.path.join(root, *parent_parts)
        target = os.path.normpath(os.path.join(parent_dir, raw))
        if _is_within(target, root):
            return os.path.relpath(target, parent_dir).replace(os.sep, "/")
    raise BadLinkError(rel, raw)


def _scan_dir(
    scanned: ScannedTree,
    fs_dir: str,
    real_root: str,
    parts: Tuple[str, ...],
    node: DirectoryNode,
    exclude_hidden: bool,
    include: Optional[UnpackPattern],
) -> None:
    try:
        with os.scandir(fs_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise ArchiveIOError(f"Cannot read directory {fs_dir}: {exc}") from exc
    for entry in entries:
        name = entry.name
        try:
            name.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise GlobError(f"File name is not valid UTF-8: {entry.path!r}") from exc
        if exclude_hidden and name.startswith("."):
            continue
        validate_name(name)
        child_parts = parts + (name,)
        rel = "/".join(child_parts)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            if not is_dir and include is not None and not include.matches(rel, match_base=True):
                continue
            if entry.is_symlink():
                node.files[name] = LinkNode(link=_link_target(entry.path, (scanned.source_dir, real_root), parts, rel))
            elif is_dir:
                child = DirectoryNode()
                node.files[name] = child
                _scan_dir(scanned, entry.path, real_root, child_parts, child, exclude_hidden, include)
            elif entry.is_file(follow_symlinks=False):
                st = entry.stat(follow_symlinks=False)
                executable = os.name != "nt" and bool(st.st_mode & stat.S_IXUSR)
                node.files[name] = FileNode(size=st.st_size, executable=executable)
                scanned.sources[rel] = entry.path
            # sockets, fifos and devices have no archive representation
        except OSError as exc:
            raise ArchiveIOError(f"Cannot stat {entry.path}: {exc}") from exc


def from_filesystem(
    root_dir: str, *, include: Optional[str] = None, exclude_hidden: bool = False
) -> ScannedTree:
    """Scan ``root_dir`` into a tree of directory, file and link nodes.

    Symlinked directories are recorded as links and not descended into. File
    sizes are the raw byte lengths at scan time; offsets are left unset.
    With ``include``, files and links whose path does not match the glob are
    skipped; directories are always kept.
    """
    if not root_dir:
        raise InvalidArgError("Source directory must not be empty")
    pattern = UnpackPattern(include) if include else None
    src = os.path.abspath(root_dir)
    try:
        st = os.stat(src)
    except OSError as exc:
        raise ArchiveIOError(f"Cannot stat {src}: {exc}") from exc
    if not stat.S_ISDIR(st.st_mode):
        raise InvalidArgError(f"Not a directory: {src}")
    scanned = ScannedTree(root=DirectoryNode(), source_dir=src)
    _scan_dir(scanned, src, os.path.realpath(src), (), scanned.root, exclude_hidden, pattern)
    return scanned

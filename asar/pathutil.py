from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from .constants import MAX_LINK_DEPTH
from .errors import (
    BadLinkError,
    ExpectDirNodeError,
    ExpectFileNodeError,
    InvalidArgError,
    NoSuchEntryError,
    RelativePathError,
)
from .node import DirectoryNode, FileNode, LinkNode, Node


_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def _is_absolute(p: str) -> bool:
    # p has already had backslashes converted, so UNC paths start with '//'
    return p.startswith("/") or bool(_DRIVE_RE.match(p))


def validate_name(name: str) -> str:
    """Check a single directory entry name.

    Rules:
    - Non-empty
    - No '/' or '\\' separators and no NUL
    - Not '.' or '..'
    """
    if not isinstance(name, str) or not name:
        raise RelativePathError("Entry name may not be empty")
    if name in (".", ".."):
        raise RelativePathError(f"Entry name may not be {name!r}")
    if "/" in name or "\\" in name or "\x00" in name:
        raise RelativePathError(f"Entry name may not contain separators: {name!r}")
    return name


def norm_path(path_spec: str) -> Tuple[str, ...]:
    """Split a caller-supplied archive path into validated components.

    Rules:
    - Convert backslashes to slashes
    - Reject absolute paths and drive letters
    - Remove empty and '.' segments
    - Reject '..' segments
    - Reject paths that are empty after normalization
    """
    if path_spec is None:
        raise InvalidArgError("Archive path must not be None")
    if not isinstance(path_spec, str):
        raise InvalidArgError(f"Archive path must be a string, got {type(path_spec).__name__}")
    p = path_spec.replace("\\", "/")
    if _is_absolute(p):
        raise RelativePathError(f"Absolute paths are not allowed: {path_spec!r}")
    parts: List[str] = []
    for q in p.split("/"):
        if q in ("", "."):
            continue
        if q == "..":
            raise RelativePathError(f"Path may not contain '..': {path_spec!r}")
        if "\x00" in q:
            raise RelativePathError(f"Path may not contain NUL: {path_spec!r}")
        parts.append(q)
    if not parts:
        raise RelativePathError(f"Empty path: {path_spec!r}")
    return tuple(parts)


def resolve_link_target(parent_parts: Sequence[str], target: str, link_path: str) -> Tuple[str, ...]:
    """Return the root-relative components a link target points at.

    ``parent_parts`` are the components of the directory holding the link.
    '..' is only accepted before the first named component. Targets that
    are empty or absolute, that climb above the root, or that use '..' after
    a name raise BadLinkError.
    """
    if not isinstance(target, str) or not target:
        raise BadLinkError(link_path, str(target), "has an empty target")
    t = target.replace("\\", "/")
    if _is_absolute(t):
        raise BadLinkError(link_path, target, "is absolute")
    parts = list(parent_parts)
    descended = False
    for q in t.split("/"):
        if q in ("", "."):
            continue
        if q == "..":
            if descended:
                raise BadLinkError(link_path, target, "climbs back out of a named component")
            if not parts:
                raise BadLinkError(link_path, target)
            parts.pop()
        else:
            if "\x00" in q:
                raise BadLinkError(link_path, target, "contains NUL")
            descended = True
            parts.append(q)
    return tuple(parts)


def _follow(root: DirectoryNode, link: LinkNode, parent: Sequence[str], link_path: str, hops: List[int]):
    # one counter per lookup: caps links followed in total, not just nesting
    hops[0] += 1
    if hops[0] > MAX_LINK_DEPTH:
        raise BadLinkError(link_path, link.link, f"exceeds {MAX_LINK_DEPTH} links followed in one lookup")
    target = resolve_link_target(parent, link.link, link_path)
    if not target:
        return root, ()
    return _walk(root, target, True, hops, "/".join(target))


def _walk(root: DirectoryNode, parts: Sequence[str], follow_last: bool, hops: List[int], spec: str):
    node: Node = root
    real: List[str] = []
    last_index = len(parts) - 1
    for i, name in enumerate(parts):
        if not isinstance(node, DirectoryNode):
            raise ExpectDirNodeError(spec)
        child = node.files.get(name)
        if child is None:
            raise NoSuchEntryError(spec)
        last = i == last_index
        if isinstance(child, LinkNode) and (follow_last or not last):
            link_path = "/".join(real + [name])
            try:
                child, target = _follow(root, child, real, link_path, hops)
            except NoSuchEntryError:
                if last:
                    raise NoSuchEntryError(spec) from None
                raise ExpectDirNodeError(spec) from None
            real = list(target)
        else:
            real.append(name)
        if not last and not isinstance(child, DirectoryNode):
            raise ExpectDirNodeError(spec)
        node = child
    return node, tuple(real)


def resolve(root: DirectoryNode, path_spec: str, *, follow_links: bool = True) -> Node:
    """Map ``path_spec`` to a node of the tree rooted at ``root``.

    Links met before the last component are always followed; the last one
    only when ``follow_links`` is set.
    """
    parts = norm_path(path_spec)
    node, _real = _walk(root, parts, follow_links, [0], "/".join(parts))
    return node


def resolve_with_path(root: DirectoryNode, path_spec: str, *, follow_links: bool = True) -> Tuple[Node, str]:
    """Like resolve() but also return the link-free path of the node."""
    parts = norm_path(path_spec)
    node, real = _walk(root, parts, follow_links, [0], "/".join(parts))
    return node, "/".join(real)


def resolve_file(root: DirectoryNode, path_spec: str) -> FileNode:
    node = resolve(root, path_spec)
    if not isinstance(node, FileNode):
        raise ExpectFileNodeError("/".join(norm_path(path_spec)))
    return node

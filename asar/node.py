from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .constants import INTEGRITY_ALGORITHM


@dataclass
class Integrity:
    hash: str
    block_size: int
    blocks: List[str] = field(default_factory=list)
    algorithm: str = INTEGRITY_ALGORITHM


@dataclass
class FileNode:
    size: int
    offset: Optional[int] = None
    executable: bool = False
    unpacked: bool = False
    integrity: Optional[Integrity] = None


@dataclass
class LinkNode:
    # '/'-separated, relative to the directory holding the link
    link: str


@dataclass
class DirectoryNode:
    files: Dict[str, "Node"] = field(default_factory=dict)
    unpacked: bool = False


Node = Union[DirectoryNode, FileNode, LinkNode]


def is_unpacked(node: Node) -> bool:
    if isinstance(node, (DirectoryNode, FileNode)):
        return node.unpacked
    return False

"""
asar header codec.

The header is a JSON document wrapped in Chromium pickle framing (see
pickle.py). Node shapes, keys in the order they are written:

- file:      {"size": int, "offset": "decimal string", "unpacked": true,
              "executable": true, "integrity": {...}}
- directory: {"unpacked": true, "files": {name: node, ...}}
- link:      {"link": "target relative to the containing directory"}

Optional boolean flags are only written when true; "offset" is absent for
unpacked files. Directory entries are written sorted by name so that the
same tree always encodes to the same bytes.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from . import pickle
from .constants import INTEGRITY_ALGORITHM, MAX_SAFE_INTEGER, SIZE_PICKLE_LEN
from .errors import (
    FileTooLargeError,
    HeaderSchemaError,
    InvalidHeaderError,
    ParseIntError,
    UnknownOffsetError,
)
from .node import DirectoryNode, FileNode, Integrity, LinkNode, Node
from .pathutil import resolve_link_target, validate_name


_DECIMAL_RE = re.compile(r"[0-9]+")
# 2**53 - 1 has 16 digits; longer strings cannot be in bounds
_MAX_OFFSET_DIGITS = 16


def _unique_object(pairs):
    obj: Dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise InvalidHeaderError(f"Duplicate key {key!r} in header")
        obj[key] = value
    return obj


@dataclass
class RawHeader:
    json: str
    root: DirectoryNode
    header_size: int

    @property
    def data_offset(self) -> int:
        return SIZE_PICKLE_LEN + self.header_size


def _display(parts: Sequence[str]) -> str:
    return "/".join(parts) or "<root>"


def _expect_bool(obj: Dict[str, Any], key: str, parts: Sequence[str]) -> bool:
    value = obj.get(key, False)
    if not isinstance(value, bool):
        raise HeaderSchemaError(f"{_display(parts)}: '{key}' must be a boolean")
    return value


def _expect_uint(value: Any, key: str, parts: Sequence[str]) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise HeaderSchemaError(f"{_display(parts)}: '{key}' must be a non-negative integer")
    return value


def _parse_offset(value: Any, parts: Sequence[str]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        if not _DECIMAL_RE.fullmatch(value):
            raise ParseIntError(f"{_display(parts)}: invalid offset {value!r}")
        if len(value.lstrip("0")) > _MAX_OFFSET_DIGITS:
            raise ParseIntError(f"{_display(parts)}: offset has {len(value)} digits")
        return int(value, 10)
    if isinstance(value, bool):
        raise HeaderSchemaError(f"{_display(parts)}: 'offset' must be a string")
    if isinstance(value, int):
        if value < 0:
            raise ParseIntError(f"{_display(parts)}: invalid offset {value!r}")
        return value
    raise HeaderSchemaError(f"{_display(parts)}: 'offset' must be a string")


def _decode_integrity(obj: Any, parts: Sequence[str]) -> Optional[Integrity]:
    if obj is None:
        return None
    if not isinstance(obj, dict):
        raise HeaderSchemaError(f"{_display(parts)}: 'integrity' must be an object")
    algorithm = obj.get("algorithm")
    if algorithm != INTEGRITY_ALGORITHM:
        raise HeaderSchemaError(f"{_display(parts)}: unsupported integrity algorithm {algorithm!r}")
    digest = obj.get("hash")
    blocks = obj.get("blocks")
    if not isinstance(digest, str):
        raise HeaderSchemaError(f"{_display(parts)}: integrity 'hash' must be a string")
    if not isinstance(blocks, list) or not all(isinstance(b, str) for b in blocks):
        raise HeaderSchemaError(f"{_display(parts)}: integrity 'blocks' must be a list of strings")
    block_size = _expect_uint(obj.get("blockSize"), "blockSize", parts)
    if block_size == 0:
        raise HeaderSchemaError(f"{_display(parts)}: integrity 'blockSize' must be positive")
    return Integrity(hash=digest, block_size=block_size, blocks=list(blocks), algorithm=algorithm)


def _decode_file(obj: Dict[str, Any], parts: Sequence[str], data_size: Optional[int]) -> FileNode:
    size = _expect_uint(obj.get("size"), "size", parts)
    if size > MAX_SAFE_INTEGER:
        raise FileTooLargeError(_display(parts), size, MAX_SAFE_INTEGER)
    node = FileNode(
        size=size,
        offset=_parse_offset(obj.get("offset"), parts),
        executable=_expect_bool(obj, "executable", parts),
        unpacked=_expect_bool(obj, "unpacked", parts),
        integrity=_decode_integrity(obj.get("integrity"), parts),
    )
    if not node.unpacked:
        if node.offset is None:
            raise UnknownOffsetError(_display(parts), "packed file has no offset")
        if data_size is not None and node.offset + node.size > data_size:
            raise UnknownOffsetError(
                _display(parts),
                f"bytes {node.offset}..{node.offset + node.size} lie outside the "
                f"{data_size}-byte data section",
            )
    return node


def _decode_node(obj: Any, parts: Sequence[str], data_size: Optional[int]) -> Node:
    if not isinstance(obj, dict):
        raise HeaderSchemaError(f"{_display(parts)}: node must be an object")
    if "size" in obj:
        return _decode_file(obj, parts, data_size)
    if "files" in obj:
        files = obj["files"]
        if not isinstance(files, dict):
            raise HeaderSchemaError(f"{_display(parts)}: 'files' must be an object")
        children: Dict[str, Node] = {}
        for name, child in files.items():
            validate_name(name)
            children[name] = _decode_node(child, list(parts) + [name], data_size)
        return DirectoryNode(files=children, unpacked=_expect_bool(obj, "unpacked", parts))
    if "link" in obj:
        link = obj["link"]
        if not isinstance(link, str):
            raise HeaderSchemaError(f"{_display(parts)}: 'link' must be a string")
        resolve_link_target(parts[:-1], link, _display(parts))
        return LinkNode(link=link)
    raise HeaderSchemaError(f"{_display(parts)}: unrecognized node kind (keys: {sorted(obj)})")


def decode_tree(document: str, data_size: Optional[int] = None) -> DirectoryNode:
    """Parse a header JSON document into a tree.

    Args:
        document: The JSON text carried by the header pickle.
        data_size: Length of the data section; when given, packed file
            extents are bounds-checked against it.
    """
    try:
        obj = json.loads(document, object_pairs_hook=_unique_object)
    except ValueError as exc:
        raise InvalidHeaderError(f"Header JSON is malformed: {exc}") from exc
    except RecursionError as exc:
        raise InvalidHeaderError("Header JSON is nested too deeply") from exc
    if not isinstance(obj, dict) or "files" not in obj or "size" in obj:
        raise HeaderSchemaError("Header root must be a directory")
    try:
        root = _decode_node(obj, [], data_size)
    except RecursionError as exc:
        raise InvalidHeaderError("Header tree is nested too deeply") from exc
    assert isinstance(root, DirectoryNode)
    return root


def decode(buf: bytes) -> RawHeader:
    """Decode the framing and header of a complete archive image."""
    document, header_size = pickle.split_archive(buf)
    data_size = len(buf) - SIZE_PICKLE_LEN - header_size
    root = decode_tree(document, data_size)
    return RawHeader(json=document, root=root, header_size=header_size)


def _encode_integrity(integrity: Integrity) -> Dict[str, Any]:
    return {
        "algorithm": integrity.algorithm,
        "hash": integrity.hash,
        "blockSize": integrity.block_size,
        "blocks": list(integrity.blocks),
    }


def encode_node(node: Node) -> Dict[str, Any]:
    if isinstance(node, FileNode):
        out: Dict[str, Any] = {"size": node.size}
        if node.offset is not None and not node.unpacked:
            out["offset"] = str(node.offset)
        if node.unpacked:
            out["unpacked"] = True
        if node.executable:
            out["executable"] = True
        if node.integrity is not None:
            out["integrity"] = _encode_integrity(node.integrity)
        return out
    if isinstance(node, DirectoryNode):
        out = {}
        if node.unpacked:
            out["unpacked"] = True
        out["files"] = {name: encode_node(node.files[name]) for name in sorted(node.files)}
        return out
    if isinstance(node, LinkNode):
        return {"link": node.link}
    raise TypeError(f"Not an archive node: {type(node).__name__}")


def encode_json(root: DirectoryNode) -> str:
    return json.dumps(encode_node(root), separators=(",", ":"), ensure_ascii=False)


def encode(root: DirectoryNode) -> bytes:
    """Return framing + header bytes; the data section follows directly."""
    header = pickle.pack_string(encode_json(root))
    return pickle.pack_size(len(header)) + header

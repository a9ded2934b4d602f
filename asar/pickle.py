"""
Chromium pickle framing used by asar headers.

A pickle is a u32 little-endian payload size followed by the payload, with
every field padded to a 4-byte boundary. An archive starts with two of them:

- size pickle: payload is a single u32, the byte length of the header pickle
- header pickle: payload is an i32 string length followed by the UTF-8 JSON
  document and zero padding

Only the two shapes asar needs are implemented.
"""

from __future__ import annotations

import struct
from typing import Tuple

from .constants import ALIGNMENT, PICKLE_UINT32_SIZE, SIZE_PICKLE_LEN
from .errors import InvalidHeaderError, InvalidHeaderSizeError


_SIZE_PICKLE = struct.Struct("<II")  # payload_size (=4), header_size
_STRING_PREFIX = struct.Struct("<Ii")  # payload_size, string length


def align_int(i: int, alignment: int = ALIGNMENT) -> int:
    """Round ``i`` up to the next multiple of ``alignment``."""
    return i + (alignment - (i % alignment)) % alignment


def pack_size(header_size: int) -> bytes:
    return _SIZE_PICKLE.pack(PICKLE_UINT32_SIZE, header_size)


def pack_string(text: str) -> bytes:
    raw = text.encode("utf-8")
    padded = align_int(len(raw))
    payload_size = PICKLE_UINT32_SIZE + padded
    return _STRING_PREFIX.pack(payload_size, len(raw)) + raw + b"\x00" * (padded - len(raw))


def read_size(buf: bytes) -> int:
    """Return the header size announced by the size pickle at the start of ``buf``.

    Raises:
        InvalidHeaderSizeError: when the framing is short, malformed, or
            announces more bytes than ``buf`` holds.
    """
    if len(buf) < SIZE_PICKLE_LEN:
        raise InvalidHeaderSizeError(f"Archive too short for size pickle ({len(buf)} bytes)")
    payload_size, header_size = _SIZE_PICKLE.unpack_from(buf, 0)
    if payload_size != PICKLE_UINT32_SIZE:
        raise InvalidHeaderSizeError(f"Unexpected size pickle payload length {payload_size}")
    if header_size < _STRING_PREFIX.size or header_size % ALIGNMENT != 0:
        raise InvalidHeaderSizeError(f"Malformed header size {header_size}")
    if header_size > len(buf) - SIZE_PICKLE_LEN:
        raise InvalidHeaderSizeError(
            f"Header size {header_size} exceeds remaining {len(buf) - SIZE_PICKLE_LEN} bytes"
        )
    return header_size


def read_string(buf: bytes) -> str:
    """Decode the string carried by a header pickle occupying all of ``buf``."""
    if len(buf) < _STRING_PREFIX.size:
        raise InvalidHeaderError("Header pickle truncated")
    payload_size, length = _STRING_PREFIX.unpack_from(buf, 0)
    if payload_size != len(buf) - PICKLE_UINT32_SIZE:
        raise InvalidHeaderError(
            f"Header pickle payload size {payload_size} does not match header size {len(buf)}"
        )
    if length < 0 or length > len(buf) - _STRING_PREFIX.size:
        raise InvalidHeaderError(f"Header string length {length} out of range")
    if align_int(length) + PICKLE_UINT32_SIZE != payload_size:
        raise InvalidHeaderError("Header padding inconsistent with string length")
    raw = buf[_STRING_PREFIX.size : _STRING_PREFIX.size + length]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidHeaderError(f"Header is not valid UTF-8: {exc}") from exc


def split_archive(buf: bytes) -> Tuple[str, int]:
    """Return ``(header_json, header_size)``; data starts at ``8 + header_size``."""
    header_size = read_size(buf)
    header = buf[SIZE_PICKLE_LEN : SIZE_PICKLE_LEN + header_size]
    return read_string(header), header_size

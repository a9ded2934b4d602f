from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Status codes handed across the caller boundary (CLI exit codes)."""

    SUCCESS = 0
    INVALID_ARG = 1
    INVALID_HEADER_SIZE = 2
    INVALID_HEADER = 3
    EXPECT_FILE_NODE = 4
    EXPECT_DIR_NODE = 5
    FILE_TOO_LARGE = 6
    UNKNOWN_OFFSET = 7
    NO_SUCH_ENTRY = 8
    RELATIVE_PATH = 9
    BAD_LINK = 10
    PATTERN = 11
    GLOB = 12
    PARSE_INT = 13
    IO = 14
    JSON = 15


class AsarError(Exception):
    """Base class for asar-specific errors."""

    status = Status.INVALID_ARG


class InvalidArgError(AsarError):
    status = Status.INVALID_ARG


# Header/framing related
class InvalidHeaderSizeError(AsarError):
    status = Status.INVALID_HEADER_SIZE

    def __init__(self, message: str = "Unable to read header size"):
        super().__init__(message)


class InvalidHeaderError(AsarError):
    status = Status.INVALID_HEADER

    def __init__(self, message: str = "Unable to read header"):
        super().__init__(message)


class HeaderSchemaError(AsarError):
    status = Status.JSON


class ParseIntError(AsarError):
    status = Status.PARSE_INT


# Node kind mismatches
class ExpectFileNodeError(AsarError):
    status = Status.EXPECT_FILE_NODE

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'"{path}" is not a file')


class ExpectDirNodeError(AsarError):
    status = Status.EXPECT_DIR_NODE

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'"{path}" is not a directory')


# Bounds/consistency
class FileTooLargeError(AsarError):
    status = Status.FILE_TOO_LARGE

    def __init__(self, path: str, size: int, limit: int):
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"{path}: file size {size} exceeds the limit of {limit} bytes")


class UnknownOffsetError(AsarError):
    status = Status.UNKNOWN_OFFSET

    def __init__(self, path: str, detail: str = "offset is missing or out of range"):
        self.path = path
        super().__init__(f"{path}: {detail}")


# Path resolution
class NoSuchEntryError(AsarError):
    status = Status.NO_SUCH_ENTRY

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'"{path}" was not found in this archive')


class RelativePathError(AsarError):
    status = Status.RELATIVE_PATH


class BadLinkError(AsarError):
    status = Status.BAD_LINK

    def __init__(self, path: str, target: str, reason: str = "links out of the package"):
        self.path = path
        self.target = target
        super().__init__(f'{path}: link "{target}" {reason}')


# Patterns
class PatternError(AsarError):
    status = Status.PATTERN


class GlobError(AsarError):
    status = Status.GLOB


class ArchiveIOError(AsarError):
    """Filesystem failure; the originating OSError is kept as __cause__."""

    status = Status.IO

from __future__ import annotations

import hashlib

from .constants import BUFFER_SIZE, INTEGRITY_BLOCK_SIZE
from .node import Integrity


class IntegrityHasher:
    """Incremental SHA-256 over a whole file and over fixed-size blocks.

    The trailing (possibly empty) block is always recorded, so an empty file
    has exactly one block hash.
    """

    def __init__(self, block_size: int = INTEGRITY_BLOCK_SIZE):
        self.block_size = block_size
        self._file_hash = hashlib.sha256()
        self._block_hash = hashlib.sha256()
        self._block_fill = 0
        self._blocks = []

    def update(self, chunk: bytes) -> None:
        self._file_hash.update(chunk)
        view = memoryview(chunk)
        while view:
            take = min(self.block_size - self._block_fill, len(view))
            self._block_hash.update(view[:take])
            self._block_fill += take
            view = view[take:]
            if self._block_fill == self.block_size:
                self._blocks.append(self._block_hash.hexdigest())
                self._block_hash = hashlib.sha256()
                self._block_fill = 0

    def finish(self) -> Integrity:
        blocks = self._blocks + [self._block_hash.hexdigest()]
        return Integrity(hash=self._file_hash.hexdigest(), block_size=self.block_size, blocks=blocks)


def bytes_integrity(data: bytes, block_size: int = INTEGRITY_BLOCK_SIZE) -> Integrity:
    hasher = IntegrityHasher(block_size)
    hasher.update(data)
    return hasher.finish()


def file_integrity(path: str, block_size: int = INTEGRITY_BLOCK_SIZE) -> Integrity:
    hasher = IntegrityHasher(block_size)
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.finish()


def verify_integrity(data: bytes, integrity: Integrity) -> bool:
    """Check ``data`` against a recorded integrity entry."""
    if integrity.block_size <= 0:
        return False
    calc = bytes_integrity(data, integrity.block_size)
    return calc.hash == integrity.hash and calc.blocks == integrity.blocks

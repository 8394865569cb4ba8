"""A disk held in memory as a sequence of blocks."""

from __future__ import annotations

import os

from sixfs.errors import KernelPanic
from sixfs.layout import BSIZE


class MemoryDisk:
    """Block device backed by an in-memory image."""

    def __init__(self, image: bytes = b"", dev: int = 1) -> None:
        self._image = bytearray(image)
        self.dev = dev

    @classmethod
    def from_file(cls, path: str | os.PathLike, dev: int = 1) -> MemoryDisk:
        with open(path, "rb") as fh:
            return cls(fh.read(), dev)

    @property
    def nblocks(self) -> int:
        return len(self._image) // BSIZE

    def _span(self, blockno: int) -> slice:
        if not 0 <= blockno < self.nblocks:
            raise KernelPanic("iderw: block out of range")
        start = blockno * BSIZE
        return slice(start, start + BSIZE)

    def read_block(self, blockno: int) -> bytes:
        return bytes(self._image[self._span(blockno)])

    def write_block(self, blockno: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"block data must be {BSIZE} bytes, got {len(data)}")
        self._image[self._span(blockno)] = data

    def to_bytes(self) -> bytes:
        return bytes(self._image)

    def save(self, path: str | os.PathLike) -> None:
        with open(path, "wb") as fh:
            fh.write(self._image)
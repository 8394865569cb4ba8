"""Buffer cache: in-memory copies of disk blocks with LRU recycling."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sixfs.disk import MemoryDisk
from sixfs.errors import KernelPanic
from sixfs.layout import B_DIRTY, B_VALID, BSIZE


@dataclass(eq=False)
class Buf:
    """A cached disk block, usable by one holder at a time."""

    dev: int = 0
    blockno: int = 0
    flags: int = 0
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _holder: int | None = field(default=None, repr=False)

    def holding(self) -> bool:
        """True if the calling thread holds this buffer."""
        return self._holder == threading.get_ident()

    def _acquire(self) -> None:
        self._lock.acquire()
        self._holder = threading.get_ident()

    def _release(self) -> None:
        self._holder = None
        self._lock.release()


class BufferCache:
    """A fixed set of buffers kept in most-recently-used order."""

    def __init__(self, disk: MemoryDisk, nbuf: int) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        self._lock = threading.Lock()
        # Front of the list is the most recently used buffer.
        self._mru = [Buf() for _ in range(nbuf)]
        self._mru.reverse()

    def _lookup(self, dev: int, blockno: int) -> Buf:
        with self._lock:
            for b in self._mru:
                if b.dev == dev and b.blockno == blockno:
                    b.refcnt += 1
                    return b
            # Even with refcnt 0, a dirty buffer holds uncommitted log data.
            for b in reversed(self._mru):
                if b.refcnt == 0 and not b.flags & B_DIRTY:
                    b.dev = dev
                    b.blockno = blockno
                    b.flags = 0
                    b.refcnt = 1
                    return b
        raise KernelPanic("bget: no buffers")

    def _bget(self, dev: int, blockno: int) -> Buf:
        b = self._lookup(dev, blockno)
        b._acquire()
        return b

    def _sync(self, b: Buf) -> None:
        if not b.holding():
            raise KernelPanic("iderw: buf not locked")
        if b.flags & (B_VALID | B_DIRTY) == B_VALID:
            raise KernelPanic("iderw: nothing to do")
        if b.dev != self.disk.dev:
            raise KernelPanic(f"iderw: request not for disk {self.disk.dev}")
        if b.flags & B_DIRTY:
            b.flags &= ~B_DIRTY
            self.disk.write_block(b.blockno, bytes(b.data))
        else:
            b.data[:] = self.disk.read_block(b.blockno)
        b.flags |= B_VALID

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a held buffer with the contents of the given block."""
        b = self._bget(dev, blockno)
        if not b.flags & B_VALID:
            self._sync(b)
        return b

    def bwrite(self, buf: Buf) -> None:
        """Write a held buffer's contents to disk."""
        if not buf.holding():
            raise KernelPanic("bwrite")
        buf.flags |= B_DIRTY
        self._sync(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a held buffer; when unused, it becomes the most recently used."""
        if not buf.holding():
            raise KernelPanic("brelse")
        buf._release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buf]:
        """Hold the buffer for a block for the duration of a with-block."""
        b = self.bread(dev, blockno)
        try:
            yield b
        finally:
            self.brelse(b)
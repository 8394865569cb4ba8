"""Write-ahead redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sixfs.bcache import Buf, BufferCache
from sixfs.errors import KernelPanic
from sixfs.layout import B_DIRTY, BSIZE, SuperBlock

_INT = struct.Struct("<i")


class Log:
    """Physical redo log.

    On disk the log is a header block (a count followed by home block
    numbers) and then one block per logged block, in header order.
    A transaction commits only when no file system operation is active.
    """

    def __init__(
        self,
        cache: BufferCache,
        dev: int,
        sb: SuperBlock,
        logsize: int = 30,
        maxopblocks: int = 10,
    ) -> None:
        if (1 + logsize) * _INT.size >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        if maxopblocks > logsize:
            raise ValueError("an operation may not need more blocks than the log holds")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._cond = threading.Condition()
        self.recover()

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _INT.unpack_from(buf.data, 0)
            if not 0 <= n <= self.logsize:
                raise KernelPanic("log: corrupt header")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _INT.size))

    def _write_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            n = len(self.blocks)
            _INT.pack_into(buf.data, 0, n)
            struct.pack_into(f"<{n}i", buf.data, _INT.size, *self.blocks)
            self.cache.bwrite(buf)

    def _install_trans(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, home in enumerate(self.blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as lbuf:
                with self.cache.block(self.dev, home) as dbuf:
                    dbuf.data[:] = lbuf.data
                    self.cache.bwrite(dbuf)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log."""
        for tail, home in enumerate(self.blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as to:
                with self.cache.block(self.dev, home) as src:
                    to.data[:] = src.data
                    self.cache.bwrite(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()  # the real commit point
            self._install_trans()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Mark the start of a file system operation, waiting for log space."""
        with self._cond:
            while (
                self.committing
                or len(self.blocks) + (self.outstanding + 1) * self.maxopblocks > self.logsize
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; the last one out commits."""
        do_commit = False
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise KernelPanic("log.committing")
            if self.outstanding == 0:
                do_commit = True
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run a with-block between begin_op and end_op."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buf) -> None:
        """Record a modified held buffer in the current transaction and pin it."""
        n = len(self.blocks)
        if n >= self.logsize or n >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.flags |= B_DIRTY
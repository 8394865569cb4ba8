"""Open files and pipes, shared through a fixed-size file table."""

from __future__ import annotations

import enum
import errno
import threading
from dataclasses import dataclass, field

from sixfs.errors import KernelPanic
from sixfs.fs import FileSystem, Inode
from sixfs.layout import BSIZE, Stat

PIPESIZE = 512


class Pipe:
    """A bounded byte channel with one read end and one write end."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        """Write all of data, waiting while the pipe is full."""
        with self._cond:
            for byte in data:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError(errno.EPIPE, "pipe read end closed")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to n bytes, waiting until data arrives or the write end closes."""
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            out = bytearray()
            while len(out) < n and self.nread != self.nwrite:
                out.append(self._data[self.nread % PIPESIZE])
                self.nread += 1
            self._cond.notify_all()
        return bytes(out)

    def close(self, writable: bool) -> None:
        """Close the write end if writable, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()


class FileKind(enum.Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file: a pipe end or an inode with an offset."""

    table: FileTable | None = field(default=None, repr=False)
    type: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0

    def _fs(self) -> FileSystem:
        if self.table is None:
            raise KernelPanic("file without table")
        return self.table.fs

    def read(self, n: int) -> bytes:
        if not self.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if self.type is FileKind.PIPE:
            return self.pipe.read(n)
        if self.type is FileKind.INODE:
            fs = self._fs()
            fs.ilock(self.ip)
            try:
                data = fs.readi(self.ip, self.off, n)
                self.off += len(data)
            finally:
                fs.iunlock(self.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, data: bytes) -> int:
        if not self.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if self.type is FileKind.PIPE:
            return self.pipe.write(data)
        if self.type is FileKind.INODE:
            fs = self._fs()
            # Keep each transaction within the log's per-operation budget.
            limit = ((self.table.maxopblocks - 1 - 1 - 2) // 2) * BSIZE
            n = len(data)
            i = 0
            while i < n:
                chunk = data[i:i + limit]
                with fs.log.transaction():
                    fs.ilock(self.ip)
                    try:
                        r = fs.writei(self.ip, chunk, self.off)
                        if r > 0:
                            self.off += r
                    finally:
                        fs.iunlock(self.ip)
                if r != len(chunk):
                    raise KernelPanic("short filewrite")
                i += r
            return n
        raise KernelPanic("filewrite")

    def stat(self) -> Stat:
        if self.type is not FileKind.INODE:
            raise OSError(errno.EINVAL, "not an inode file")
        fs = self._fs()
        fs.ilock(self.ip)
        try:
            return fs.stati(self.ip)
        finally:
            fs.iunlock(self.ip)


class FileTable:
    """Fixed pool of open-file structures."""

    def __init__(self, fs: FileSystem, nfile: int = 100, maxopblocks: int = 10) -> None:
        self.fs = fs
        self.maxopblocks = maxopblocks
        self._lock = threading.Lock()
        self._files = [File(table=self) for _ in range(nfile)]

    def alloc(self) -> File:
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: File) -> File:
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
            f.type = FileKind.NONE
            f.pipe = None
            f.ip = None
            f.off = 0
        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> File:
        f = self.alloc()
        f.type = FileKind.INODE
        f.ip = ip
        f.off = 0
        f.readable = readable
        f.writable = writable
        return f

    def pipe(self) -> tuple[File, File]:
        """Return (read end, write end) of a new pipe."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        p = Pipe()
        f0.type, f0.readable, f0.writable, f0.pipe = FileKind.PIPE, True, False, p
        f1.type, f1.readable, f1.writable, f1.pipe = FileKind.PIPE, False, True, p
        return f0, f1
"""Inodes, directories and path names on top of the log and buffer cache."""

from __future__ import annotations

import errno
import struct
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sixfs.bcache import Buf, BufferCache
from sixfs.disk import MemoryDisk
from sixfs.errors import KernelPanic
from sixfs.layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    Stat,
    SuperBlock,
    bblock,
    iblock,
)
from sixfs.log import Log

NBUF = 30
NINODE = 50
MAXOPBLOCKS = 10

_ADDR = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


def _name_bytes(name: str) -> bytes:
    return name.encode("utf-8", "surrogateescape").split(b"\0", 1)[0][:DIRSIZ]


def _truncate(name: str) -> str:
    return name.encode("utf-8", "surrogateescape")[:DIRSIZ].decode("utf-8", "surrogateescape")


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element: (name, rest without leading slashes), or None."""
    stripped = path.lstrip("/")
    if not stripped:
        return None
    elem, _, rest = stripped.partition("/")
    return _truncate(elem), rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two names over at most DIRSIZ bytes; negative, zero or positive."""
    a, b = _name_bytes(s), _name_bytes(t)
    return (a > b) - (a < b)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, with reference count and lock."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _holder: int | None = field(default=None, repr=False)

    def holding(self) -> bool:
        """True if the calling thread holds this inode's lock."""
        return self._holder == threading.get_ident()

    def _acquire(self) -> None:
        self._lock.acquire()
        self._holder = threading.get_ident()

    def _release(self) -> None:
        self._holder = None
        self._lock.release()


def _readsb(cache: BufferCache, dev: int) -> SuperBlock:
    with cache.block(dev, 1) as bp:
        return SuperBlock.from_bytes(bytes(bp.data))


def _dinode_offset(inum: int) -> int:
    return (inum % IPB) * DINODE_SIZE


class FileSystem:
    """Block allocation, inodes, directories and path lookup for one device."""

    def __init__(
        self,
        cache: BufferCache,
        log: Log,
        dev: int = 1,
        ninode: int = NINODE,
        devsw: Mapping[int, Any] | None = None,
    ) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devsw: dict[int, Any] = dict(devsw or {})
        self._lock = threading.Lock()
        self._inodes = [Inode() for _ in range(ninode)]
        self.sb = _readsb(cache, dev)

    @classmethod
    def open_image(cls, disk: MemoryDisk) -> FileSystem:
        """Mount the file system on a disk, recovering its log."""
        cache = BufferCache(disk, NBUF)
        sb = _readsb(cache, disk.dev)
        log = Log(cache, disk.dev, sb, sb.nlog, min(MAXOPBLOCKS, sb.nlog))
        return cls(cache, log, disk.dev, NINODE, {})

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self) -> int:
        size = self.sb.size
        for b in range(0, size, BPB):
            found = None
            with self.cache.block(self.dev, bblock(b, self.sb)) as bp:
                for bi in range(min(BPB, size - b)):
                    mask = 1 << (bi % 8)
                    if not bp.data[bi // 8] & mask:
                        bp.data[bi // 8] |= mask
                        self.log.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(self.dev, bblock(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not bp.data[bi // 8] & mask:
                raise KernelPanic("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def ialloc(self, type: int) -> Inode:
        """Allocate a free on-disk inode of the given type; return it referenced, unlocked."""
        for inum in range(1, self.sb.ninodes):
            allocated = False
            with self.cache.block(self.dev, iblock(inum, self.sb)) as bp:
                off = _dinode_offset(inum)
                din = DiskInode.from_bytes(bytes(bp.data[off:off + DINODE_SIZE]))
                if din.type == 0:
                    bp.data[off:off + DINODE_SIZE] = DiskInode(type=int(type)).to_bytes()
                    self.log.log_write(bp)
                    allocated = True
            if allocated:
                return self.iget(inum)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Write a modified in-memory inode back to disk."""
        with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
            off = _dinode_offset(ip.inum)
            din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            bp.data[off:off + DINODE_SIZE] = din.to_bytes()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Find or make the cache entry for an inode; neither locks nor reads it."""
        with self._lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise KernelPanic("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        with self._lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode | None) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        ip._acquire()
        if not ip.valid:
            with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
                off = _dinode_offset(ip.inum)
                din = DiskInode.from_bytes(bytes(bp.data[off:off + DINODE_SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Inode | None) -> None:
        if ip is None or not ip.holding() or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip._release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        ip._acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._lock:
                    r = ip.ref
                if r == 1:
                    self._itrunc(ip)
                    ip.type = 0
                    self.iupdate(ip)
                    ip.valid = False
        finally:
            ip._release()
        with self._lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if not ip.addrs[bn]:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if not ip.addrs[NDIRECT]:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                for addr in _INDIRECT.unpack_from(bp.data):
                    if addr:
                        self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode, op: str) -> Any:
        handler = None
        if ip.major >= 0:
            handler = getattr(self.devsw.get(ip.major), op, None)
        if handler is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at off; the caller holds the inode's lock."""
        if ip.type == FileType.DEV:
            return bytes(self._device(ip, "read")(ip, n))
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at offset {off} outside file of size {ip.size}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            addr = self._bmap(ip, pos // BSIZE)
            with self.cache.block(ip.dev, addr) as bp:
                start = pos % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start:start + m]
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write data at off, growing the file; the caller holds the inode's lock."""
        if ip.type == FileType.DEV:
            return self._device(ip, "write")(ip, data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at offset {off} outside file of size {ip.size}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write would exceed the maximum file size")
        tot = 0
        while tot < n:
            pos = off + tot
            addr = self._bmap(ip, pos // BSIZE)
            with self.cache.block(ip.dev, addr) as bp:
                start = pos % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start:start + m] = data[tot:tot + m]
                self.log.log_write(bp)
            tot += m
        if n > 0 and off + n > ip.size:
            ip.size = off + n
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find name in directory dp; return its inode and entry offset, or None."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlookup read")
            de = DirEntry.from_bytes(raw)
            if de.inum == 0:
                continue
            if namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to directory dp."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "name already present", name)
        off = 0
        while off < dp.size:
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlink read")
            if DirEntry.from_bytes(raw).inum == 0:
                break
            off += DIRENT_SIZE
        if self.writei(dp, DirEntry(inum, name).to_bytes(), off) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None) -> tuple[Inode, str]:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        rest = path
        while (step := skipelem(rest)) is not None:
            name, rest = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
            if parent and rest == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                raise FileNotFoundError(errno.ENOENT, "no such file or directory", path)
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError(errno.ENOENT, "path has no final element", path)
        return ip, ""

    def namei(self, path: str, cwd: Inode | None = None) -> Inode:
        """Look up the inode for a path; relative paths start at cwd, or the root."""
        return self._namex(path, False, cwd)[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str]:
        """Return the parent directory of a path and its final element."""
        return self._namex(path, True, cwd)
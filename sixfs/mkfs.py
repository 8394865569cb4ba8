"""Build a fresh file system image holding a set of files in its root directory."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable

from sixfs.layout import (
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    iblock,
)

FSSIZE = 1000
NINODES = 200
LOGSIZE = 30

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a disk image: boot, super block, log, inodes, bitmap, data."""

    def __init__(self, fssize: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE) -> None:
        self.fssize = fssize
        self.nbitmap = fssize // (BSIZE * 8) + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")
        self.sb = SuperBlock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._image = bytearray(fssize * BSIZE)
        self._wsect(1, self.sb.to_bytes().ljust(BSIZE, b"\0"))
        self.rootino = self.ialloc(FileType.DIR)
        if self.rootino != ROOTINO:
            raise AssertionError("root inode must be first")
        self.iappend(self.rootino, DirEntry(self.rootino, ".").to_bytes())
        self.iappend(self.rootino, DirEntry(self.rootino, "..").to_bytes())

    def _rsect(self, sec: int) -> bytearray:
        return bytearray(self._image[sec * BSIZE:(sec + 1) * BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        if not 0 <= sec < self.fssize:
            raise ValueError(f"sector {sec} outside image")
        self._image[sec * BSIZE:(sec + 1) * BSIZE] = data

    def _rinode(self, inum: int) -> DiskInode:
        off = (inum % IPB) * DINODE_SIZE
        return DiskInode.from_bytes(bytes(self._rsect(iblock(inum, self.sb))[off:off + DINODE_SIZE]))

    def _winode(self, inum: int, din: DiskInode) -> None:
        bn = iblock(inum, self.sb)
        buf = self._rsect(bn)
        off = (inum % IPB) * DINODE_SIZE
        buf[off:off + DINODE_SIZE] = din.to_bytes()
        self._wsect(bn, buf)

    def _next_block(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("image out of blocks")
        b = self.freeblock
        self.freeblock += 1
        return b

    def ialloc(self, type: int) -> int:
        if self.freeinode >= self.sb.ninodes:
            raise ValueError("image out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append data to the end of inode inum, allocating blocks as needed."""
        din = self._rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._next_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._next_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._next_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            buf = self._rsect(x)
            start = off - fbn * BSIZE
            buf[start:start + n1] = data[pos:pos + n1]
            self._wsect(x, buf)
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a file to the root directory; a leading underscore is dropped from the name."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.rootino, DirEntry(inum, name).to_bytes())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory size up, write the bitmap and return the image."""
        din = self._rinode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(self.rootino, din)
        used = self.freeblock
        if used >= BSIZE * 8:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        return bytes(self._image)


def build_image(
    files: Iterable[tuple[str, bytes]],
    fssize: int = FSSIZE,
    ninodes: int = NINODES,
    nlog: int = LOGSIZE,
) -> bytes:
    builder = ImageBuilder(fssize, ninodes, nlog)
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} inode blocks "
        f"{builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) blocks "
        f"{builder.nblocks} total {builder.fssize}"
    )
    for path in args[1:]:
        try:
            with open(path, "rb") as fh:
                data = fh.read()
            builder.add_file(path, data)
        except (OSError, ValueError) as exc:
            sys.stderr.write(f"{path}: {exc}\n")
            return 1
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    image = builder.finish()
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        with open(args[0], "wb") as fh:
            fh.write(image)
    except OSError as exc:
        sys.stderr.write(f"{args[0]}: {exc}\n")
        return 1
    return 0
"""User commands working on a file system image: cat, echo and ls."""

from __future__ import annotations

import shutil
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import BinaryIO, TextIO

from sixfs.disk import MemoryDisk
from sixfs.file import File, FileTable
from sixfs.fmt import format_user
from sixfs.fs import FileSystem
from sixfs.layout import DIRENT_SIZE, DIRSIZ, DirEntry, FileType, Stat

_CHUNK = 512
_PATHBUF = 512

_USAGE = (
    "usage: tools echo [args ...]\n"
    "       tools cat IMAGE [path ...]\n"
    "       tools ls IMAGE [path ...]\n"
)


@contextmanager
def _opened(fs: FileSystem, path: str) -> Iterator[File]:
    """Open a path read-only for the duration of a with-block."""
    table = FileTable(fs)
    with fs.log.transaction():
        ip = fs.namei(path)
    f = table.open_inode(ip, True, False)
    try:
        yield f
    finally:
        table.close(f)


def _chunks(f: File, size: int) -> Iterator[bytes]:
    while data := f.read(size):
        yield data


def _stat_path(fs: FileSystem, path: str) -> Stat:
    with fs.log.transaction():
        ip = fs.namei(path)
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlockput(ip)


def fmtname(path: str) -> str:
    """The final path element, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def cat(fs: FileSystem, paths: Iterable[str], out: BinaryIO) -> None:
    """Copy the named files, in order, to a binary stream.

    Stops with FileNotFoundError (or another OSError) at the first path
    that cannot be opened; files before it have already been copied.
    """
    for path in paths:
        with _opened(fs, path) as f:
            for data in _chunks(f, _CHUNK):
                out.write(data)


def echo(args: Iterable[str]) -> str:
    """The arguments separated by spaces and ended by a newline; nothing for no arguments."""
    words = list(args)
    if not words:
        return ""
    return " ".join(words) + "\n"


def _ls_line(name: str, st: Stat) -> str:
    return format_user("%s %d %d %d\n", fmtname(name), st.type, st.ino, st.size)


def ls(fs: FileSystem, path: str, out: TextIO) -> None:
    """List a file, or every entry of a directory, as 'name type inode size' lines."""
    with _opened(fs, path) as f:
        st = f.stat()
        if st.type == FileType.FILE:
            out.write(_ls_line(path, st))
        elif st.type == FileType.DIR:
            if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
                out.write("ls: path too long\n")
                return
            for raw in _chunks(f, DIRENT_SIZE):
                if len(raw) != DIRENT_SIZE:
                    break
                de = DirEntry.from_bytes(raw)
                if de.inum == 0:
                    continue
                child = f"{path}/{de.name}"
                try:
                    child_st = _stat_path(fs, child)
                except OSError:
                    out.write(f"ls: cannot stat {child}\n")
                    continue
                out.write(_ls_line(child, child_st))


def _mount(image: str) -> FileSystem:
    return FileSystem.open_image(MemoryDisk.from_file(image))


def _main_cat(args: list[str]) -> int:
    sys.stdout.flush()
    out = sys.stdout.buffer
    if len(args) < 2:
        shutil.copyfileobj(sys.stdin.buffer, out)
        out.flush()
        return 0
    fs = _mount(args[0])
    for path in args[1:]:
        try:
            cat(fs, [path], out)
        except OSError:
            out.flush()
            sys.stdout.write(f"cat: cannot open {path}\n")
            return 1
    out.flush()
    return 0


def _main_ls(args: list[str]) -> int:
    if not args:
        sys.stderr.write(_USAGE)
        return 2
    fs = _mount(args[0])
    for path in args[1:] or ["."]:
        try:
            ls(fs, path, sys.stdout)
        except OSError:
            sys.stderr.write(f"ls: cannot open {path}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write(_USAGE)
        return 2
    command, rest = args[0], args[1:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if command == "cat":
        return _main_cat(rest)
    if command == "ls":
        return _main_ls(rest)
    sys.stderr.write(_USAGE)
    return 2
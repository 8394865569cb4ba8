import errno

import pytest

from sixfs.disk import MemoryDisk
from sixfs.file import FileTable, Pipe
from sixfs.fs import FileSystem
from sixfs.layout import FileType
from sixfs.mkfs import build_image


def _fs(files=(("hello", b"hello world"),)):
    return FileSystem.open_image(MemoryDisk(build_image(files)))


def test_pipe_roundtrip():
    p = Pipe()
    assert p.write(b"abc") == 3
    assert p.read(10) == b"abc"


def test_pipe_read_after_writer_closed_is_empty():
    p = Pipe()
    p.write(b"xy")
    p.close(True)
    assert p.read(1) == b"x"
    assert p.read(5) == b"y"
    assert p.read(5) == b""


def test_pipe_write_to_closed_reader_when_full():
    p = Pipe()
    p.close(False)
    with pytest.raises(BrokenPipeError):
        p.write(b"a" * 600)


def test_file_read_inode():
    fs = _fs()
    table = FileTable(fs)
    f = table.open_inode(fs.namei("/hello"), True, False)
    assert f.read(100) == b"hello world"
    assert f.read(100) == b""
    st = f.stat()
    assert st.size == 11 and st.type == FileType.FILE
    table.close(f)
    assert f.ref == 0


def test_file_write_persists():
    fs = _fs()
    table = FileTable(fs)
    f = table.open_inode(fs.namei("hello"), False, True)
    assert f.write(b"HELLO") == 5
    table.close(f)
    again = FileSystem.open_image(MemoryDisk(fs.cache.disk.to_bytes()))
    g = FileTable(again).open_inode(again.namei("/hello"), True, False)
    assert g.read(100) == b"HELLO world"


def test_large_write_spans_transactions():
    fs = _fs()
    table = FileTable(fs)
    payload = bytes(range(256)) * 12
    f = table.open_inode(fs.namei("/hello"), True, True)
    assert f.write(payload) == len(payload)
    r = table.open_inode(fs.idup(f.ip), True, False)
    assert r.read(len(payload) + 10) == payload


def test_permissions():
    fs = _fs()
    table = FileTable(fs)
    f = table.open_inode(fs.namei("/hello"), False, False)
    with pytest.raises(OSError) as exc:
        f.read(1)
    assert exc.value.errno == errno.EBADF


def test_pipe_files_and_table_exhaustion():
    table = FileTable(_fs(), nfile=2)
    r, w = table.pipe()
    w.write(b"data")
    assert r.read(4) == b"data"
    with pytest.raises(OSError):
        table.alloc()
    table.dup(r)
    assert r.ref == 2
    table.close(w)
    assert r.read(4) == b""
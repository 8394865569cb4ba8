import pytest

from sixfs.disk import MemoryDisk
from sixfs.errors import KernelPanic
from sixfs.layout import BSIZE


def make_disk(n=4):
    return MemoryDisk(b"".join(bytes([i]) * BSIZE for i in range(n)))


def test_read_block_returns_contents():
    disk = make_disk()
    assert disk.nblocks == 4
    assert disk.read_block(2) == bytes([2]) * BSIZE


def test_write_then_read():
    disk = make_disk()
    data = bytes(range(256)) * 2
    disk.write_block(1, data)
    assert disk.read_block(1) == data
    assert disk.read_block(0) == bytes(BSIZE)


def test_out_of_range_panics():
    disk = make_disk()
    with pytest.raises(KernelPanic):
        disk.read_block(4)
    with pytest.raises(KernelPanic):
        disk.write_block(-1, bytes(BSIZE))


def test_write_wrong_size_rejected():
    with pytest.raises(ValueError):
        make_disk().write_block(0, b"short")


def test_trailing_partial_block_ignored():
    disk = MemoryDisk(bytes(BSIZE * 2 + 10))
    assert disk.nblocks == 2


def test_save_and_load(tmp_path):
    disk = make_disk()
    disk.write_block(3, b"\xab" * BSIZE)
    path = tmp_path / "fs.img"
    disk.save(path)
    loaded = MemoryDisk.from_file(path)
    assert loaded.to_bytes() == disk.to_bytes()
    assert loaded.dev == 1
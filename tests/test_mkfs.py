import pytest

from sixfs.disk import MemoryDisk
from sixfs.fs import FileSystem
from sixfs.layout import BSIZE, DirEntry, FileType, SuperBlock
from sixfs.mkfs import ImageBuilder, build_image, main


def _read(fs, path):
    ip = fs.namei(path)
    fs.ilock(ip)
    try:
        return fs.readi(ip, 0, ip.size)
    finally:
        fs.iunlock(ip)


def test_superblock_layout():
    image = build_image([], fssize=1000, ninodes=200, nlog=30)
    assert len(image) == 1000 * BSIZE
    sb = SuperBlock.from_bytes(image[BSIZE:2 * BSIZE])
    assert sb.size == 1000 and sb.nlog == 30 and sb.ninodes == 200
    assert sb.logstart == 2
    assert sb.inodestart == 32
    assert sb.bmapstart > sb.inodestart


def test_root_directory_entries():
    fs = FileSystem.open_image(MemoryDisk(build_image([])))
    root = fs.namei("/")
    fs.ilock(root)
    raw = fs.readi(root, 0, 32)
    fs.iunlock(root)
    assert DirEntry.from_bytes(raw[:16]) == DirEntry(1, ".")
    assert DirEntry.from_bytes(raw[16:]) == DirEntry(1, "..")
    assert root.type == FileType.DIR
    assert root.size % BSIZE == 0


def test_files_roundtrip_including_indirect_blocks():
    big = bytes(i % 251 for i in range(13 * BSIZE + 10))
    fs = FileSystem.open_image(MemoryDisk(build_image([("_cat", b"meow"), ("big", big)])))
    assert _read(fs, "/cat") == b"meow"
    assert _read(fs, "big") == big
    with pytest.raises(FileNotFoundError):
        fs.namei("/_cat")


def test_bitmap_marks_used_blocks():
    b = ImageBuilder()
    b.add_file("x", b"1" * 700)
    used = b.freeblock
    image = b.finish()
    bitmap = image[b.sb.bmapstart * BSIZE:(b.sb.bmapstart + 1) * BSIZE]
    bits = [(bitmap[i // 8] >> (i % 8)) & 1 for i in range(used + 8)]
    assert bits[:used] == [1] * used
    assert bits[used:] == [0] * 8


def test_rejects_slash_in_name():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("a/b", b"")


def test_main_writes_image(tmp_path):
    src = tmp_path / "note"
    src.write_bytes(b"text")
    out = tmp_path / "fs.img"
    assert main([str(out), str(src)]) == 1
    assert main([]) == 1
    import os
    cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        assert main(["fs.img", "note"]) == 0
    finally:
        os.chdir(cwd)
    fs = FileSystem.open_image(MemoryDisk.from_file(out))
    assert _read(fs, "/note") == b"text"
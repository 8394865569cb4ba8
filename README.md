# sixfs

`sixfs` is a compact Unix-style file system in pure Python, built in layers:

- **Disk** (`sixfs.disk`): `MemoryDisk` holds a whole image in memory as
  512-byte blocks, and can be loaded from or saved to a file.
- **Buffer cache** (`sixfs.bcache`): `BufferCache` hands out `Buf` objects,
  one holder at a time, and recycles the least recently used free buffer.
  `BufferCache.block(dev, blockno)` is a context manager that reads and
  releases a block.
- **Log** (`sixfs.log`): `Log` is a write-ahead redo log. Writes made between
  `begin_op()` and `end_op()` (or inside `with log.transaction():`) are
  committed together when the last active operation ends, and `recover()`
  replays a committed transaction found on disk.
- **Inodes, directories and path names** (`sixfs.fs`): `FileSystem` allocates
  blocks and inodes, reads and writes inode contents (`readi`, `writei`),
  looks up and adds directory entries (`dirlookup`, `dirlink`) and resolves
  paths (`namei`, `nameiparent`).
- **Open files and pipes** (`sixfs.file`): `FileTable`, `File` and `Pipe`.

Alongside the core:

- `sixfs.layout`: the on-disk structures (`SuperBlock`, `DiskInode`,
  `DirEntry`, `Stat`), `FileType`, `OpenFlags` and the layout constants.
- `sixfs.mkfs`: `ImageBuilder` and `build_image` create a fresh image.
- `sixfs.elf`: `parse_executable` reads and checks a 32-bit ELF header and
  its loadable segments, raising `ElfError` when they are not loadable.
- `sixfs.console`: `Console` does line-edited input (backspace, ^U kills the
  line, ^D ends input, ^P calls a `procdump` callback) and echoes to a
  `CgaScreen` (80x25 text cells) and to a `serial` byte buffer.
- `sixfs.kbd`: `KeyboardDecoder` turns PC scan codes into character codes,
  tracking shift, control and caps lock.
- `sixfs.fmt`: `format_kernel` and `format_user`, printf with only
  `%d %x %p %s %%` (and `%c` in `format_user`; its hex digits are upper case).
- `sixfs.grep`: `match` and `grep`, a regular-expression matcher with only
  `^ . * $`.
- `sixfs.tools`: `cat`, `echo`, `ls` and `fmtname`.

Fatal inconsistencies, such as running out of blocks or inodes or freeing a
free block, raise `sixfs.errors.KernelPanic`. Ordinary failures raise the usual
Python exceptions: `FileNotFoundError`, `NotADirectoryError`,
`FileExistsError`, `ValueError` or `OSError`.

The package has no runtime dependencies.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

Build an image of 1000 blocks (200 inodes, 30 log blocks) from files in the
current directory:

```
sixfs-mkfs fs.img README notes.txt
```

The first argument is the image to create. Each further file is stored in the
root directory under its own name, without a leading `_`. The names must not
contain `/`.

Print the lines that match a pattern, from files or from standard input:

```
sixfs-grep '^ab*c$' notes.txt
```

Use `cat`, `ls` and `echo` on an image:

```
sixfs-tools ls fs.img
sixfs-tools ls fs.img /
sixfs-tools cat fs.img /README /notes.txt
sixfs-tools echo hello world
```

`ls` prints one `name type inode size` line per entry, with the name padded
to 14 characters; with no path it lists `.`. `cat` with no paths copies
standard input to standard output.

## Library use

```python
from sixfs.disk import MemoryDisk
from sixfs.fs import FileSystem
from sixfs.mkfs import ImageBuilder

builder = ImageBuilder(1000, 200, 30)
builder.add_file("hello.txt", b"hello, world\n")
image = builder.finish()

fs = FileSystem.open_image(MemoryDisk(image, 1))
with fs.log.transaction():
    ip = fs.namei("/hello.txt", None)
    fs.ilock(ip)
    print(fs.readi(ip, 0, ip.size))   # b'hello, world\n'
    fs.iunlockput(ip)
```

Reading through the file table:

```python
from sixfs.file import FileTable

table = FileTable(fs)
with fs.log.transaction():
    ip = fs.namei("/hello.txt")
f = table.open_inode(ip, True, False)
data = f.read(512)
table.close(f)
```

Formatting, matching and keyboard decoding:

```python
from sixfs.fmt import format_user
from sixfs.grep import match
from sixfs.kbd import KeyboardDecoder

format_user("%s has %d blocks (%x)", "fs.img", 1000, 1000)  # 'fs.img has 1000 blocks (3E8)'
match("^a.c$", "abc")                                        # True
KeyboardDecoder().decode([0x1E, 0x9E])                       # [97]
```

## What it does not do

`sixfs` is a file system library and a few tools, not an operating system.
There are no processes, system calls or shell; `sixfs.elf` only parses and
checks executables and does not load or run them. The commands only create
images or read from them: no command creates, removes or links files in an
existing image, and `FileSystem` has no ready-made create, mkdir or unlink
operation beyond the building blocks `ialloc`, `writei` and `dirlink`. Disks
live in memory; an image is read from or written to a host file as a whole.
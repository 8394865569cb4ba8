"""Parsing and validation of 32-bit ELF executables."""

from __future__ import annotations

import struct
from dataclasses import dataclass

ELF_MAGIC = 0x464C457F
ELF_PROG_LOAD = 1
ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4
PGSIZE = 4096

_ELFHDR = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROGHDR = struct.Struct("<8I")


class ElfError(ValueError):
    """The data is not a loadable executable."""


@dataclass
class ElfHeader:
    magic: int
    elf: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int

    @classmethod
    def from_bytes(cls, data: bytes) -> ElfHeader:
        if len(data) < _ELFHDR.size:
            raise ElfError("short ELF header")
        hdr = cls(*_ELFHDR.unpack_from(data))
        if hdr.magic != ELF_MAGIC:
            raise ElfError("bad ELF magic")
        return hdr


@dataclass
class ProgramHeader:
    type: int
    off: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    flags: int
    align: int

    @classmethod
    def from_bytes(cls, data: bytes) -> ProgramHeader:
        if len(data) < _PROGHDR.size:
            raise ElfError("short program header")
        return cls(*_PROGHDR.unpack_from(data))


def parse_executable(data: bytes) -> tuple[ElfHeader, list[ProgramHeader]]:
    """Return the header and the loadable segments, checking them as a loader would."""
    elf = ElfHeader.from_bytes(data)
    segments = []
    for i in range(elf.phnum):
        off = elf.phoff + i * _PROGHDR.size
        ph = ProgramHeader.from_bytes(data[off:off + _PROGHDR.size])
        if ph.type != ELF_PROG_LOAD:
            continue
        if ph.memsz < ph.filesz:
            raise ElfError("segment memory size smaller than file size")
        if ph.vaddr + ph.memsz > 0xFFFFFFFF:
            raise ElfError("segment wraps the address space")
        if ph.vaddr % PGSIZE:
            raise ElfError("segment not page aligned")
        if ph.off + ph.filesz > len(data):
            raise ElfError("segment extends past end of file")
        segments.append(ph)
    return elf, segments


def program_name(path: str) -> str:
    """The final path element, used as the process name."""
    return path.rsplit("/", 1)[-1]
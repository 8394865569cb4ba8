"""A small Unix-style file system: disk, block cache, log, inodes, files, image builder and tools."""

__version__ = "0.1.0"
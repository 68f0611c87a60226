"""On-disk structures of the filesystem and the raw disk image they live on."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from pathlib import Path

SECTOR_SIZE = 512
SECTOR_NUM = 8196
SECTORS_PER_BLOCK = 2
POINTER_NUM = 12
NAME_LENGTH = 64

BLOCK_SIZE = SECTOR_SIZE * SECTORS_PER_BLOCK
MAX_GROUP_NUM = SECTOR_NUM // SECTOR_SIZE // SECTORS_PER_BLOCK // 8 // SECTORS_PER_BLOCK + 1

SUPER_BLOCK_SIZE = 1024
GROUP_DESC_SIZE = 32
INODE_BITMAP_SIZE = BLOCK_SIZE
BLOCK_BITMAP_SIZE = BLOCK_SIZE
INODE_SIZE = 128
DIRENTRY_SIZE = 128

# The filesystem starts right after the boot sector and the kernel image.
DEFAULT_BASE_SECTOR = 201


class FileSystemError(Exception):
    """Raised when the filesystem or its disk cannot do what was asked."""


class FileType(enum.IntEnum):
    UNKNOWN = 0
    REGULAR = 1
    DIRECTORY = 2
    CHARACTER = 3
    BLOCK = 4
    FIFO = 5
    SOCKET = 6
    SYMBOLIC = 7


def _check_length(data: bytes, needed: int, what: str) -> None:
    if len(data) < needed:
        raise FileSystemError(f"{what} needs {needed} bytes, got {len(data)}")


def _pad(raw: bytes, size: int) -> bytes:
    return raw + bytes(size - len(raw))


_SUPER_BLOCK = struct.Struct("<8i")
_GROUP_DESC = struct.Struct("<5i")
_INODE = struct.Struct(f"<hhii{POINTER_NUM}iiii")
_DIR_ENTRY_HEAD = struct.Struct("<i")


@dataclass
class SuperBlock:
    """Summary of the whole filesystem; a copy heads every block group."""

    sector_num: int = 0
    inode_num: int = 0
    block_num: int = 0
    avail_inode_num: int = 0
    avail_block_num: int = 0
    block_size: int = 0
    inodes_per_group: int = 0
    blocks_per_group: int = 0

    def pack(self) -> bytes:
        raw = _SUPER_BLOCK.pack(
            self.sector_num,
            self.inode_num,
            self.block_num,
            self.avail_inode_num,
            self.avail_block_num,
            self.block_size,
            self.inodes_per_group,
            self.blocks_per_group,
        )
        return _pad(raw, SUPER_BLOCK_SIZE)

    @classmethod
    def unpack(cls, data: bytes) -> SuperBlock:
        _check_length(data, _SUPER_BLOCK.size, "super block")
        return cls(*_SUPER_BLOCK.unpack_from(data))


@dataclass
class GroupDesc:
    """Location of one group's bitmaps and inode table, in sectors."""

    inode_bitmap: int = 0
    block_bitmap: int = 0
    inode_table: int = 0
    avail_inode_num: int = 0
    avail_block_num: int = 0

    def pack(self) -> bytes:
        raw = _GROUP_DESC.pack(
            self.inode_bitmap,
            self.block_bitmap,
            self.inode_table,
            self.avail_inode_num,
            self.avail_block_num,
        )
        return _pad(raw, GROUP_DESC_SIZE)

    @classmethod
    def unpack(cls, data: bytes) -> GroupDesc:
        _check_length(data, _GROUP_DESC.size, "group descriptor")
        return cls(*_GROUP_DESC.unpack_from(data))


@dataclass
class Inode:
    """A file's metadata with its direct and indirect block pointers (sectors)."""

    file_type: FileType = FileType.UNKNOWN
    link_count: int = 0
    block_count: int = 0
    size: int = 0
    pointer: list[int] = field(default_factory=lambda: [0] * POINTER_NUM)
    singly_pointer: int = 0
    doubly_pointer: int = 0
    triply_pointer: int = 0

    def pack(self) -> bytes:
        if len(self.pointer) != POINTER_NUM:
            raise FileSystemError(f"an inode holds exactly {POINTER_NUM} direct pointers")
        raw = _INODE.pack(
            int(self.file_type),
            self.link_count,
            self.block_count,
            self.size,
            *self.pointer,
            self.singly_pointer,
            self.doubly_pointer,
            self.triply_pointer,
        )
        return _pad(raw, INODE_SIZE)

    @classmethod
    def unpack(cls, data: bytes) -> Inode:
        _check_length(data, _INODE.size, "inode")
        values = _INODE.unpack_from(data)
        try:
            file_type = FileType(values[0])
        except ValueError:
            raise FileSystemError(f"unknown file type {values[0]}") from None
        pointer = list(values[4 : 4 + POINTER_NUM])
        singly, doubly, triply = values[4 + POINTER_NUM :]
        return cls(file_type, values[1], values[2], values[3], pointer, singly, doubly, triply)


@dataclass
class DirEntry:
    """One slot of a directory: the byte offset of an inode and a name.

    An inode offset of 0 marks a free slot.
    """

    inode: int = 0
    name: str = ""

    def encoded_name(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")
        return raw.split(b"\0", 1)[0][:NAME_LENGTH]

    def pack(self) -> bytes:
        raw = _DIR_ENTRY_HEAD.pack(self.inode) + self.encoded_name()
        return _pad(raw, DIRENTRY_SIZE)

    @classmethod
    def unpack(cls, data: bytes) -> DirEntry:
        _check_length(data, _DIR_ENTRY_HEAD.size, "directory entry")
        (inode,) = _DIR_ENTRY_HEAD.unpack_from(data)
        start = _DIR_ENTRY_HEAD.size
        raw = bytes(data[start : start + NAME_LENGTH]).split(b"\0", 1)[0]
        return cls(inode, raw.decode("utf-8", "surrogateescape"))


class Disk:
    """A disk image addressed in bytes relative to the filesystem's first sector."""

    def __init__(self, image, base_sector: int = DEFAULT_BASE_SECTOR) -> None:
        if base_sector < 0:
            raise FileSystemError("base sector must not be negative")
        self.image = bytearray(image)
        self.base_sector = base_sector
        if len(self.image) < self._base:
            raise FileSystemError("image is smaller than its reserved area")

    @property
    def _base(self) -> int:
        return self.base_sector * SECTOR_SIZE

    def __len__(self) -> int:
        return len(self.image) - self._base

    @classmethod
    def blank(cls, sector_num: int, base_sector: int = DEFAULT_BASE_SECTOR) -> Disk:
        if sector_num < 0:
            raise FileSystemError("sector count must not be negative")
        return cls(bytes((base_sector + sector_num) * SECTOR_SIZE), base_sector)

    @classmethod
    def from_file(cls, path, base_sector: int = DEFAULT_BASE_SECTOR) -> Disk:
        return cls(Path(path).read_bytes(), base_sector)

    def save(self, path) -> None:
        Path(path).write_bytes(bytes(self.image))

    def _span(self, offset: int, size: int) -> slice:
        if offset < 0 or size < 0 or offset + size > len(self):
            raise FileSystemError(
                f"access of {size} bytes at offset {offset} is outside the disk"
            )
        start = self._base + offset
        return slice(start, start + size)

    def read(self, offset: int, size: int) -> bytes:
        return bytes(self.image[self._span(offset, size)])

    def write(self, offset: int, data) -> None:
        data = bytes(data)
        self.image[self._span(offset, len(data))] = data
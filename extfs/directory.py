"""Directories and path resolution on top of a volume."""

from __future__ import annotations

from collections.abc import Iterator

from .allocation import NoSpaceError, Volume
from .layout import (
    DIRENTRY_SIZE,
    NAME_LENGTH,
    SECTOR_SIZE,
    DirEntry,
    Disk,
    FileSystemError,
    FileType,
    Inode,
)


class NotFoundError(FileSystemError):
    """Raised when a path or a directory entry does not exist."""


class FileSystem(Volume):
    """A volume with a root directory, named files and directories.

    Inodes are located by their byte offset on the disk; a directory entry
    records that offset, and an offset of 0 marks a free slot.
    """

    @classmethod
    def format(cls, disk: Disk, sector_num: int, sectors_per_block: int) -> FileSystem:
        """Lay out a fresh volume and give it an empty root directory."""
        fs = super().format(disk, sector_num, sectors_per_block)
        offset = fs._claim_inode()
        if offset != fs.root_offset:
            raise FileSystemError("the root inode did not land at the start of the table")
        fs.write_inode_at(offset, Inode(file_type=FileType.DIRECTORY, link_count=1))
        return fs

    @property
    def root_offset(self) -> int:
        """Byte offset of the root directory's inode."""
        return self.groups[0].inode_table * SECTOR_SIZE

    # --------------------------------------------------------------- entries

    def _slots(self, inode: Inode) -> Iterator[tuple[int, int, DirEntry]]:
        """Every slot of a directory, used or free: (block index, slot, entry)."""
        per_block = self.block_size // DIRENTRY_SIZE
        for block_index in range(inode.block_count):
            block = self.read_block(inode, block_index)
            for slot in range(per_block):
                start = slot * DIRENTRY_SIZE
                yield block_index, slot, DirEntry.unpack(block[start : start + DIRENTRY_SIZE])

    def _store_slot(self, inode: Inode, block_index: int, slot: int, entry: DirEntry) -> None:
        block = bytearray(self.read_block(inode, block_index))
        start = slot * DIRENTRY_SIZE
        block[start : start + DIRENTRY_SIZE] = entry.pack()
        self.write_block(inode, block_index, block)

    def entries(self, inode: Inode) -> Iterator[DirEntry]:
        """The used entries of a directory, in on-disk order."""
        return (entry for _, _, entry in self._slots(inode) if entry.inode != 0)

    def dir_entry(self, inode: Inode, index: int) -> DirEntry:
        """The ``index``-th used entry of a directory."""
        if index >= 0:
            for position, entry in enumerate(self.entries(inode)):
                if position == index:
                    return entry
        raise NotFoundError(f"directory has no entry number {index}")

    def _find(self, inode: Inode, name: str) -> tuple[int, int, DirEntry] | None:
        return next(
            (
                found
                for found in self._slots(inode)
                if found[2].inode != 0 and found[2].name == name
            ),
            None,
        )

    # ------------------------------------------------------------------ paths

    def lookup(self, path: str) -> tuple[Inode, int]:
        """Resolve an absolute path to its inode and the inode's byte offset.

        ``"/"`` is the root; a trailing ``/`` is accepted.
        """
        if not path:
            raise FileSystemError("empty path")
        if not path.startswith("/"):
            raise FileSystemError(f"path {path!r} is not absolute")
        offset = self.root_offset
        inode = self.read_inode_at(offset)
        parts = path[1:].split("/")
        for position, name in enumerate(parts):
            if not name:
                if position == len(parts) - 1:
                    break
                raise FileSystemError(f"path {path!r} holds an empty component")
            if inode.file_type != FileType.DIRECTORY:
                raise NotFoundError(f"{path!r}: a component is not a directory")
            found = self._find(inode, name)
            if found is None:
                raise NotFoundError(f"{path!r} does not exist")
            offset = found[2].inode
            inode = self.read_inode_at(offset)
        return inode, offset

    # ------------------------------------------------------ create and remove

    @staticmethod
    def _check_name(name: str) -> None:
        if not name:
            raise FileSystemError("empty file name")
        if "/" in name or "\0" in name:
            raise FileSystemError(f"invalid file name {name!r}")
        if len(name.encode("utf-8", "surrogateescape")) > NAME_LENGTH:
            raise FileSystemError(f"file name longer than {NAME_LENGTH} bytes")

    def create(
        self, parent: Inode, parent_offset: int, name: str, file_type: FileType
    ) -> tuple[Inode, int]:
        """Make a new empty file or directory ``name`` inside ``parent``.

        Returns the new inode and its byte offset; ``parent`` is updated in place.
        """
        self._check_name(name)
        if parent.file_type != FileType.DIRECTORY:
            raise FileSystemError("parent is not a directory")
        if self.superblock.avail_inode_num == 0:
            raise NoSpaceError("no free inode left")
        free_slot = None
        for block_index, slot, entry in self._slots(parent):
            if entry.inode == 0:
                if free_slot is None:
                    free_slot = (block_index, slot)
            elif entry.name == name:
                raise FileSystemError(f"{name!r} already exists")
        if free_slot is None:
            self.alloc_block(parent, parent_offset)
            parent.size = parent.block_count * self.block_size
            free_slot = (parent.block_count - 1, 0)
            self.write_block(parent, free_slot[0], bytes(self.block_size))

        offset = self._claim_inode()
        self._store_slot(parent, *free_slot, DirEntry(offset, name))
        self.write_inode_at(parent_offset, parent)
        inode = Inode(file_type=FileType(file_type), link_count=1)
        self.write_inode_at(offset, inode)
        return inode, offset

    def unlink(
        self, parent: Inode, parent_offset: int, name: str, file_type: FileType
    ) -> None:
        """Remove entry ``name`` of type ``file_type`` from ``parent``.

        The inode and its blocks are released once no link is left. A
        directory must be empty.
        """
        if not name:
            raise FileSystemError("empty file name")
        found = self._find(parent, name)
        if found is None:
            raise NotFoundError(f"{name!r} does not exist")
        block_index, slot, entry = found
        offset = entry.inode
        inode = self.read_inode_at(offset)
        if inode.file_type != file_type:
            raise FileSystemError(f"{name!r} is not of type {FileType(file_type).name}")
        if file_type == FileType.DIRECTORY and next(self.entries(inode), None) is not None:
            raise FileSystemError(f"directory {name!r} is not empty")
        inode.link_count -= 1
        if inode.link_count == 0:
            self.free_blocks(inode, offset)
            self._release_inode(offset)
        else:
            self.write_inode_at(offset, inode)
        self._store_slot(parent, block_index, slot, DirEntry(0, entry.name))
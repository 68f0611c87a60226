"""Block and inode allocation on a mounted volume, and block addressing of files."""

from __future__ import annotations

import struct

from .geometry import (
    blocks_per_group,
    group_count,
    group_size,
    inodes_per_group,
    needed_pointer_blocks,
)
from .layout import (
    GROUP_DESC_SIZE,
    INODE_SIZE,
    POINTER_NUM,
    SECTOR_SIZE,
    SUPER_BLOCK_SIZE,
    Disk,
    FileSystemError,
    GroupDesc,
    Inode,
    SuperBlock,
)

_SUPER_BLOCK_SECTORS = SUPER_BLOCK_SIZE // SECTOR_SIZE


class NoSpaceError(FileSystemError):
    """Raised when no free block or inode is left for an allocation."""


def _find_clear_bit(bitmap: bytes, limit: int) -> int | None:
    """Index of the first zero bit among the first ``limit`` bits, high bit first."""
    return next(
        (bit for bit in range(limit) if not (bitmap[bit // 8] >> (7 - bit % 8)) & 1),
        None,
    )


def _bit_is_set(bitmap: bytes, bit: int) -> bool:
    return bool((bitmap[bit // 8] >> (7 - bit % 8)) & 1)


def _toggle_bit(bitmap: bytearray, bit: int) -> None:
    bitmap[bit // 8] ^= 1 << (7 - bit % 8)


class Volume:
    """A formatted disk: its super block, group descriptors and bitmaps.

    Block locations are counted in sectors, inode locations in bytes,
    both relative to the start of the filesystem on the disk.
    """

    def __init__(self, disk: Disk, superblock: SuperBlock, groups) -> None:
        if superblock.block_size < SECTOR_SIZE or superblock.block_size % SECTOR_SIZE:
            raise FileSystemError(f"invalid block size {superblock.block_size}")
        self.disk = disk
        self.superblock = superblock
        self.groups: list[GroupDesc] = list(groups)
        self.sectors_per_block = superblock.block_size // SECTOR_SIZE
        self.group_num = group_count(superblock.sector_num, self.sectors_per_block)
        if self.group_num == 0:
            raise FileSystemError("the volume holds no block group")
        if len(self.groups) < self.group_num:
            raise FileSystemError(
                f"{self.group_num} group descriptors needed, got {len(self.groups)}"
            )

    @property
    def block_size(self) -> int:
        return self.superblock.block_size

    # ----------------------------------------------------------------- setup

    @classmethod
    def format(cls, disk: Disk, sector_num: int, sectors_per_block: int) -> Volume:
        """Lay out block groups on ``disk`` and write their headers."""
        group_num = group_count(sector_num, sectors_per_block)
        if group_num == 0:
            raise FileSystemError(f"{sector_num} sectors are too few for a block group")
        if len(disk) < sector_num * SECTOR_SIZE:
            raise FileSystemError("disk is smaller than the requested sector count")

        block_bytes = SECTOR_SIZE * sectors_per_block
        desc_blocks = -(-group_num * GROUP_DESC_SIZE // block_bytes)
        inode_bitmap_offset = _SUPER_BLOCK_SECTORS + desc_blocks * sectors_per_block
        block_bitmap_offset = _SUPER_BLOCK_SECTORS + (desc_blocks + 1) * sectors_per_block
        inode_table_offset = _SUPER_BLOCK_SECTORS + (desc_blocks + 2) * sectors_per_block
        stride = group_size(sector_num, sectors_per_block, group_num, 0)

        groups = []
        for index in range(group_num):
            start = index * stride
            groups.append(
                GroupDesc(
                    inode_bitmap=start + inode_bitmap_offset,
                    block_bitmap=start + block_bitmap_offset,
                    inode_table=start + inode_table_offset,
                    avail_inode_num=inodes_per_group(
                        sector_num, sectors_per_block, group_num, index
                    ),
                    avail_block_num=blocks_per_group(
                        sector_num, sectors_per_block, group_num, index
                    ),
                )
            )
        inode_num = sum(group.avail_inode_num for group in groups)
        block_num = sum(group.avail_block_num for group in groups)
        full = block_bytes * 8
        superblock = SuperBlock(
            sector_num=sector_num,
            inode_num=inode_num,
            block_num=block_num,
            avail_inode_num=inode_num,
            avail_block_num=block_num,
            block_size=block_bytes,
            inodes_per_group=full,
            blocks_per_group=full,
        )
        volume = cls(disk, superblock, groups)
        for group in groups:
            disk.write(group.inode_bitmap * SECTOR_SIZE, bytes(block_bytes))
            disk.write(group.block_bitmap * SECTOR_SIZE, bytes(block_bytes))
        volume._write_headers()
        return volume

    @classmethod
    def mount(cls, disk: Disk) -> Volume:
        """Read the super block and group descriptors of the first group."""
        superblock = SuperBlock.unpack(disk.read(0, SUPER_BLOCK_SIZE))
        if superblock.block_size < SECTOR_SIZE or superblock.block_size % SECTOR_SIZE:
            raise FileSystemError("no filesystem found on the disk")
        if superblock.sector_num < 0:
            raise FileSystemError("corrupt super block")
        spb = superblock.block_size // SECTOR_SIZE
        group_num = group_count(superblock.sector_num, spb)
        if group_num == 0:
            raise FileSystemError("the volume holds no block group")
        raw = disk.read(SUPER_BLOCK_SIZE, GROUP_DESC_SIZE * group_num)
        groups = [
            GroupDesc.unpack(raw[start : start + GROUP_DESC_SIZE])
            for start in range(0, len(raw), GROUP_DESC_SIZE)
        ]
        return cls(disk, superblock, groups)

    def _write_headers(self) -> None:
        """Write the super block and descriptor table into every group."""
        stride = (
            group_size(self.superblock.sector_num, self.sectors_per_block, self.group_num, 0)
            * SECTOR_SIZE
        )
        head = self.superblock.pack()
        table = b"".join(group.pack() for group in self.groups[: self.group_num])
        for index in range(self.group_num):
            self.disk.write(index * stride, head)
            self.disk.write(index * stride + SUPER_BLOCK_SIZE, table)

    # ---------------------------------------------------------------- inodes

    def read_inode_at(self, offset: int) -> Inode:
        return Inode.unpack(self.disk.read(offset, INODE_SIZE))

    def write_inode_at(self, offset: int, inode: Inode) -> None:
        self.disk.write(offset, inode.pack())

    def _stride(self) -> int:
        return group_size(self.superblock.sector_num, self.sectors_per_block, self.group_num, 0)

    def _read_bitmap(self, sector: int) -> bytearray:
        return bytearray(self.disk.read(sector * SECTOR_SIZE, self.block_size))

    def _write_bitmap(self, sector: int, bitmap: bytes) -> None:
        self.disk.write(sector * SECTOR_SIZE, bitmap)

    def _claim_inode(self) -> int:
        """Mark a free inode as used and return its byte offset."""
        if self.superblock.avail_inode_num == 0:
            raise NoSpaceError("no free inode left")
        index = next(
            (i for i, group in enumerate(self.groups[: self.group_num]) if group.avail_inode_num >= 1),
            None,
        )
        if index is None:
            raise NoSpaceError("no group has a free inode")
        group = self.groups[index]
        bitmap = self._read_bitmap(group.inode_bitmap)
        limit = inodes_per_group(
            self.superblock.sector_num, self.sectors_per_block, self.group_num, index
        )
        bit = _find_clear_bit(bitmap, limit)
        if bit is None:
            raise FileSystemError(f"inode bitmap of group {index} disagrees with its count")
        _toggle_bit(bitmap, bit)
        self.superblock.avail_inode_num -= 1
        group.avail_inode_num -= 1
        self._write_headers()
        self._write_bitmap(group.inode_bitmap, bitmap)
        return group.inode_table * SECTOR_SIZE + bit * INODE_SIZE

    def _release_inode(self, offset: int) -> None:
        """Mark the inode at byte ``offset`` as free."""
        index = offset // SECTOR_SIZE // self._stride()
        if not 0 <= index < self.group_num:
            raise FileSystemError(f"inode offset {offset} is outside the volume")
        group = self.groups[index]
        bit = (offset - group.inode_table * SECTOR_SIZE) // INODE_SIZE
        if not 0 <= bit < self.block_size * 8:
            raise FileSystemError(f"inode offset {offset} is outside its inode table")
        bitmap = self._read_bitmap(group.inode_bitmap)
        if not _bit_is_set(bitmap, bit):
            raise FileSystemError(f"inode at offset {offset} is not in use")
        self.superblock.avail_inode_num += 1
        group.avail_inode_num += 1
        _toggle_bit(bitmap, bit)
        self._write_headers()
        self._write_bitmap(group.inode_bitmap, bitmap)

    # ---------------------------------------------------------------- blocks

    def _data_start(self, group: GroupDesc) -> int:
        return group.inode_table + INODE_SIZE * 8 * self.sectors_per_block

    def _claim_block(self) -> int:
        """Mark a free data block as used and return its sector."""
        if self.superblock.avail_block_num == 0:
            raise NoSpaceError("no free block left")
        index = next(
            (i for i, group in enumerate(self.groups[: self.group_num]) if group.avail_block_num >= 1),
            None,
        )
        if index is None:
            raise NoSpaceError("no group has a free block")
        group = self.groups[index]
        bitmap = self._read_bitmap(group.block_bitmap)
        limit = blocks_per_group(
            self.superblock.sector_num, self.sectors_per_block, self.group_num, index
        )
        bit = _find_clear_bit(bitmap, limit)
        if bit is None:
            raise FileSystemError(f"block bitmap of group {index} disagrees with its count")
        _toggle_bit(bitmap, bit)
        self.superblock.avail_block_num -= 1
        group.avail_block_num -= 1
        self._write_headers()
        self._write_bitmap(group.block_bitmap, bitmap)
        return self._data_start(group) + bit * self.sectors_per_block

    def _release_block(self, sector: int) -> None:
        """Mark the data block at ``sector`` as free."""
        index = sector // self._stride()
        if not 0 <= index < self.group_num:
            raise FileSystemError(f"block at sector {sector} is outside the volume")
        group = self.groups[index]
        bit = (sector - self._data_start(group)) // self.sectors_per_block
        if not 0 <= bit < self.block_size * 8:
            raise FileSystemError(f"sector {sector} is not a data block")
        bitmap = self._read_bitmap(group.block_bitmap)
        if not _bit_is_set(bitmap, bit):
            raise FileSystemError(f"block at sector {sector} is not in use")
        self.superblock.avail_block_num += 1
        group.avail_block_num += 1
        _toggle_bit(bitmap, bit)
        self._write_headers()
        self._write_bitmap(group.block_bitmap, bitmap)

    # ------------------------------------------------------- pointer blocks

    def _bounds(self) -> tuple[int, int, int, int, int]:
        per = self.block_size // 4
        per2 = per * per
        bound1 = POINTER_NUM + per
        bound2 = bound1 + per2
        bound3 = bound2 + per2 * per
        return per, per2, bound1, bound2, bound3

    def _pointers(self, sector: int) -> list[int]:
        per = self.block_size // 4
        return list(struct.unpack(f"<{per}I", self.disk.read(sector * SECTOR_SIZE, self.block_size)))

    def _store_pointers(self, sector: int, pointers: list[int]) -> None:
        self.disk.write(sector * SECTOR_SIZE, struct.pack(f"<{len(pointers)}I", *pointers))

    def _set_pointer(self, sector: int, slot: int, value: int) -> None:
        pointers = self._pointers(sector)
        pointers[slot] = value
        self._store_pointers(sector, pointers)

    def _new_pointer_block(self, first: int) -> int:
        sector = self._claim_block()
        self._store_pointers(sector, [first] + [0] * (self.block_size // 4 - 1))
        return sector

    def _data_sector(self, inode: Inode, index: int) -> int:
        per, per2, bound1, bound2, bound3 = self._bounds()
        if index < 0:
            raise FileSystemError(f"negative block index {index}")
        if index < POINTER_NUM:
            return inode.pointer[index]
        if index < bound1:
            return self._pointers(inode.singly_pointer)[index - POINTER_NUM]
        if index < bound2:
            outer, inner = divmod(index - bound1, per)
            return self._pointers(self._pointers(inode.doubly_pointer)[outer])[inner]
        if index < bound3:
            outer, rest = divmod(index - bound2, per2)
            middle, inner = divmod(rest, per)
            doubly = self._pointers(inode.triply_pointer)[outer]
            return self._pointers(self._pointers(doubly)[middle])[inner]
        raise FileSystemError(f"block index {index} is beyond the largest file")

    def read_block(self, inode: Inode, index: int) -> bytes:
        """Contents of the ``index``-th block of a file."""
        sector = self._data_sector(inode, index)
        return self.disk.read(sector * SECTOR_SIZE, self.block_size)

    def write_block(self, inode: Inode, index: int, data) -> None:
        """Overwrite the ``index``-th block of a file; short data is zero padded."""
        data = bytes(data)
        if len(data) > self.block_size:
            raise FileSystemError(
                f"{len(data)} bytes do not fit in a block of {self.block_size}"
            )
        sector = self._data_sector(inode, index)
        self.disk.write(sector * SECTOR_SIZE, data + bytes(self.block_size - len(data)))

    # ------------------------------------------------- growing and shrinking

    def alloc_block(self, inode: Inode, inode_offset: int) -> int:
        """Append one data block to ``inode`` and return its sector.

        Nothing changes if the volume cannot hold the block and the pointer
        blocks it needs.
        """
        try:
            needed = needed_pointer_blocks(self.block_size, inode.block_count)
        except FileSystemError as error:
            raise NoSpaceError(str(error)) from None
        if self.superblock.avail_block_num < needed + 1:
            raise NoSpaceError("not enough free blocks to grow the file")
        block = self._claim_block()
        self._attach(inode, block)
        inode.block_count += 1
        self.write_inode_at(inode_offset, inode)
        return block

    def _attach(self, inode: Inode, block: int) -> None:
        per, per2, bound1, bound2, bound3 = self._bounds()
        count = inode.block_count
        new = self._new_pointer_block
        if count < POINTER_NUM:
            inode.pointer[count] = block
        elif count == POINTER_NUM:
            inode.singly_pointer = new(block)
        elif count < bound1:
            self._set_pointer(inode.singly_pointer, count - POINTER_NUM, block)
        elif count == bound1:
            inode.doubly_pointer = new(new(block))
        elif count < bound2:
            outer, inner = divmod(count - bound1, per)
            if inner == 0:
                self._set_pointer(inode.doubly_pointer, outer, new(block))
            else:
                singly = self._pointers(inode.doubly_pointer)[outer]
                self._set_pointer(singly, inner, block)
        elif count == bound2:
            inode.triply_pointer = new(new(new(block)))
        elif count < bound3:
            outer, rest = divmod(count - bound2, per2)
            middle, inner = divmod(rest, per)
            if rest == 0:
                self._set_pointer(inode.triply_pointer, outer, new(new(block)))
            elif inner == 0:
                doubly = self._pointers(inode.triply_pointer)[outer]
                self._set_pointer(doubly, middle, new(block))
            else:
                doubly = self._pointers(inode.triply_pointer)[outer]
                singly = self._pointers(doubly)[middle]
                self._set_pointer(singly, inner, block)
        else:
            raise NoSpaceError("file has reached its maximum number of blocks")

    def free_last_block(self, inode: Inode, inode_offset: int) -> None:
        """Release the last data block of ``inode`` and any pointer block left empty."""
        per, per2, bound1, bound2, bound3 = self._bounds()
        if inode.block_count <= 0:
            raise FileSystemError("the file has no block to free")
        if inode.block_count > bound3:
            raise FileSystemError("block count is beyond the largest file")
        count = inode.block_count - 1
        inode.block_count = count
        release = self._release_block

        if count < POINTER_NUM:
            release(inode.pointer[count])
        elif count == POINTER_NUM:
            release(self._pointers(inode.singly_pointer)[0])
            release(inode.singly_pointer)
        elif count < bound1:
            release(self._pointers(inode.singly_pointer)[count - POINTER_NUM])
        elif count == bound1:
            singly = self._pointers(inode.doubly_pointer)[0]
            release(self._pointers(singly)[0])
            release(singly)
            release(inode.doubly_pointer)
        elif count < bound2:
            outer, inner = divmod(count - bound1, per)
            singly = self._pointers(inode.doubly_pointer)[outer]
            release(self._pointers(singly)[inner])
            if inner == 0:
                release(singly)
        elif count == bound2:
            doubly = self._pointers(inode.triply_pointer)[0]
            singly = self._pointers(doubly)[0]
            release(self._pointers(singly)[0])
            release(singly)
            release(doubly)
            release(inode.triply_pointer)
        else:
            outer, rest = divmod(count - bound2, per2)
            middle, inner = divmod(rest, per)
            doubly = self._pointers(inode.triply_pointer)[outer]
            singly = self._pointers(doubly)[middle]
            release(self._pointers(singly)[inner])
            if inner == 0:
                release(singly)
            if rest == 0:
                release(doubly)
        self.write_inode_at(inode_offset, inode)

    def free_blocks(self, inode: Inode, inode_offset: int) -> None:
        """Release every block of ``inode``."""
        while inode.block_count != 0:
            self.free_last_block(inode, inode_offset)
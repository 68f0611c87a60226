"""Arithmetic of the block-group layout: how a disk is cut into groups."""

from __future__ import annotations

from .layout import (
    GROUP_DESC_SIZE,
    INODE_SIZE,
    POINTER_NUM,
    SECTOR_SIZE,
    SUPER_BLOCK_SIZE,
    FileSystemError,
)

_SUPER_BLOCK_SECTORS = SUPER_BLOCK_SIZE // SECTOR_SIZE
_DESCS_PER_SECTOR = SECTOR_SIZE // GROUP_DESC_SIZE


def _check(sector_num: int, sectors_per_block: int) -> None:
    if sector_num < 0:
        raise ValueError("sector count must not be negative")
    if sectors_per_block < 1:
        raise ValueError("a block holds at least one sector")


def _inode_table_sectors(sectors_per_block: int) -> int:
    return INODE_SIZE * 8 * sectors_per_block


def _data_sectors(sectors_per_block: int) -> int:
    return SECTOR_SIZE * sectors_per_block * 8 * sectors_per_block


def _full_count(sectors_per_block: int) -> int:
    # One block of bitmap covers this many inodes or data blocks.
    return SECTOR_SIZE * sectors_per_block * 8


def _shape(sector_num: int, sectors_per_block: int, group_num: int) -> tuple[int, int, int]:
    """Header sectors, body sectors and the size of the trailing part."""
    block_bytes = SECTOR_SIZE * sectors_per_block
    desc_blocks = -(-group_num * GROUP_DESC_SIZE // block_bytes)
    header = _SUPER_BLOCK_SECTORS + (desc_blocks + 2) * sectors_per_block
    body = _inode_table_sectors(sectors_per_block) + _data_sectors(sectors_per_block)
    return header, body, sector_num % (header + body)


def group_count(sector_num: int, sectors_per_block: int) -> int:
    """Number of block groups a disk of ``sector_num`` sectors holds."""
    _check(sector_num, sectors_per_block)
    desc_blocks = 1
    while True:
        span = (
            _SUPER_BLOCK_SECTORS
            + desc_blocks * sectors_per_block
            + (2 + INODE_SIZE * 8) * sectors_per_block
            + _data_sectors(sectors_per_block)
        )
        quotient, remainder = divmod(sector_num, span)
        header = _SUPER_BLOCK_SECTORS + (desc_blocks + 2) * sectors_per_block
        capacity = _DESCS_PER_SECTOR * desc_blocks * sectors_per_block
        if quotient == 0:
            return 0 if remainder < header else 1
        if remainder < header and quotient <= capacity:
            return quotient
        if remainder >= header and quotient < capacity:
            return quotient + 1
        desc_blocks += 1


def group_size(sector_num: int, sectors_per_block: int, group_num: int, index: int) -> int:
    """Size in sectors of group ``index``; 0 for an index outside the disk."""
    _check(sector_num, sectors_per_block)
    header, body, remainder = _shape(sector_num, sectors_per_block, group_num)
    if index < 0 or index + 1 > group_num:
        return 0
    if index + 1 < group_num or remainder < header:
        return header + body
    return remainder


def inodes_per_group(sector_num: int, sectors_per_block: int, group_num: int, index: int) -> int:
    """Number of inodes in group ``index``."""
    _check(sector_num, sectors_per_block)
    header, _, remainder = _shape(sector_num, sectors_per_block, group_num)
    full = _full_count(sectors_per_block)
    if index < 0 or index + 1 > group_num:
        return 0
    if index + 1 < group_num or remainder < header:
        return full
    spare = remainder - header
    if spare >= _inode_table_sectors(sectors_per_block):
        return full
    return spare // sectors_per_block * sectors_per_block * SECTOR_SIZE // INODE_SIZE


def blocks_per_group(sector_num: int, sectors_per_block: int, group_num: int, index: int) -> int:
    """Number of data blocks in group ``index``."""
    _check(sector_num, sectors_per_block)
    header, _, remainder = _shape(sector_num, sectors_per_block, group_num)
    full = _full_count(sectors_per_block)
    if index < 0 or index + 1 > group_num:
        return 0
    if index + 1 < group_num or remainder < header:
        return full
    spare = remainder - header - _inode_table_sectors(sectors_per_block)
    if spare >= 0:
        return spare // sectors_per_block
    return 0


def needed_pointer_blocks(block_size: int, block_count: int) -> int:
    """Pointer blocks to allocate besides the data block when a file grows
    from ``block_count`` blocks to one more."""
    per_block = block_size // 4
    if per_block < 1:
        raise ValueError("block size too small to hold a pointer")
    per_double = per_block * per_block
    bound0 = POINTER_NUM
    bound1 = bound0 + per_block
    bound2 = bound1 + per_double
    bound3 = bound2 + per_double * per_block

    if block_count == bound0:
        return 1
    if block_count == bound1:
        return 2
    if block_count < bound2 and (block_count - bound1) % per_block == 0:
        return 1
    if block_count == bound2:
        return 3
    if block_count < bound3 and (block_count - bound2) % per_double == 0:
        return 2
    if block_count < bound3 and (block_count - bound2) % per_block == 0:
        return 1
    if block_count >= bound3:
        raise FileSystemError("file has reached its maximum number of blocks")
    return 0
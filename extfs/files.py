"""The table of open files and the calls that act on it.

Descriptors below ``MAX_DEV_NUM`` name devices: ``STD_OUT`` writes to the
console stream and ``STD_IN`` reads from the keyboard stream. Descriptors
from ``MAX_DEV_NUM`` upwards name open files of the filesystem.
"""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass

from .allocation import NoSpaceError
from .directory import FileSystem, NotFoundError
from .layout import FileSystemError, FileType, Inode

STD_OUT = 0
STD_IN = 1

MAX_DEV_NUM = 4
MAX_FILE_NUM = 4

STDOUT_PATH = "/dev/stdout"
STDIN_PATH = "/dev/stdin"


class OpenFlags(enum.IntFlag):
    WRITE = 0x01
    READ = 0x02
    CREATE = 0x04
    DIRECTORY = 0x08


class Whence(enum.IntEnum):
    SET = 0
    CUR = 1
    END = 2


@dataclass(frozen=True)
class Stat:
    """What ``stat`` reports about a file."""

    file_type: FileType
    link_count: int
    block_count: int
    size: int

    @classmethod
    def of(cls, inode: Inode) -> Stat:
        return cls(inode.file_type, inode.link_count, inode.block_count, inode.size)


@dataclass
class _OpenFile:
    inode_offset: int
    flags: OpenFlags
    offset: int = 0


class FileTable:
    """Open files of a filesystem, addressed by integer descriptors."""

    def __init__(self, fs: FileSystem, stdout=None, stdin=None) -> None:
        self.fs = fs
        self.stdout = stdout
        self.stdin = stdin
        self._slots: list[_OpenFile | None] = [None] * MAX_FILE_NUM
        self._devices: dict[int, int | None] = {
            STD_OUT: self._device_inode(STDOUT_PATH),
            STD_IN: self._device_inode(STDIN_PATH),
        }

    def _device_inode(self, path: str) -> int | None:
        try:
            return self.fs.lookup(path)[1]
        except FileSystemError:
            return None

    def _device_of(self, offset: int) -> int | None:
        return next(
            (fd for fd, dev_offset in self._devices.items() if dev_offset == offset),
            None,
        )

    # ------------------------------------------------------------ descriptors

    def _attach(self, inode_offset: int, flags: OpenFlags) -> int:
        for index, slot in enumerate(self._slots):
            if slot is None:
                self._slots[index] = _OpenFile(inode_offset, flags)
                return MAX_DEV_NUM + index
        raise FileSystemError("no free file descriptor")

    def _open_file(self, fd: int) -> _OpenFile:
        index = fd - MAX_DEV_NUM
        if not 0 <= index < MAX_FILE_NUM or self._slots[index] is None:
            raise FileSystemError(f"bad file descriptor {fd}")
        return self._slots[index]

    # ------------------------------------------------------------------ open

    def open(self, path: str, flags) -> int:
        """Open ``path`` and return a descriptor; create it if asked to."""
        flags = OpenFlags(flags)
        try:
            inode, offset = self.fs.lookup(path)
        except NotFoundError:
            return self._create(path, flags)
        want_dir = bool(flags & OpenFlags.DIRECTORY)
        if not want_dir and inode.file_type == FileType.DIRECTORY:
            raise FileSystemError(f"{path!r} is a directory")
        if want_dir and inode.file_type == FileType.REGULAR:
            raise FileSystemError(f"{path!r} is not a directory")
        device = self._device_of(offset)
        if device is not None:
            return device
        return self._attach(offset, flags)

    def _create(self, path: str, flags: OpenFlags) -> int:
        if not flags & OpenFlags.CREATE:
            raise NotFoundError(f"{path!r} does not exist")
        if flags & OpenFlags.DIRECTORY:
            if path.endswith("/"):
                path = path[:-1]
            file_type = FileType.DIRECTORY
        else:
            file_type = FileType.REGULAR
        cut = path.rfind("/")
        if cut < 0:
            raise FileSystemError(f"path {path!r} is not absolute")
        parent, parent_offset = self.fs.lookup(path[: cut + 1])
        _, offset = self.fs.create(parent, parent_offset, path[cut + 1 :], file_type)
        return self._attach(offset, flags)

    # ------------------------------------------------------------------ read

    def read(self, fd: int, size: int) -> bytes:
        """Read at most ``size`` bytes from ``fd`` and advance its offset."""
        if size < 0:
            raise ValueError("size must not be negative")
        if fd == STD_IN:
            return self._read_stdin(size)
        entry = self._open_file(fd)
        if not entry.flags & OpenFlags.READ:
            raise FileSystemError(f"descriptor {fd} is not open for reading")
        if entry.offset < 0:
            raise FileSystemError(f"descriptor {fd} is at a negative offset")
        inode = self.fs.read_inode_at(entry.inode_offset)
        end = min(entry.offset + size, inode.size)
        data = self._read_range(inode, entry.offset, end)
        entry.offset += len(data)
        return data

    def _read_range(self, inode: Inode, start: int, end: int) -> bytes:
        if end <= start:
            return b""
        bs = self.fs.block_size
        chunks = []
        for index in range(start // bs, (end - 1) // bs + 1):
            base = index * bs
            block = self.fs.read_block(inode, index)
            chunks.append(block[max(start - base, 0) : min(end - base, bs)])
        return b"".join(chunks)

    def _read_stdin(self, size: int) -> bytes:
        if self.stdin is None:
            raise FileSystemError("no input device")
        data = self.stdin.read(size)
        if isinstance(data, str):
            data = data.encode("utf-8")
        return bytes(data)

    # ----------------------------------------------------------------- write

    def write(self, fd: int, data) -> int:
        """Write ``data`` to ``fd`` and return the number of bytes written.

        A file that runs out of space takes what fits in the blocks it got.
        """
        data = bytes(data)
        if fd == STD_OUT:
            return self._write_stdout(data)
        entry = self._open_file(fd)
        if not entry.flags & OpenFlags.WRITE:
            raise FileSystemError(f"descriptor {fd} is not open for writing")
        if entry.offset < 0:
            raise FileSystemError(f"descriptor {fd} is at a negative offset")
        if not data:
            return 0
        fs = self.fs
        bs = fs.block_size
        inode = fs.read_inode_at(entry.inode_offset)
        start = entry.offset
        end = start + len(data)

        needed = -(-end // bs)
        while inode.block_count < needed:
            try:
                fs.alloc_block(inode, entry.inode_offset)
            except NoSpaceError:
                end = min(end, inode.block_count * bs)
                break
            fs.write_block(inode, inode.block_count - 1, bytes(bs))
        written = end - start
        if written <= 0:
            raise NoSpaceError("no room left to write")

        for index in range(start // bs, (end - 1) // bs + 1):
            base = index * bs
            lo = max(start - base, 0)
            hi = min(end - base, bs)
            piece = data[base + lo - start : base + hi - start]
            if lo == 0 and hi == bs:
                fs.write_block(inode, index, piece)
            else:
                block = bytearray(fs.read_block(inode, index))
                block[lo:hi] = piece
                fs.write_block(inode, index, block)

        inode.size = max(inode.size, end)
        fs.write_inode_at(entry.inode_offset, inode)
        entry.offset = end
        return written

    def _write_stdout(self, data: bytes) -> int:
        if self.stdout is None:
            raise FileSystemError("no output device")
        if isinstance(self.stdout, io.TextIOBase):
            self.stdout.write(data.decode("utf-8", "replace"))
        else:
            self.stdout.write(data)
        return len(data)

    # -------------------------------------------------------- seek and close

    def lseek(self, fd: int, offset: int, whence) -> int:
        """Move the offset of ``fd`` and return the new offset."""
        entry = self._open_file(fd)
        try:
            whence = Whence(whence)
        except ValueError:
            raise FileSystemError(f"invalid whence {whence}") from None
        if whence == Whence.SET:
            entry.offset = offset
        elif whence == Whence.CUR:
            entry.offset += offset
        else:
            entry.offset = self.fs.read_inode_at(entry.inode_offset).size + offset
        return entry.offset

    def close(self, fd: int) -> None:
        self._open_file(fd)
        self._slots[fd - MAX_DEV_NUM] = None

    # -------------------------------------------------------- remove and stat

    def remove(self, path: str) -> None:
        """Delete a regular file or an empty directory."""
        inode, offset = self.fs.lookup(path)
        if self._device_of(offset) is not None:
            raise FileSystemError(f"{path!r} is a device")
        trimmed = path[:-1] if path.endswith("/") else path
        cut = trimmed.rfind("/")
        if cut < 0:
            raise FileSystemError(f"cannot remove {path!r}")
        if inode.file_type not in (FileType.REGULAR, FileType.DIRECTORY):
            raise FileSystemError(f"cannot remove {path!r} of type {inode.file_type.name}")
        parent, parent_offset = self.fs.lookup(trimmed[: cut + 1])
        self.fs.unlink(parent, parent_offset, trimmed[cut + 1 :], inode.file_type)

    def stat(self, path: str) -> Stat:
        inode, _ = self.fs.lookup(path)
        return Stat.of(inode)
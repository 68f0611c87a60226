import io

import pytest

from extfs.allocation import NoSpaceError
from extfs.directory import FileSystem, NotFoundError
from extfs.files import (
    MAX_DEV_NUM,
    MAX_FILE_NUM,
    STD_IN,
    STD_OUT,
    FileTable,
    OpenFlags,
    Stat,
    Whence,
)
from extfs.layout import (
    DIRENTRY_SIZE,
    SECTOR_NUM,
    SECTORS_PER_BLOCK,
    DirEntry,
    Disk,
    FileSystemError,
    FileType,
)

RW_CREATE = OpenFlags.READ | OpenFlags.WRITE | OpenFlags.CREATE


@pytest.fixture
def fs():
    disk = Disk.blank(SECTOR_NUM, 0)
    return FileSystem.format(disk, SECTOR_NUM, SECTORS_PER_BLOCK)


@pytest.fixture
def files(fs):
    return FileTable(fs)


class FakeInput:
    def __init__(self, data):
        self.data = data
        self.requested = []

    def read(self, size):
        self.requested.append(size)
        return self.data[:size]


def add_devices(fs):
    root, root_offset = fs.lookup("/")
    dev, dev_offset = fs.create(root, root_offset, "dev", FileType.DIRECTORY)
    fs.create(dev, dev_offset, "stdout", FileType.CHARACTER)
    fs.create(dev, dev_offset, "stdin", FileType.CHARACTER)


def test_open_missing_without_create(files):
    with pytest.raises(NotFoundError):
        files.open("/nothing", OpenFlags.READ)


def test_first_descriptor_follows_devices(files):
    assert files.open("/a", RW_CREATE) == MAX_DEV_NUM


def test_write_then_read_back(files):
    fd = files.open("/test", RW_CREATE)
    assert files.write(fd, b"hello") == 5
    assert files.lseek(fd, 0, Whence.SET) == 0
    assert files.read(fd, 100) == b"hello"
    assert files.read(fd, 100) == b""


def test_reopen_keeps_content(files):
    fd = files.open("/test", RW_CREATE)
    data = bytes(range(65, 91))
    files.write(fd, data)
    files.close(fd)
    fd = files.open("/test", OpenFlags.READ)
    assert files.read(fd, 1024) == data


def test_multi_block_round_trip(files, fs):
    data = bytes(range(256)) * 12
    fd = files.open("/big", RW_CREATE)
    assert files.write(fd, data) == len(data)
    files.lseek(fd, 0, Whence.SET)
    assert files.read(fd, len(data) + 10) == data
    info = files.stat("/big")
    assert info.size == len(data)
    assert info.block_count * fs.block_size >= len(data)
    assert (info.block_count - 1) * fs.block_size < len(data)


def test_read_in_pieces(files):
    data = bytes(range(256)) * 8
    fd = files.open("/f", RW_CREATE)
    files.write(fd, data)
    files.lseek(fd, 0, Whence.SET)
    pieces = []
    while chunk := files.read(fd, 300):
        pieces.append(chunk)
    assert b"".join(pieces) == data


def test_write_after_gap_reads_zeros(files):
    fd = files.open("/gap", RW_CREATE)
    assert files.lseek(fd, 2000, Whence.SET) == 2000
    assert files.write(fd, b"x") == 1
    files.lseek(fd, 0, Whence.SET)
    assert files.read(fd, 5000) == bytes(2000) + b"x"


def test_lseek_end_and_cur(files):
    fd = files.open("/f", RW_CREATE)
    files.write(fd, b"hello")
    assert files.lseek(fd, 0, Whence.END) == len(b"hello")
    assert files.lseek(fd, -2, Whence.CUR) == len(b"hello") - 2
    assert files.read(fd, 10) == b"lo"


def test_lseek_invalid_whence(files):
    fd = files.open("/f", RW_CREATE)
    with pytest.raises(FileSystemError):
        files.lseek(fd, 0, 7)


def test_lseek_on_device_descriptor(files):
    with pytest.raises(FileSystemError):
        files.lseek(STD_OUT, 0, Whence.SET)


def test_negative_offset_rejected_on_read(files):
    fd = files.open("/f", RW_CREATE)
    files.lseek(fd, -10, Whence.SET)
    with pytest.raises(FileSystemError):
        files.read(fd, 1)


def test_write_needs_write_flag(files):
    fd = files.open("/f", OpenFlags.READ | OpenFlags.CREATE)
    with pytest.raises(FileSystemError):
        files.write(fd, b"x")


def test_read_needs_read_flag(files):
    fd = files.open("/f", OpenFlags.WRITE | OpenFlags.CREATE)
    with pytest.raises(FileSystemError):
        files.read(fd, 1)


def test_close_releases_descriptor(files):
    fd = files.open("/f", RW_CREATE)
    files.close(fd)
    with pytest.raises(FileSystemError):
        files.read(fd, 1)
    with pytest.raises(FileSystemError):
        files.close(fd)
    assert files.open("/f", OpenFlags.READ) == fd


def test_close_device_descriptor_fails(files):
    with pytest.raises(FileSystemError):
        files.close(STD_OUT)


def test_descriptor_table_runs_out(files):
    names = ["/a", "/b", "/c", "/d"]
    fds = {files.open(name, RW_CREATE) for name in names}
    assert fds == set(range(MAX_DEV_NUM, MAX_DEV_NUM + MAX_FILE_NUM))
    with pytest.raises(FileSystemError):
        files.open("/e", RW_CREATE)
    assert files.stat("/e").file_type == FileType.REGULAR


def test_directory_flag_checks(files):
    fd = files.open("/usr/", OpenFlags.CREATE | OpenFlags.DIRECTORY)
    files.close(fd)
    assert files.stat("/usr").file_type == FileType.DIRECTORY
    with pytest.raises(FileSystemError):
        files.open("/usr", OpenFlags.READ)
    files.close(files.open("/plain", RW_CREATE))
    with pytest.raises(FileSystemError):
        files.open("/plain", OpenFlags.READ | OpenFlags.DIRECTORY)


def test_relative_path_cannot_be_created(files):
    with pytest.raises(FileSystemError):
        files.open("relative", RW_CREATE)


def test_read_directory_entries(files):
    files.close(files.open("/usr/", OpenFlags.CREATE | OpenFlags.DIRECTORY))
    fd = files.open("/", OpenFlags.READ | OpenFlags.DIRECTORY)
    raw = files.read(fd, 1024)
    assert len(raw) == files.stat("/").size
    assert DirEntry.unpack(raw[:DIRENTRY_SIZE]).name == "usr"


def test_stat_fields(files):
    fd = files.open("/f", RW_CREATE)
    files.write(fd, b"abc")
    info = files.stat("/f")
    assert info == Stat(FileType.REGULAR, 1, 1, 3)


def test_stat_missing(files):
    with pytest.raises(NotFoundError):
        files.stat("/missing")


def test_remove_releases_space(files, fs):
    inodes_before = fs.superblock.avail_inode_num
    fd = files.open("/f", RW_CREATE)
    blocks_before = fs.superblock.avail_block_num
    files.write(fd, bytes(5000))
    files.close(fd)
    assert fs.superblock.avail_block_num < blocks_before
    files.remove("/f")
    assert fs.superblock.avail_block_num == blocks_before
    assert fs.superblock.avail_inode_num == inodes_before
    with pytest.raises(NotFoundError):
        files.stat("/f")


def test_remove_directory_must_be_empty(files):
    files.close(files.open("/usr/", OpenFlags.CREATE | OpenFlags.DIRECTORY))
    files.close(files.open("/usr/a", RW_CREATE))
    with pytest.raises(FileSystemError):
        files.remove("/usr/")
    files.remove("/usr/a")
    files.remove("/usr/")
    with pytest.raises(NotFoundError):
        files.stat("/usr")


def test_remove_root_fails(files):
    with pytest.raises(FileSystemError):
        files.remove("/")


def test_remove_missing_fails(files):
    with pytest.raises(NotFoundError):
        files.remove("/missing")


def test_stdout_binary_stream(fs):
    out = io.BytesIO()
    files = FileTable(fs, stdout=out)
    assert files.write(STD_OUT, b"hi") == 2
    assert out.getvalue() == b"hi"


def test_stdout_text_stream(fs):
    out = io.StringIO()
    files = FileTable(fs, stdout=out)
    files.write(STD_OUT, b"abc\n")
    assert out.getvalue() == "abc\n"


def test_stdout_missing(files):
    with pytest.raises(FileSystemError):
        files.write(STD_OUT, b"x")


def test_stdin_reads_device(fs):
    keyboard = FakeInput(b"abc")
    files = FileTable(fs, stdin=keyboard)
    assert files.read(STD_IN, 10) == b"abc"
    assert keyboard.requested == [10]


def test_stdin_text_is_encoded(fs):
    files = FileTable(fs, stdin=FakeInput("xyz"))
    assert files.read(STD_IN, 2) == b"xy"


def test_open_device_file_returns_device(fs):
    add_devices(fs)
    files = FileTable(fs, stdout=io.BytesIO())
    assert files.open("/dev/stdout", OpenFlags.WRITE) == STD_OUT
    assert files.open("/dev/stdin", OpenFlags.READ) == STD_IN
    with pytest.raises(FileSystemError):
        files.remove("/dev/stdout")


def test_write_stops_when_disk_is_full():
    sectors = 2062
    disk = Disk.blank(sectors, 0)
    fs = FileSystem.format(disk, sectors, SECTORS_PER_BLOCK)
    files = FileTable(fs)
    fd = files.open("/f", RW_CREATE)
    data = bytes(range(256)) * 20
    written = files.write(fd, data)
    assert 0 < written < len(data)
    assert written % fs.block_size == 0
    assert fs.superblock.avail_block_num == 0
    assert files.stat("/f").size == written
    files.lseek(fd, 0, Whence.SET)
    assert files.read(fd, len(data)) == data[:written]
    with pytest.raises(NoSpaceError):
        files.write(fd, b"more")
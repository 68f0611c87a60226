"""Small user programs on an open-file table: ls, cat, find and a demo session."""

from __future__ import annotations

import argparse
import contextlib
import sys

from .directory import FileSystem
from .files import FileTable, OpenFlags
from .layout import (
    DEFAULT_BASE_SECTOR,
    DIRENTRY_SIZE,
    SECTOR_NUM,
    SECTORS_PER_BLOCK,
    DirEntry,
    Disk,
    FileSystemError,
    FileType,
)

_CHUNK = 512 * 2


def _names(files: FileTable, path: str) -> list[str]:
    """Names in a directory, in on-disk order."""
    fd = files.open(path, OpenFlags.READ | OpenFlags.DIRECTORY)
    try:
        names = []
        while chunk := files.read(fd, _CHUNK):
            for start in range(0, len(chunk) - DIRENTRY_SIZE + 1, DIRENTRY_SIZE):
                entry = DirEntry.unpack(chunk[start : start + DIRENTRY_SIZE])
                if entry.inode != 0:
                    names.append(entry.name)
        return names
    finally:
        files.close(fd)


def ls(files: FileTable, path: str, out) -> list[str]:
    """Print the names in directory ``path`` on one line and return them."""
    out.write(f"ls {path}\n")
    names = _names(files, path)
    out.write("".join(f"{name} " for name in names))
    out.write("\n")
    return names


def cat(files: FileTable, path: str, out) -> bytes:
    """Print the contents of file ``path`` and return them."""
    out.write(f"cat {path}\n")
    fd = files.open(path, OpenFlags.READ)
    try:
        chunks = []
        while chunk := files.read(fd, _CHUNK):
            out.write(chunk.decode("utf-8", "replace"))
            chunks.append(chunk)
        return b"".join(chunks)
    finally:
        files.close(fd)


def match(path: str, name: str) -> bool:
    """Whether ``name`` occurs anywhere in ``path``."""
    return bool(path) and name in path


def find(files: FileTable, directory: str, name: str, out) -> list[str]:
    """Print and return every regular file below ``directory`` whose path holds ``name``."""
    try:
        info = files.stat(directory)
    except FileSystemError:
        out.write(f"cannot stat file: {directory}\n")
        raise
    found: list[str] = []
    if info.file_type == FileType.REGULAR:
        if match(directory, name):
            out.write(f"{directory}\n")
            found.append(directory)
    elif info.file_type == FileType.DIRECTORY:
        prefix = directory.rstrip("/") + "/"
        for child in _names(files, directory):
            found.extend(find(files, prefix + child, name, out))
    return found


def _attempt():
    return contextlib.suppress(FileSystemError)


def demo(files: FileTable, out) -> None:
    """Run the sample session: list, create, read, remove and search files.

    A step that fails is skipped and the session goes on.
    """
    with _attempt():
        ls(files, "/", out)
    with _attempt():
        ls(files, "/dev/", out)

    out.write("create /usr/test and write alphabets to it\n")
    with _attempt():
        fd = files.open("/usr/test", OpenFlags.WRITE | OpenFlags.READ | OpenFlags.CREATE)
        try:
            for letter in range(ord("A"), ord("Z") + 1):
                files.write(fd, bytes([letter]))
        finally:
            files.close(fd)

    with _attempt():
        ls(files, "/usr/", out)
    with _attempt():
        cat(files, "/usr/test", out)
    out.write("\n")
    out.write("rm /usr/test\n")
    with _attempt():
        files.remove("/usr/test")
    with _attempt():
        ls(files, "/usr/", out)
    out.write("rmdir /usr/\n")
    with _attempt():
        files.remove("/usr/")
    with _attempt():
        ls(files, "/", out)
    out.write("create /usr/\n")
    with _attempt():
        files.close(files.open("/usr/", OpenFlags.CREATE | OpenFlags.DIRECTORY))
    with _attempt():
        ls(files, "/", out)

    out.write("\n")
    out.write("find test.txt in /data\n")
    with _attempt():
        find(files, "/data", "test.txt", out)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="extfs", description="Work with a filesystem image.")
    parser.add_argument("image", help="path of the disk image")
    parser.add_argument(
        "--base-sector",
        type=int,
        default=DEFAULT_BASE_SECTOR,
        help="first sector of the filesystem within the image",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    mkfs = sub.add_parser("mkfs", help="create a new formatted image")
    mkfs.add_argument("--sectors", type=int, default=SECTOR_NUM)
    mkfs.add_argument("--sectors-per-block", type=int, default=SECTORS_PER_BLOCK)
    ls_cmd = sub.add_parser("ls", help="list a directory")
    ls_cmd.add_argument("path", nargs="?", default="/")
    cat_cmd = sub.add_parser("cat", help="print a file")
    cat_cmd.add_argument("path")
    find_cmd = sub.add_parser("find", help="search for files by name")
    find_cmd.add_argument("directory")
    find_cmd.add_argument("name")
    sub.add_parser("demo", help="run the sample session and save the image")
    return parser


def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    out = sys.stdout
    try:
        if args.command == "mkfs":
            disk = Disk.blank(args.sectors, args.base_sector)
            FileSystem.format(disk, args.sectors, args.sectors_per_block)
            disk.save(args.image)
            return 0
        disk = Disk.from_file(args.image, args.base_sector)
        files = FileTable(FileSystem.mount(disk), stdout=out)
        if args.command == "ls":
            ls(files, args.path, out)
        elif args.command == "cat":
            cat(files, args.path, out)
        elif args.command == "find":
            find(files, args.directory, args.name, out)
        else:
            demo(files, out)
            disk.save(args.image)
    except (FileSystemError, OSError) as error:
        print(f"extfs: {error}", file=sys.stderr)
        return 1
    return 0
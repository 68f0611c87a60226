# extfs

`extfs` is a small ext-style filesystem stored in a disk image. The image is
split into block groups. Each group holds a copy of the superblock, the group
descriptor table, an inode bitmap, a block bitmap, an inode table and data
blocks. A file reaches its data through twelve direct block pointers and then
singly, doubly and triply indirect pointer blocks. A directory is a list of
128-byte entries, each holding the byte offset of an inode and a name of up to
64 bytes. An entry whose inode offset is 0 is a free slot.

Around the filesystem the package has a table of open files, `printf`/`scanf`
style formatting, a model of a round-robin scheduler with semaphores, a
scan-code keyboard decoder, and a command-line tool.

## Installing

```
pip install .
```

The package has no runtime dependencies. To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `extfs.layout`: the on-disk records `SuperBlock`, `GroupDesc`, `Inode` and
  `DirEntry`, each with `pack()` and `unpack()`, the `FileType` enumeration,
  the `FileSystemError` exception, and `Disk`. A `Disk` is a byte-addressed
  image whose offsets count from its `base_sector`. Sectors before
  `base_sector` are a reserved area, 201 sectors by default. Create one with
  `Disk.blank(sector_num, base_sector)`, load one with
  `Disk.from_file(path, base_sector)`, and write it out with `save(path)`.
- `extfs.geometry`: `group_count`, `group_size`, `inodes_per_group` and
  `blocks_per_group` give the block-group layout for a disk size and a block
  size in sectors. `needed_pointer_blocks` gives the number of extra pointer
  blocks a file needs when it grows by one block.
- `extfs.allocation`: `Volume` formats a disk (`Volume.format`) or mounts one
  (`Volume.mount`). It reads and writes inodes and file blocks, appends blocks
  to a file (`alloc_block`) and frees them (`free_last_block`, `free_blocks`).
  It raises `NoSpaceError` when no block or inode is left.
- `extfs.directory`: `FileSystem`, a `Volume` with a root directory. It adds
  `lookup(path)` for absolute paths, `entries` and `dir_entry` for reading
  directories, and `create` and `unlink` for files and directories. `unlink`
  refuses a directory that is not empty. Paths that do not resolve raise
  `NotFoundError`.
- `extfs.files`: `FileTable(fs, stdout, stdin)` holds up to four open files,
  with descriptors numbered from 4, and provides `open`, `read`, `write`,
  `lseek`, `close`, `remove` and `stat`. It uses `OpenFlags` (`READ`, `WRITE`,
  `CREATE`, `DIRECTORY`) and `Whence` (`SET`, `CUR`, `END`), and `stat`
  returns a `Stat` record. Descriptor 0 writes to the `stdout` stream and
  descriptor 1 reads from the `stdin` stream. Opening `/dev/stdout` or
  `/dev/stdin`, when they exist in the filesystem, returns those descriptors.
  A write that runs out of space stores what fits and returns the byte count.
- `extfs.formatting`: `format_message(fmt, *args)` supports `%d`, `%x`, `%s`,
  `%c` and `%%`, and stops at the first unknown directive.
  `scan(fmt, source)` reads from a string or a readable stream. It supports
  `%d`, `%x` (written with a `0x` prefix), `%c`, `%<width>s` and `%%`, and
  returns the values converted before the first mismatch. It raises
  `ScanError` when the format string itself is malformed.
- `extfs.process`: `Scheduler` keeps a fixed process table. Process 0 idles
  and process 1 starts runnable. Each `tick()` counts down sleepers, uses up
  time slices and chooses the next process round-robin. `fork`, `sleep`,
  `exit`, `block` and `wake` change process states. `SemaphoreTable` provides
  counting semaphores (`init`, `wait`, `post`, `destroy`) and wakes blocked
  processes in the order they blocked. A bad or unused index raises
  `SemaphoreError`.
- `extfs.keyboard`: `Keyboard.translate(code)` turns set-1 scan codes into
  characters and tracks the shift and caps-lock state. `push` and `feed`
  buffer codes, and `read(size)` returns at most `size - 1` characters.
  `is_valid_code` reports which codes are accepted.
- `extfs.shell`: `ls`, `cat` and `find` over a `FileTable`, each printing to a
  stream. `match(path, name)` checks whether a name occurs in a path. `demo`
  runs a sample session: it lists directories, creates `/usr/test` and writes
  the alphabet into it, prints it, removes it and `/usr/`, creates `/usr/`
  again and searches `/data` for `test.txt`. Any step that fails is skipped.

## Examples

```python
from extfs.formatting import format_message

format_message("%s has %d entries (0x%x)", "/dev", 2, 255)
# '/dev has 2 entries (0xff)'
```

```python
import io

from extfs.directory import FileSystem
from extfs.files import FileTable, OpenFlags
from extfs.layout import Disk

disk = Disk.blank(8196, 0)
fs = FileSystem.format(disk, 8196, 2)
files = FileTable(fs, stdout=io.StringIO())

fd = files.open("/notes", OpenFlags.CREATE | OpenFlags.WRITE | OpenFlags.READ)
files.write(fd, b"hello")
files.lseek(fd, 0, 0)
files.read(fd, 100)   # b'hello'
files.close(fd)
files.stat("/notes")  # Stat(file_type=<FileType.REGULAR: 1>, link_count=1, block_count=1, size=5)
```

## Command line

The `extfs` command takes an image path and a subcommand:

```
extfs disk.img mkfs [--sectors N] [--sectors-per-block N]
extfs disk.img ls [PATH]
extfs disk.img cat PATH
extfs disk.img find DIRECTORY NAME
extfs disk.img demo
```

`mkfs` writes a new formatted image. By default it holds 8196 sectors with two
sectors per block. `ls`, `cat` and `find` read an existing image. `demo` runs
the sample session on the image and saves the result. The `--base-sector N`
option, given before the subcommand, sets how many sectors of the image come
before the filesystem. The default is 201. On a filesystem or file error the
command prints `extfs: <message>` to standard error and exits with status 1.

## What the package does not do

- The command line has no commands to make directories, write files or remove
  them. Those operations are available only through `FileSystem` and
  `FileTable`, or through the fixed steps of `demo`.
- `Scheduler` and `SemaphoreTable` record process states only. They run no
  code, copy no memory and do not switch contexts.
- `Keyboard` decodes scan codes that it is given. It does not read a real
  keyboard, and the console streams are ordinary Python streams.
- Nothing here boots or loads programs from an image.
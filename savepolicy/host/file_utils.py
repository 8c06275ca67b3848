"""Small file helpers used around the save lifecycle."""

import logging
import os
import stat
from typing import Iterable

logger = logging.getLogger(__name__)

KIND_REGULAR = "regular"
KIND_DIRECTORY = "directory"
KIND_SYMLINK = "symlink"
KIND_FIFO = "fifo"
KIND_SOCKET = "socket"
KIND_CHAR_DEVICE = "char_device"
KIND_BLOCK_DEVICE = "block_device"
KIND_MISSING = "missing"

# Add an execute bit wherever the matching read bit is set
_READ_TO_EXEC = (
    (stat.S_IRUSR, stat.S_IXUSR),
    (stat.S_IRGRP, stat.S_IXGRP),
    (stat.S_IROTH, stat.S_IXOTH),
)


def locate_file(
    name: str,
    directories: Iterable[str],
    suffixes: Iterable[str] = ("",),
) -> str | None:
    """Search ``directories`` in order for ``name`` plus one of ``suffixes``.

    Absolute names are checked as-is. Returns the first regular file
    found, or None.
    """
    suffixes = list(suffixes)
    if os.path.isabs(name):
        directories = [os.path.dirname(name)]
        name = os.path.basename(name)
    for directory in directories:
        directory = os.path.expanduser(directory)
        for suffix in suffixes:
            candidate = os.path.join(directory, name + suffix)
            if os.path.isfile(candidate):
                return os.path.abspath(candidate)
    return None


def classify_file(path: str) -> str:
    """Kind of filesystem entry at ``path``; symlinks are not followed."""
    try:
        mode = os.lstat(path).st_mode
    except FileNotFoundError:
        return KIND_MISSING
    if stat.S_ISLNK(mode):
        return KIND_SYMLINK
    if stat.S_ISDIR(mode):
        return KIND_DIRECTORY
    if stat.S_ISREG(mode):
        return KIND_REGULAR
    if stat.S_ISFIFO(mode):
        return KIND_FIFO
    if stat.S_ISSOCK(mode):
        return KIND_SOCKET
    if stat.S_ISCHR(mode):
        return KIND_CHAR_DEVICE
    if stat.S_ISBLK(mode):
        return KIND_BLOCK_DEVICE
    return KIND_MISSING


def read_tail(path: str, lines: int = 10, encoding: str = "utf-8",
              block_size: int = 4096) -> str:
    """Return the last ``lines`` lines of a file, reading backwards in blocks."""
    if lines <= 0:
        return ""
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        end = f.tell()
        pos = end
        data = b""
        # one extra newline covers a trailing line terminator
        while pos > 0 and data.count(b"\n") <= lines:
            step = min(block_size, pos)
            pos -= step
            f.seek(pos)
            data = f.read(step) + data

    text = data.decode(encoding, errors="replace")
    kept = text.splitlines(keepends=True)[-lines:]
    return "".join(kept)


def is_script(path: str) -> bool:
    """True if the file starts with a ``#!`` interpreter line."""
    try:
        with open(path, "rb") as f:
            return f.read(2) == b"#!"
    except OSError:
        return False


def make_executable_if_script(path: str) -> bool:
    """Give a script execute permission matching its read permission.

    Returns True if the mode was changed.
    """
    if not is_script(path):
        return False
    mode = stat.S_IMODE(os.stat(path).st_mode)
    new_mode = mode
    for read_bit, exec_bit in _READ_TO_EXEC:
        if mode & read_bit:
            new_mode |= exec_bit
    if new_mode == mode:
        return False
    os.chmod(path, new_mode)
    logger.info("Made %s executable (%o -> %o)", path, mode, new_mode)
    return True

"""Filesystem capabilities consumed by the relocation and throttle policies.

Only metadata is touched here: writability checks, stat, and
create-if-absent for fallback directories.
"""

import logging
import os
import stat
from dataclasses import dataclass
from typing import Callable

from savepolicy.config.settings import FALLBACK_DIR_MODE
from savepolicy.policy.errors import FilesystemError, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStat:
    path: str
    mtime: float
    size: int
    mode: int
    is_regular_file: bool
    is_directory: bool


def is_writable(path: str) -> bool:
    """Return True if the current user may write to ``path``.

    For a path that does not exist yet, the question becomes whether it
    could be created, i.e. whether its parent directory is writable.
    """
    path = os.path.abspath(path)
    if os.path.exists(path):
        if os.path.isdir(path):
            return os.access(path, os.W_OK | os.X_OK)
        return os.access(path, os.W_OK)
    parent = os.path.dirname(path)
    return os.path.isdir(parent) and os.access(parent, os.W_OK | os.X_OK)


def stat_path(path: str) -> FileStat:
    """Stat ``path``, following symlinks.

    Raises NotFound if it does not exist and FilesystemError for any
    other failure (permission, I/O).
    """
    try:
        st = os.stat(path)
    except FileNotFoundError:
        raise NotFound(path) from None
    except OSError as exc:
        raise FilesystemError(f"Cannot stat {path}: {exc.strerror}", path) from exc
    return FileStat(
        path=path,
        mtime=st.st_mtime,
        size=st.st_size,
        mode=st.st_mode,
        is_regular_file=stat.S_ISREG(st.st_mode),
        is_directory=stat.S_ISDIR(st.st_mode),
    )


def ensure_directory(
    path: str,
    mode: int = FALLBACK_DIR_MODE,
    is_writable: Callable[[str], bool] = is_writable,
) -> str:
    """Create ``path`` (and parents) if absent and return it.

    Losing a creation race to another caller counts as success. Raises
    FilesystemError if the directory cannot be created, if the path is
    occupied by a non-directory, or if the result is not writable.
    """
    path = os.path.abspath(path)
    created = not os.path.isdir(path)
    if created:
        try:
            os.makedirs(path, mode=mode, exist_ok=True)
        except FileExistsError as exc:
            raise FilesystemError(f"Not a directory: {path}", path) from exc
        except OSError as exc:
            raise FilesystemError(
                f"Cannot create directory {path}: {exc.strerror}", path
            ) from exc
        try:
            os.chmod(path, mode)
        except OSError:
            logger.debug("Could not set permissions on %s", path)
        logger.info("Created fallback directory %s", path)

    if not is_writable(path):
        raise FilesystemError(f"Directory is not writable: {path}", path)
    return path

"""Host naming conventions for backup and autosave files.

    report.txt       original
    report.txt~      simple backup
    report.txt.~3~   numbered backup, version 3
    #report.txt#     autosave
"""

import logging
import os
import re
from typing import Iterable

from savepolicy.config.settings import (
    AUTOSAVE_MARKER,
    NUMBERED_BACKUP_PATTERN,
    SIMPLE_BACKUP_SUFFIX,
)

logger = logging.getLogger(__name__)

_NUMBERED_RE = re.compile(NUMBERED_BACKUP_PATTERN)


def simple_backup_name(path: str) -> str:
    return path + SIMPLE_BACKUP_SUFFIX


def numbered_backup_name(path: str, version: int) -> str:
    if version < 1:
        raise ValueError(f"Backup versions start at 1, got {version}")
    return f"{path}.~{version}~"


def autosave_name(path: str, marker: str = AUTOSAVE_MARKER) -> str:
    """Default autosave path: ``#name#`` in the file's own directory."""
    directory, filename = os.path.split(os.path.abspath(path))
    return os.path.join(directory, f"{marker}{filename}{marker}")


def backup_versions(path: str, directories: Iterable[str]) -> list[tuple[int, str]]:
    """Numbered backups of ``path`` found in ``directories``, oldest version first."""
    base = os.path.basename(path)
    prefix = base + "."
    found: dict[str, tuple[int, str]] = {}
    for directory in directories:
        try:
            names = os.listdir(directory)
        except OSError:
            continue
        for name in names:
            if not name.startswith(prefix):
                continue
            m = _NUMBERED_RE.search(name)
            if not m or m.start() != len(base):
                continue
            full = os.path.join(directory, name)
            found.setdefault(full, (int(m.group(1)), full))
    return sorted(found.values())


def next_backup_version(path: str, directories: Iterable[str]) -> int:
    versions = backup_versions(path, directories)
    return versions[-1][0] + 1 if versions else 1


def find_newest_backup(path: str, directories: Iterable[str]) -> str | None:
    """Most recently modified backup (simple or numbered) of ``path``."""
    directories = list(dict.fromkeys(directories))
    candidates = [full for _, full in backup_versions(path, directories)]
    base = os.path.basename(path)
    for directory in directories:
        simple = os.path.join(directory, simple_backup_name(base))
        if os.path.isfile(simple):
            candidates.append(simple)

    newest, newest_mtime = None, None
    for candidate in candidates:
        try:
            mtime = os.path.getmtime(candidate)
        except OSError:
            continue
        if newest_mtime is None or mtime > newest_mtime:
            newest, newest_mtime = candidate, mtime
    return newest


def versions_to_prune(
    versions: list[tuple[int, str]],
    kept_new: int,
    kept_old: int,
) -> list[str]:
    """Backups dropped when keeping the ``kept_old`` oldest and ``kept_new`` newest."""
    if len(versions) <= kept_new + kept_old:
        return []
    end = len(versions) - kept_new
    return [full for _, full in versions[kept_old:end]]

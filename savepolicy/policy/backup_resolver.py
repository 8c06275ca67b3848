"""Relocate backup files whose canonical directory is not writable."""

import logging
import os
from typing import Callable

from savepolicy.policy import fs_access
from savepolicy.policy.fallback import FallbackPolicy, host_identity

logger = logging.getLogger(__name__)


class BackupPathResolver:
    """Pick the destination for a new backup file.

    The host computes its default backup path first; ``resolve_backup_path``
    is applied to that result. Writable directories are left alone,
    anything else is redirected into the directory chosen by the
    fallback policy.
    """

    def __init__(
        self,
        policy: FallbackPolicy,
        host: str | None = None,
        is_writable: Callable[[str], bool] = fs_access.is_writable,
        ensure_directory: Callable[[str], str] = fs_access.ensure_directory,
    ):
        self.policy = policy
        self.host = host or host_identity()
        self._is_writable = is_writable
        self._ensure_directory = ensure_directory

    def fallback_directory(self, backup_path: str) -> str:
        return self.policy.fallback_directory(os.path.abspath(backup_path), self.host)

    def resolve_backup_path(self, original_backup_path: str) -> str:
        """Return where the backup should actually be written.

        Raises FilesystemError if the fallback directory cannot be
        created or is not writable either.
        """
        path = os.path.abspath(os.path.expanduser(original_backup_path))
        directory, filename = os.path.split(path)
        if self._is_writable(directory):
            return path

        target_dir = self._ensure_directory(self.fallback_directory(path))
        resolved = os.path.join(target_dir, filename)
        logger.info("Backup directory %s not writable, using %s", directory, resolved)
        return resolved

"""Save, autosave and close lifecycle for editor buffers.

Composes the relocation and throttle policies explicitly: the host
computes its default backup/autosave names, then hands them to the
resolver/encoder for post-processing.

Usage::

    mgr = SaveManager(load_config())
    buf = mgr.open_buffer("/etc/hosts")
    buf.set_text("127.0.0.1 localhost\\n")
    mgr.autosave(buf)
    result = mgr.save(buf)
    mgr.close()
"""

import functools
import logging
import os
import shutil
import time
from dataclasses import dataclass
from typing import Callable

from savepolicy.config.loader import PolicyConfig, configure_logging
from savepolicy.database.event_log import (
    EVENT_AUTOSAVE,
    EVENT_BACKUP,
    EVENT_FORCED_BACKUP,
    EVENT_PRUNED,
    SaveEventLog,
)
from savepolicy.host import naming
from savepolicy.host.file_utils import make_executable_if_script
from savepolicy.policy import fs_access
from savepolicy.policy.autosave_encoder import AutosavePathEncoder
from savepolicy.policy.backup_resolver import BackupPathResolver
from savepolicy.policy.backup_throttle import BackupThrottle

logger = logging.getLogger(__name__)


@dataclass
class Buffer:
    """In-memory contents of a file being edited."""
    path: str
    text: str = ""
    modified: bool = False
    backed_up: bool = False
    encoding: str = "utf-8"

    def set_text(self, text: str):
        self.text = text
        self.modified = True


@dataclass
class SaveResult:
    path: str
    backup_path: str | None
    forced_backup: bool
    made_executable: bool
    autosave_removed: str | None = None


class SaveManager:
    """Host-side save machinery wired to the relocation/throttle policies."""

    def __init__(
        self,
        config: PolicyConfig,
        event_log: SaveEventLog | None = None,
        is_writable: Callable[[str], bool] = fs_access.is_writable,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.event_log = event_log
        ensure_directory = functools.partial(fs_access.ensure_directory, is_writable=is_writable)
        self.resolver = BackupPathResolver(
            config.backup_policy, host=config.host,
            is_writable=is_writable, ensure_directory=ensure_directory,
        )
        self.encoder = AutosavePathEncoder(
            config.autosave_root_template, host=config.host,
            is_writable=is_writable, ensure_directory=ensure_directory,
        )
        self.throttle = BackupThrottle(
            find_newest_backup=self.find_newest_backup,
            interval=config.backup_interval,
            clock=clock,
        )

    @classmethod
    def from_config(cls, config: PolicyConfig, setup_logging: bool = True, **kwargs) -> "SaveManager":
        """Build a manager with the event log and log level named in ``config``."""
        if setup_logging:
            configure_logging(config.log_level)
        event_log = SaveEventLog(config.event_db_path) if config.event_db_path else None
        return cls(config, event_log=event_log, **kwargs)

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    def open_buffer(self, path: str, encoding: str = "utf-8") -> Buffer:
        path = os.path.abspath(os.path.expanduser(path))
        text = ""
        if os.path.isfile(path):
            with open(path, encoding=encoding) as f:
                text = f.read()
        return Buffer(path=path, text=text, encoding=encoding)

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def backup_directories(self, path: str) -> list[str]:
        """Directories that may hold backups of ``path``: its own and the fallbacks.

        Fallback rules are matched against backup names, as the resolver does.
        """
        path = os.path.abspath(path)
        names = (naming.simple_backup_name(path), naming.numbered_backup_name(path, 1))
        directories = [os.path.dirname(path)]
        directories.extend(self.resolver.fallback_directory(name) for name in names)
        return list(dict.fromkeys(directories))

    def find_newest_backup(self, path: str) -> str | None:
        return naming.find_newest_backup(path, self.backup_directories(path))

    def default_backup_path(self, path: str) -> str:
        """Name the host would give the next backup, before relocation."""
        if not self.config.version_control:
            return naming.simple_backup_name(path)
        version = naming.next_backup_version(path, self.backup_directories(path))
        return naming.numbered_backup_name(path, version)

    def make_backup(self, path: str) -> str:
        """Copy ``path`` to its (possibly relocated) backup name.

        FilesystemError from the resolver propagates.
        """
        default = self.default_backup_path(path)
        target = self.resolver.resolve_backup_path(default)
        shutil.copy2(path, target)
        relocated = target != os.path.abspath(default)
        logger.info("Backed up %s -> %s", path, target)
        self._log(EVENT_BACKUP, path, target, relocated=relocated)

        if self.config.version_control and self.config.delete_old_versions:
            self.prune_old_versions(path)
        return target

    def prune_old_versions(self, path: str) -> list[str]:
        versions = naming.backup_versions(path, self.backup_directories(path))
        doomed = naming.versions_to_prune(
            versions, self.config.kept_new_versions, self.config.kept_old_versions,
        )
        removed = []
        for old in doomed:
            try:
                os.remove(old)
            except OSError as exc:
                logger.warning("Could not delete old backup %s: %s", old, exc)
                continue
            removed.append(old)
            self._log(EVENT_PRUNED, path, old)
        if removed:
            logger.info("Deleted %d old backup(s) of %s", len(removed), path)
        return removed

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, buffer: Buffer) -> SaveResult:
        """Write the buffer to disk, backing up the previous contents first."""
        forced = False
        if buffer.backed_up and self.throttle.should_force_backup(buffer.path):
            buffer.backed_up = False
            forced = True
            logger.info("Newest backup of %s is stale, forcing a new one", buffer.path)

        backup_path = None
        if not buffer.backed_up and os.path.isfile(buffer.path):
            backup_path = self.make_backup(buffer.path)
            if forced:
                self._log(EVENT_FORCED_BACKUP, buffer.path, backup_path)
        buffer.backed_up = True

        os.makedirs(os.path.dirname(buffer.path), exist_ok=True)
        with open(buffer.path, "w", encoding=buffer.encoding) as f:
            f.write(buffer.text)
        buffer.modified = False

        made_exec = make_executable_if_script(buffer.path)
        removed = self.remove_autosave(buffer)

        return SaveResult(
            path=buffer.path,
            backup_path=backup_path,
            forced_backup=forced,
            made_executable=made_exec,
            autosave_removed=removed,
        )

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    def autosave_path(self, buffer: Buffer) -> str:
        return self.encoder.encode_autosave_path(naming.autosave_name(buffer.path))

    def autosave(self, buffer: Buffer) -> str | None:
        """Write unsaved changes to the autosave file. Returns its path."""
        if not buffer.modified:
            return None
        default = naming.autosave_name(buffer.path)
        target = self.encoder.encode_autosave_path(default)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "w", encoding=buffer.encoding) as f:
            f.write(buffer.text)
        logger.debug("Autosaved %s -> %s", buffer.path, target)
        self._log(EVENT_AUTOSAVE, buffer.path, target, relocated=target != default)
        return target

    def remove_autosave(self, buffer: Buffer) -> str | None:
        # Check both candidate names so a stale relocated copy is not left behind
        default = naming.autosave_name(buffer.path)
        relocated = os.path.join(self.encoder.fallback_root, self.encoder.relocated_name(default))
        removed = None
        for candidate in (default, relocated):
            if not os.path.isfile(candidate):
                continue
            try:
                os.remove(candidate)
            except OSError as exc:
                logger.warning("Could not delete autosave file %s: %s", candidate, exc)
                continue
            removed = candidate
        return removed

    def close_buffer(self, buffer: Buffer) -> str | None:
        """Close a buffer, autosaving unsaved changes if configured."""
        if buffer.modified and self.config.autosave_on_close:
            return self.autosave(buffer)
        return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _log(self, event_type: str, file_path: str, target: str, relocated: bool = False):
        if self.event_log is not None:
            self.event_log.log_event(event_type, file_path, target, relocated)

    def close(self):
        if self.event_log is not None:
            self.event_log.close()

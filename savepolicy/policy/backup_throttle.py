"""Time-based forcing of fresh numbered backups.

A buffer is normally backed up once per editing session. The throttle
re-arms that backup when the newest existing backup is older than the
configured interval:

    NO_PRIOR_BACKUP  - nothing on disk, the host's normal path applies
    FRESH            - newest backup younger than the interval
    STALE            - newest backup at least ``interval`` seconds old

State is read from backup mtimes on every call; nothing is cached.
"""

import logging
import time
from typing import Callable

from savepolicy.config.settings import DEFAULT_BACKUP_INTERVAL
from savepolicy.policy import fs_access
from savepolicy.policy.errors import NotFound

logger = logging.getLogger(__name__)

STATE_NO_PRIOR_BACKUP = "NO_PRIOR_BACKUP"
STATE_FRESH = "FRESH"
STATE_STALE = "STALE"


def validate_interval(interval: float) -> float:
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise ValueError(f"Backup interval must be a number of seconds, got {interval!r}")
    if interval < 0:
        raise ValueError(f"Backup interval must be a non-negative number, got {interval!r}")
    return interval


class BackupThrottle:
    """Decide whether the "already backed up" flag should be cleared."""

    def __init__(
        self,
        find_newest_backup: Callable[[str], str | None],
        interval: float = DEFAULT_BACKUP_INTERVAL,
        stat: Callable[[str], fs_access.FileStat] = fs_access.stat_path,
        clock: Callable[[], float] = time.time,
    ):
        self.interval = validate_interval(interval)
        self._find_newest_backup = find_newest_backup
        self._stat = stat
        self._clock = clock

    def state(self, file_path: str, interval: float | None = None) -> str:
        """Classify the newest backup of ``file_path``.

        Lookup failures propagate; see should_force_backup for the
        fail-open wrapper.
        """
        interval = self.interval if interval is None else validate_interval(interval)
        newest = self._find_newest_backup(file_path)
        if newest is None:
            return STATE_NO_PRIOR_BACKUP
        try:
            mtime = self._stat(newest).mtime
        except NotFound:
            return STATE_NO_PRIOR_BACKUP

        elapsed = self._clock() - mtime
        if elapsed >= interval:
            return STATE_STALE
        return STATE_FRESH

    def should_force_backup(self, file_path: str, interval: float | None = None) -> bool:
        """True iff the newest backup is at least ``interval`` seconds old.

        Never raises: lookup errors are logged and treated as "no backup".
        """
        try:
            current = self.state(file_path, interval)
        except Exception:
            logger.exception("Backup throttle check failed for %s", file_path)
            return False

        logger.debug("Backup state for %s: %s", file_path, current)
        return current == STATE_STALE

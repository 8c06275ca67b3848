"""Process-wide policy configuration.

Loaded once from JSON at startup and passed explicitly to the
components that need it. Reconfiguring means building a new value::

    config = load_config("config/config.json")
    config = dataclasses.replace(config, backup_interval=600)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from savepolicy.config.settings import (
    CATCH_ALL_PATTERN,
    DEFAULT_AUTOSAVE_FALLBACK,
    DEFAULT_BACKUP_FALLBACK,
    DEFAULT_BACKUP_INTERVAL,
    DEFAULT_EVENT_DB_PATH,
    KEPT_NEW_VERSIONS,
    KEPT_OLD_VERSIONS,
    LOG_FORMAT,
)
from savepolicy.policy.backup_throttle import validate_interval
from savepolicy.policy.fallback import FallbackPolicy, host_identity

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = str(PROJECT_ROOT / "config" / "config.json")


def _default_backup_policy() -> FallbackPolicy:
    return FallbackPolicy.catch_all(DEFAULT_BACKUP_FALLBACK)


@dataclass(frozen=True)
class PolicyConfig:
    backup_interval: float = DEFAULT_BACKUP_INTERVAL
    backup_policy: FallbackPolicy = field(default_factory=_default_backup_policy)
    autosave_root_template: str = DEFAULT_AUTOSAVE_FALLBACK
    host: str = field(default_factory=host_identity)
    version_control: bool = True
    kept_new_versions: int = KEPT_NEW_VERSIONS
    kept_old_versions: int = KEPT_OLD_VERSIONS
    delete_old_versions: bool = False
    autosave_on_close: bool = True
    event_db_path: str | None = None
    log_level: str = "INFO"

    def __post_init__(self):
        validate_interval(self.backup_interval)
        if self.kept_new_versions < 1:
            raise ValueError("kept_new_versions must be at least 1")
        if self.kept_old_versions < 0:
            raise ValueError("kept_old_versions must be non-negative")
        if not self.host:
            raise ValueError("host identity must not be empty")

    @classmethod
    def from_dict(cls, data: dict) -> "PolicyConfig":
        backup = data.get("backup", {})
        autosave = data.get("autosave", {})
        rules = backup.get("fallback") or [[CATCH_ALL_PATTERN, DEFAULT_BACKUP_FALLBACK]]
        return cls(
            backup_interval=backup.get("interval_seconds", DEFAULT_BACKUP_INTERVAL),
            backup_policy=FallbackPolicy(tuple(r) for r in rules),
            autosave_root_template=autosave.get("fallback_root", DEFAULT_AUTOSAVE_FALLBACK),
            host=data.get("host") or host_identity(),
            version_control=backup.get("version_control", True),
            kept_new_versions=backup.get("kept_new_versions", KEPT_NEW_VERSIONS),
            kept_old_versions=backup.get("kept_old_versions", KEPT_OLD_VERSIONS),
            delete_old_versions=backup.get("delete_old_versions", False),
            autosave_on_close=autosave.get("on_close", True),
            event_db_path=data.get("database", {}).get("path"),
            log_level=data.get("logging", {}).get("level", "INFO"),
        )

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "backup": {
                "interval_seconds": self.backup_interval,
                "version_control": self.version_control,
                "kept_new_versions": self.kept_new_versions,
                "kept_old_versions": self.kept_old_versions,
                "delete_old_versions": self.delete_old_versions,
                "fallback": self.backup_policy.to_list(),
            },
            "autosave": {
                "fallback_root": self.autosave_root_template,
                "on_close": self.autosave_on_close,
            },
            "database": {"path": self.event_db_path or DEFAULT_EVENT_DB_PATH},
            "logging": {"level": self.log_level},
        }


def load_config(config_path: str = None) -> PolicyConfig:
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        data = json.load(f)
    logger.debug("Loaded configuration from %s", path)
    return PolicyConfig.from_dict(data)


def configure_logging(level: str = None):
    level = level or os.environ.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
    )

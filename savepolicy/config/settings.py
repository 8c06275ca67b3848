"""Backup and autosave relocation defaults."""

import os

# Minimum age of the newest backup before a fresh numbered one is forced
DEFAULT_BACKUP_INTERVAL = 3600

# Patterns treated as "match every path" in a fallback policy
CATCH_ALL_PATTERNS = frozenset({"", ".", ".*"})
CATCH_ALL_PATTERN = "."

# Placeholder interpolated with the machine identity in fallback templates
HOST_PLACEHOLDER = "{host}"

DEFAULT_BACKUP_FALLBACK = os.path.join("~", ".emacs.d", "file-backups", HOST_PLACEHOLDER)
DEFAULT_AUTOSAVE_FALLBACK = os.path.join("~", ".emacs.d", "auto-save-list", HOST_PLACEHOLDER)

# Autosave names look like "#name#"; relocated ones keep the leading marker
AUTOSAVE_MARKER = "#"

# Replaces path separators when a directory is flattened into one name
FLATTEN_SENTINEL = "!"

# Suffixes of the host's backup naming scheme: name~ and name.~N~
SIMPLE_BACKUP_SUFFIX = "~"
NUMBERED_BACKUP_PATTERN = r"\.~([1-9][0-9]*)~$"

# Numbered-backup retention (only applied when delete_old_versions is on)
KEPT_NEW_VERSIONS = 2
KEPT_OLD_VERSIONS = 2

# Owner-only access on fallback directories we create
FALLBACK_DIR_MODE = 0o700

DEFAULT_EVENT_DB_PATH = os.path.join("data", "save_events.db")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

"""Relocation of autosave files out of unwritable directories.

The host names an autosave file ``#name#`` beside the original. When
that directory is not writable, the whole directory path is flattened
into the file name and the file moves under a per-host fallback root:

    /etc/nginx/#nginx.conf#  ->  <root>/#!etc!nginx!nginx.conf#

Separators map one-to-one onto the sentinel, so directories differing
only in depth never collide. Sentinels already present in a name are
not escaped; decoding such names is ambiguous.
"""

import logging
import os
from typing import Callable, Iterator

from savepolicy.config.settings import (
    AUTOSAVE_MARKER,
    DEFAULT_AUTOSAVE_FALLBACK,
    FLATTEN_SENTINEL,
)
from savepolicy.policy import fs_access
from savepolicy.policy.fallback import expand_template, host_identity

logger = logging.getLogger(__name__)


def flatten_directory(directory: str, sentinel: str = FLATTEN_SENTINEL) -> str:
    """Encode a directory path as a single name component.

    The directory is taken with a trailing separator, so ``/a/b``
    becomes ``!a!b!``.
    """
    directory = os.path.join(directory, "")
    flat = directory.replace(os.sep, sentinel)
    if os.altsep:
        flat = flat.replace(os.altsep, sentinel)
    return flat


def unflatten_directory(flat: str, sentinel: str = FLATTEN_SENTINEL) -> str:
    return flat.replace(sentinel, os.sep)


class AutosavePathEncoder:
    """Post-process host autosave paths.

    Usage::

        encoder = AutosavePathEncoder("~/.emacs.d/auto-save-list/{host}")
        encoder.encode_autosave_path("/etc/#hosts#")
    """

    def __init__(
        self,
        root_template: str = DEFAULT_AUTOSAVE_FALLBACK,
        host: str | None = None,
        marker: str = AUTOSAVE_MARKER,
        sentinel: str = FLATTEN_SENTINEL,
        is_writable: Callable[[str], bool] = fs_access.is_writable,
        ensure_directory: Callable[[str], str] = fs_access.ensure_directory,
    ):
        if len(marker) != 1 or len(sentinel) != 1:
            raise ValueError("marker and sentinel must be single characters")
        self.root_template = root_template
        self.host = host or host_identity()
        self.marker = marker
        self.sentinel = sentinel
        self._is_writable = is_writable
        self._ensure_directory = ensure_directory

    @property
    def fallback_root(self) -> str:
        return expand_template(self.root_template, self.host)

    def relocated_name(self, default_autosave_path: str) -> str:
        """Flattened file name for ``default_autosave_path`` (no I/O)."""
        path = os.path.abspath(default_autosave_path)
        directory, filename = os.path.split(path)
        bare = filename[1:] if filename.startswith(self.marker) else filename
        return self.marker + flatten_directory(directory, self.sentinel) + bare

    def encode_autosave_path(self, default_autosave_path: str) -> str:
        """Return the autosave path to use instead of the host default.

        Raises FilesystemError if the fallback root cannot be created or
        is not writable.
        """
        path = os.path.abspath(os.path.expanduser(default_autosave_path))
        directory = os.path.dirname(path)
        if self._is_writable(directory):
            return path

        root = self._ensure_directory(self.fallback_root)
        resolved = os.path.join(root, self.relocated_name(path))
        logger.info("Autosave directory %s not writable, using %s", directory, resolved)
        return resolved

    def decode_autosave_path(self, relocated_path: str) -> str:
        """Recover the host default autosave path from a relocated one.

        The flattened directory is assumed to end at the last sentinel in
        the name.
        """
        filename = os.path.basename(relocated_path)
        if not filename.startswith(self.marker):
            raise ValueError(f"Not a relocated autosave name: {relocated_path}")
        encoded = filename[1:]
        cut = encoded.rfind(self.sentinel)
        if cut < 0:
            raise ValueError(f"Not a relocated autosave name: {relocated_path}")
        directory = unflatten_directory(encoded[:cut + 1], self.sentinel)
        return os.path.join(directory, self.marker + encoded[cut + 1:])

    def original_file(self, relocated_path: str) -> str:
        """Path of the file whose contents a relocated autosave holds."""
        default = self.decode_autosave_path(relocated_path)
        directory, filename = os.path.split(default)
        name = filename[1:]
        if name.endswith(self.marker):
            name = name[:-1]
        return os.path.join(directory, name)

    def list_relocated_autosaves(self) -> Iterator[tuple[str, str]]:
        """Yield ``(relocated_path, original_file)`` under the fallback root."""
        root = self.fallback_root
        try:
            names = sorted(os.listdir(root))
        except FileNotFoundError:
            return
        for name in names:
            full = os.path.join(root, name)
            if not os.path.isfile(full):
                continue
            try:
                yield full, self.original_file(full)
            except ValueError:
                logger.debug("Skipping foreign file in autosave root: %s", full)

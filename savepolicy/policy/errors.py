"""Error taxonomy for path probing and fallback-directory creation."""


class FilesystemError(OSError):
    """Permission or I/O failure while probing or creating a path."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NotFound(FileNotFoundError):
    """A path that was expected to exist does not.

    Callers treat this as a normal outcome (e.g. no prior backup).
    """

    def __init__(self, path: str):
        super().__init__(f"No such file or directory: {path}")
        self.path = path

"""Custom exceptions for the polling watcher package."""

from pathlib import Path
from typing import Optional, Union


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class LifecycleError(WatcherError):
    """A start/stop transition was requested out of order."""
    pass


class AlreadyStartedError(LifecycleError):
    """Watcher has already been started (or closed)."""
    pass


class AlreadyClosedError(LifecycleError):
    """Watcher has already been closed."""
    pass


class FilesystemError(WatcherError):
    """
    A watched path could not be listed.

    Attributes:
        path: The path that failed
        errno: OS error number, if the failure came from the OS
    """

    def __init__(
        self,
        path: Union[str, Path],
        message: str,
        errno: Optional[int] = None,
    ):
        super().__init__(message)
        self.path = Path(path)
        self.errno = errno

    @staticmethod
    def from_os_error(path: Union[str, Path], exc: OSError) -> "FilesystemError":
        """
        Wrap an OSError, picking NotFoundError for missing paths.

        A path whose parent was replaced by a regular file fails with
        NotADirectoryError; that path no longer exists either.
        """
        missing = isinstance(exc, (FileNotFoundError, NotADirectoryError))
        error_cls = NotFoundError if missing else FilesystemError
        return error_cls(path, f"name {path} with error {exc.strerror or exc}", exc.errno)


class NotFoundError(FilesystemError):
    """Watched path does not exist."""
    pass


class ChannelClosedError(WatcherError):
    """Channel has been closed; no more items will be delivered."""
    pass

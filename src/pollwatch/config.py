"""Configuration for the polling watcher package."""

import fnmatch
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class WatcherConfig:
    """
    Configuration options for the polling watcher.

    Attributes:
        interval_ms: Poll interval used when start() is given no interval
        detect_chmod: Whether permission-only changes are reported as CHMOD
        ignore_patterns: Glob patterns for directory children to leave out
        send_poll_ms: How often a blocked event send re-checks for shutdown
    """
    interval_ms: int = 1000
    detect_chmod: bool = False
    ignore_patterns: List[str] = field(default_factory=list)
    send_poll_ms: int = 50

    @property
    def interval(self) -> float:
        """Poll interval in seconds."""
        return self.interval_ms / 1000.0

    def validate(self) -> None:
        """
        Check option values.

        Raises:
            ValueError: If an interval is not positive
        """
        if self.interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive: {self.interval_ms}")
        if self.send_poll_ms <= 0:
            raise ValueError(f"send_poll_ms must be positive: {self.send_poll_ms}")

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = str(path)
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, f"*/{pattern}"):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False

"""Data models for the polling watcher package."""

import os
import stat
import time
from dataclasses import dataclass, field
from enum import Flag, auto
from pathlib import Path
from typing import Dict, Optional, Tuple


class ChangeKind(Flag):
    """Kinds of filesystem change. Several kinds may be set on one event."""
    CREATE = auto()
    REMOVE = auto()
    MODIFY = auto()
    RENAME = auto()
    CHMOD = auto()
    MOVE = auto()

    def __str__(self) -> str:
        return classify(self)


# Rendering order for classify()
_KIND_ORDER = (
    ChangeKind.CREATE,
    ChangeKind.REMOVE,
    ChangeKind.MODIFY,
    ChangeKind.RENAME,
    ChangeKind.CHMOD,
    ChangeKind.MOVE,
)

NO_CHANGE = ChangeKind(0)


def classify(kind: ChangeKind) -> str:
    """
    Render the set flags as a ``|``-joined label.

    Args:
        kind: Flags to render

    Returns:
        Label such as ``"MODIFY|CHMOD"``, or ``""`` if no flag is set
    """
    return "|".join(member.name for member in _KIND_ORDER if kind & member)


@dataclass(frozen=True)
class FileMetadata:
    """
    Metadata recorded for one tracked path.

    Attributes:
        mtime_ns: Modification time in nanoseconds
        size: Size in bytes
        is_dir: Whether the path was a directory when listed
        mode: Raw st_mode bits
        device: Device number of the underlying file object
        inode: Inode number of the underlying file object
    """
    mtime_ns: int
    size: int
    is_dir: bool = False
    mode: int = 0
    device: int = 0
    inode: int = 0

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "FileMetadata":
        """Create from an os.stat_result."""
        return cls(
            mtime_ns=st.st_mtime_ns,
            size=st.st_size,
            is_dir=stat.S_ISDIR(st.st_mode),
            mode=st.st_mode,
            device=st.st_dev,
            inode=st.st_ino,
        )

    @property
    def identity(self) -> Tuple[int, int]:
        """Token identifying the underlying file object regardless of path."""
        return (self.device, self.inode)

    def same_file(self, other: Optional["FileMetadata"]) -> bool:
        """Check whether both records denote the same file object."""
        if other is None:
            return False
        return self.identity == other.identity

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "mtime_ns": self.mtime_ns,
            "size": self.size,
            "is_dir": self.is_dir,
            "mode": self.mode,
            "device": self.device,
            "inode": self.inode,
        }


Snapshot = Dict[Path, FileMetadata]


@dataclass(frozen=True)
class Event:
    """
    A change detected between two snapshots.

    Attributes:
        path: Absolute path the change refers to (the old path for
            RENAME/MOVE)
        kind: The change flags
        metadata: Metadata captured when the change was detected
        dest_path: For RENAME/MOVE events, where the file now lives
        timestamp: Unix timestamp when the change was detected
    """
    path: Path
    kind: ChangeKind
    metadata: Optional[FileMetadata] = None
    dest_path: Optional[Path] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")
        if self.dest_path is not None and not self.dest_path.is_absolute():
            raise ValueError(f"dest_path must be absolute: {self.dest_path}")

    @property
    def label(self) -> str:
        return classify(self.kind)

    def is_directory(self) -> bool:
        """True if the path was a directory when the change was detected."""
        return self.metadata is not None and self.metadata.is_dir

    def has_kinds(self, *kinds: ChangeKind) -> bool:
        """True if any of the given kinds is set on this event."""
        return any(self.kind & kind for kind in kinds)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": str(self.path),
            "kind": self.label,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "dest_path": str(self.dest_path) if self.dest_path else None,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        if self.dest_path is not None:
            return f"{self.label} {self.path} -> {self.dest_path}"
        return f"{self.label} {self.path}"


def is_directory_event(event: Optional[Event]) -> bool:
    """Check if an event refers to a directory; False for a missing event."""
    if event is None:
        return False
    return event.is_directory()


def matches_any(event: Optional[Event], *kinds: ChangeKind) -> bool:
    """Check if an event carries any of the given kinds; False for a missing event."""
    if event is None:
        return False
    return event.has_kinds(*kinds)

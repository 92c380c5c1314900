"""
Polling Watcher Package

A portable filesystem change detector that periodically re-scans watched
paths instead of relying on OS-native notification APIs.

Features:
- Watch files and directories (direct children only)
- Change kinds: CREATE, REMOVE, MODIFY, RENAME, MOVE (CHMOD opt-in)
- Rename/move detection by file identity (device + inode)
- Unbuffered event and error channels that never stall shutdown
- One-shot start/close lifecycle safe to drive from any thread
"""

from .models import (
    ChangeKind,
    FileMetadata,
    Event,
    Snapshot,
    classify,
    is_directory_event,
    matches_any,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    LifecycleError,
    AlreadyStartedError,
    AlreadyClosedError,
    FilesystemError,
    NotFoundError,
    ChannelClosedError,
)

from .channel import HandoffChannel
from .snapshot import list_target, diff_snapshots, apply_events
from .registry import TargetRegistry
from .watcher import Watcher, WatcherState


__all__ = [
    # Models
    "ChangeKind",
    "FileMetadata",
    "Event",
    "Snapshot",
    "classify",
    "is_directory_event",
    "matches_any",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "LifecycleError",
    "AlreadyStartedError",
    "AlreadyClosedError",
    "FilesystemError",
    "NotFoundError",
    "ChannelClosedError",
    # Components
    "HandoffChannel",
    "list_target",
    "diff_snapshots",
    "apply_events",
    "TargetRegistry",
    # Main Watcher
    "Watcher",
    "WatcherState",
]

__version__ = "0.1.0"

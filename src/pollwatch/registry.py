"""Thread-safe registry of watch targets and their last snapshot."""

import logging
import threading
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple, Union

from .config import WatcherConfig
from .exceptions import FilesystemError, NotFoundError
from .models import Event, FileMetadata, Snapshot
from .snapshot import diff_snapshots, list_target

logger = logging.getLogger(__name__)


def normalize_path(name: Union[str, Path]) -> Path:
    """Turn a user-supplied name into the absolute path used as a key."""
    return Path(name).expanduser().resolve()


class TargetRegistry:
    """
    Thread-safe set of watch targets plus the snapshot of record.

    A target is a path registered with add_target. A tracked entry is a
    path present in the snapshot: every target, and every direct child
    of a directory target. All state is guarded by one re-entrant lock,
    exposed as ``lock`` so callers can make a check-then-act sequence
    atomic with a registry update.
    """

    def __init__(self, config: Optional[WatcherConfig] = None):
        """
        Initialize the registry.

        Args:
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()
        self._targets: Set[Path] = set()
        self._snapshot: Dict[Path, FileMetadata] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def add_target(self, name: Union[str, Path]) -> Path:
        """
        Register a target and merge its listing into the snapshot.

        Re-adding an existing target refreshes its entries.

        Args:
            name: File or directory to watch

        Returns:
            The normalized target path

        Raises:
            NotFoundError: If the path does not exist
            FilesystemError: If the path cannot be listed
        """
        path = normalize_path(name)

        with self._lock:
            listing = list_target(path, self.config)
            self._targets.add(path)
            self._snapshot.update(listing)

        logger.info(f"Watching {path} ({len(listing)} entries)")
        return path

    def remove_target(self, name: Union[str, Path]) -> bool:
        """
        Unregister a target and drop its entries.

        For a directory target, the entries of its direct children are
        dropped too, unless another target still tracks them.

        Args:
            name: Path previously passed to add_target

        Returns:
            True if the target was registered, False otherwise
        """
        path = normalize_path(name)

        with self._lock:
            if path not in self._targets:
                return False
            self._remove_locked(path)

        logger.info(f"Stopped watching {path}")
        return True

    def _remove_locked(self, path: Path) -> None:
        """Internal: drop a target; the lock must be held."""
        self._targets.discard(path)

        meta = self._snapshot.get(path)
        if meta is None:
            return
        if not self._is_tracked(path, self._targets):
            del self._snapshot[path]
        if not meta.is_dir:
            return

        children = [p for p in self._snapshot if p.parent == path and p != path]
        for child in children:
            if not self._is_tracked(child, self._targets):
                del self._snapshot[child]

    @staticmethod
    def _is_tracked(path: Path, targets: Set[Path]) -> bool:
        """Whether a path belongs to the snapshot of the given targets."""
        return path in targets or path.parent in targets

    def list_all_targets(self) -> Tuple[FrozenSet[Path], Snapshot, List[FilesystemError]]:
        """
        Re-list every registered target.

        The lock is held only to copy the target set and to deregister
        targets that no longer exist; the filesystem is listed without it.

        Returns:
            (targets listed, fresh snapshot, per-target errors)
        """
        targets = self.targets()
        current: Snapshot = {}
        errors: List[FilesystemError] = []

        for target in sorted(targets):
            try:
                listing = list_target(target, self.config)
            except FilesystemError as exc:
                errors.append(exc)
                if isinstance(exc, NotFoundError):
                    with self._lock:
                        if target in self._targets:
                            self._remove_locked(target)
                    logger.warning(f"Target vanished, no longer watching: {target}")
                else:
                    logger.warning(f"Failed to list {target}: {exc}")
                continue
            current.update(listing)

        logger.debug(f"Listed {len(targets)} target(s), {len(current)} entries")
        return targets, current, errors

    def commit(self, listed: FrozenSet[Path], current: Snapshot) -> List[Event]:
        """
        Diff a fresh listing against the snapshot of record and swap it in.

        The listing is first reconciled with registry changes made while
        it was being produced: entries of targets removed since are
        dropped, and entries of targets added since are carried over.

        Args:
            listed: The targets the listing was produced from
            current: Output of list_all_targets

        Returns:
            Events describing the change
        """
        with self._lock:
            targets = self._targets
            reconciled = {
                p: meta for p, meta in current.items() if self._is_tracked(p, targets)
            }
            added = targets - listed
            if added:
                for p, meta in self._snapshot.items():
                    if self._is_tracked(p, added):
                        reconciled.setdefault(p, meta)

            events = diff_snapshots(self._snapshot, reconciled, self.config.detect_chmod)
            self._snapshot = reconciled
            return events

    def targets(self) -> FrozenSet[Path]:
        """
        Get the current set of targets.

        Returns:
            Frozen set of target paths
        """
        with self._lock:
            return frozenset(self._targets)

    def snapshot(self) -> Snapshot:
        """
        Get a copy of the snapshot of record.

        Returns:
            Mapping of tracked path to metadata
        """
        with self._lock:
            return dict(self._snapshot)

    def has_target(self, name: Union[str, Path]) -> bool:
        path = normalize_path(name)
        with self._lock:
            return path in self._targets

    def clear(self) -> int:
        """
        Remove all targets and entries.

        Returns:
            Number of targets removed
        """
        with self._lock:
            count = len(self._targets)
            self._targets.clear()
            self._snapshot.clear()
            return count

    def __len__(self) -> int:
        """Return the number of targets."""
        with self._lock:
            return len(self._targets)

    def __contains__(self, name: Union[str, Path]) -> bool:
        """Check if a path is a target."""
        return self.has_target(name)

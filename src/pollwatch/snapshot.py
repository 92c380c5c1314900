"""Snapshot listing and diffing.

A snapshot maps every tracked path to the metadata it had when listed:
each target, plus the direct children of directory targets. Diffing two
snapshots yields the events that turn the first into the second.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from watchdog.utils.dirsnapshot import DirectorySnapshot

from .config import WatcherConfig
from .exceptions import FilesystemError
from .models import ChangeKind, Event, FileMetadata, NO_CHANGE, Snapshot

logger = logging.getLogger(__name__)


def list_target(path: Path, config: Optional[WatcherConfig] = None) -> Snapshot:
    """
    List a single target.

    A file target yields one entry. A directory target yields its own
    entry plus one entry per direct child; children that disappear
    before they can be statted are left out.

    Args:
        path: Absolute path of the target
        config: Watcher configuration (for ignore patterns)

    Returns:
        Snapshot of the target

    Raises:
        NotFoundError: If the target does not exist
        FilesystemError: If the target cannot be statted or listed
    """
    config = config or WatcherConfig()

    try:
        dirsnap = DirectorySnapshot(str(path), recursive=False)
    except OSError as exc:
        raise FilesystemError.from_os_error(path, exc) from exc

    listing: Snapshot = {}
    for entry in dirsnap.paths:
        entry_path = Path(entry)
        if entry_path != path and config.should_ignore(entry_path):
            continue
        listing[entry_path] = FileMetadata.from_stat(dirsnap.stat_info(entry))
    return listing


def diff_snapshots(
    previous: Snapshot,
    current: Snapshot,
    detect_chmod: bool = False,
) -> List[Event]:
    """
    Compute the events that turn ``previous`` into ``current``.

    Paths present in both snapshots are MODIFY candidates only. A path
    that disappeared and a path that appeared are coalesced into one
    RENAME (same parent directory) or MOVE (different parent) event when
    both denote the same file object; pairing is first-match in sorted
    path order. Whatever is left is reported as CREATE or REMOVE.

    Args:
        previous: Snapshot from the last cycle
        current: Freshly listed snapshot
        detect_chmod: Also report mode changes as CHMOD

    Returns:
        Events ordered MODIFY/CHMOD, RENAME/MOVE, CREATE, REMOVE, each
        group sorted by path
    """
    removed = {p: meta for p, meta in previous.items() if p not in current}
    created = {p: meta for p, meta in current.items() if p not in previous}
    events: List[Event] = []

    for path in sorted(current):
        if path in created:
            continue
        old, new = previous[path], current[path]
        kind = NO_CHANGE
        if old.mtime_ns != new.mtime_ns or old.size != new.size:
            kind |= ChangeKind.MODIFY
        if detect_chmod and old.mode != new.mode:
            kind |= ChangeKind.CHMOD
        if kind:
            events.append(Event(path=path, kind=kind, metadata=new))

    candidates = sorted(created)
    for old_path in sorted(removed):
        old_meta = removed[old_path]
        for new_path in candidates:
            new_meta = created.get(new_path)
            if new_meta is None or not old_meta.same_file(new_meta):
                continue
            if old_path.parent == new_path.parent:
                kind = ChangeKind.RENAME
            else:
                kind = ChangeKind.MOVE
            events.append(Event(path=old_path, kind=kind, metadata=new_meta, dest_path=new_path))
            del removed[old_path]
            del created[new_path]
            break

    for path in sorted(created):
        events.append(Event(path=path, kind=ChangeKind.CREATE, metadata=created[path]))

    for path in sorted(removed):
        events.append(Event(path=path, kind=ChangeKind.REMOVE, metadata=removed[path]))

    logger.debug(
        f"Diffed {len(previous)} -> {len(current)} entries: {len(events)} event(s)"
    )
    return events


def apply_events(snapshot: Snapshot, events: Iterable[Event]) -> Snapshot:
    """
    Replay events onto a snapshot.

    Args:
        snapshot: Snapshot the events were diffed against (not modified)
        events: Events from diff_snapshots

    Returns:
        The reconstructed snapshot
    """
    result = dict(snapshot)
    for event in events:
        if event.has_kinds(ChangeKind.RENAME, ChangeKind.MOVE):
            result.pop(event.path, None)
            if event.dest_path is not None and event.metadata is not None:
                result[event.dest_path] = event.metadata
        elif event.has_kinds(ChangeKind.REMOVE):
            result.pop(event.path, None)
        elif event.metadata is not None:
            result[event.path] = event.metadata
    return result

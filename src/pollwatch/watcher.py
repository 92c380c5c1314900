"""Polling watcher: lifecycle around the periodic scan loop."""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional, Tuple, Union

from .channel import HandoffChannel
from .config import WatcherConfig
from .exceptions import AlreadyClosedError, AlreadyStartedError
from .models import Snapshot
from .registry import TargetRegistry

logger = logging.getLogger(__name__)


class WatcherState(Enum):
    """Lifecycle states. IDLE -> RUNNING -> CLOSED, or IDLE -> CLOSED."""
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


class Watcher:
    """
    Polling filesystem watcher.

    Targets are registered with add()/remove(). Once started, a
    background thread re-lists all targets every interval, diffs the
    result against the previous snapshot, and hands the resulting
    events to ``events`` and any listing failures to ``errors``. A
    watcher runs at most once: start() succeeds only from IDLE, and
    close() shuts the loop down and closes both channels.
    """

    def __init__(self, config: Optional[WatcherConfig] = None):
        """
        Initialize an idle watcher.

        Args:
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()
        self.config.validate()

        poll_interval = self.config.send_poll_ms / 1000.0
        self.events = HandoffChannel("events", poll_interval)
        self.errors = HandoffChannel("errors", poll_interval)

        self._registry = TargetRegistry(self.config)
        self._closed = threading.Event()
        self._state = WatcherState.IDLE
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def _swap_state(self, expected: Tuple[WatcherState, ...], new: WatcherState) -> bool:
        """Internal: move to ``new`` only if currently in one of ``expected``."""
        with self._state_lock:
            if self._state not in expected:
                return False
            self._state = new
            return True

    def start(self, interval: Optional[float] = None) -> None:
        """
        Start polling in a background thread.

        Args:
            interval: Seconds between scans (defaults to config.interval)

        Raises:
            ValueError: If the interval is not positive
            AlreadyStartedError: If the watcher was started or closed before
        """
        interval = self.config.interval if interval is None else interval
        if interval <= 0:
            raise ValueError(f"interval must be positive: {interval}")

        # _thread is set whenever state is RUNNING
        with self._state_lock:
            if self._state is not WatcherState.IDLE:
                raise AlreadyStartedError("Watcher already started")
            self._state = WatcherState.RUNNING
            self._thread = threading.Thread(
                target=self._watch_loop,
                args=(interval,),
                name="PollWatcher",
                daemon=True,
            )
            self._thread.start()

        logger.info(f"Watcher started, interval={interval}s")

    def close(self) -> None:
        """
        Stop the watcher and release its state.

        Only the first call does anything. It signals the loop to stop,
        waits for it to exit, then closes both channels and clears all
        targets. Safe to call from any thread, before or after start().
        """
        if not self._swap_state((WatcherState.IDLE, WatcherState.RUNNING), WatcherState.CLOSED):
            return

        self._closed.set()
        self.events.interrupt()
        self.errors.interrupt()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

        self.events.close()
        self.errors.close()

        with self._registry.lock:
            self._registry.clear()
        logger.info("Watcher closed")

    def add(self, name: Union[str, Path]) -> Path:
        """
        Start watching a file or directory.

        Args:
            name: Path to watch

        Returns:
            The normalized target path

        Raises:
            AlreadyClosedError: If close() has been called
            NotFoundError: If the path does not exist
            FilesystemError: If the path cannot be listed
        """
        with self._registry.lock:
            self._check_open()
            return self._registry.add_target(name)

    def remove(self, name: Union[str, Path]) -> None:
        """
        Stop watching a path. Unknown paths are ignored.

        Args:
            name: Path previously passed to add()

        Raises:
            AlreadyClosedError: If close() has been called
        """
        with self._registry.lock:
            self._check_open()
            self._registry.remove_target(name)

    def _check_open(self) -> None:
        if self.state is WatcherState.CLOSED:
            raise AlreadyClosedError("Watcher already closed")

    def targets(self) -> FrozenSet[Path]:
        """Get the currently registered targets."""
        return self._registry.targets()

    def snapshot(self) -> Snapshot:
        """Get a copy of the current snapshot of record."""
        return self._registry.snapshot()

    @property
    def state(self) -> WatcherState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self.state is WatcherState.RUNNING

    def _watch_loop(self, interval: float) -> None:
        """Worker loop that runs one scan cycle per interval until closed."""
        logger.debug(f"Watch loop started, interval={interval}s")

        while not self._closed.wait(timeout=interval):
            try:
                self._scan_once()
            except Exception:
                logger.exception("Scan cycle failed")

        logger.debug("Watch loop exited")

    def _scan_once(self) -> None:
        """Run one list/diff/commit cycle and deliver its output."""
        listed, current, errors = self._registry.list_all_targets()

        for error in errors:
            if not self.errors.send(error, self._closed):
                return

        if self._closed.is_set():
            return

        events = self._registry.commit(listed, current)
        for event in events:
            logger.debug(f"Event: {event}")
            if not self.events.send(event, self._closed):
                return

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

"""Tests for the polling watcher lifecycle and end-to-end behaviour."""

import os
import pytest
import threading
import time
from pathlib import Path
from queue import Empty

from pollwatch.config import WatcherConfig
from pollwatch.exceptions import (
    AlreadyClosedError,
    AlreadyStartedError,
    ChannelClosedError,
    NotFoundError,
)
from pollwatch.models import ChangeKind
from pollwatch.watcher import Watcher, WatcherState


INTERVAL = 0.05


def next_event(watcher, timeout=5.0):
    """Return the next non-directory event, failing on any scan error."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            event = watcher.events.receive(timeout=0.05)
        except Empty:
            pass
        else:
            if event.is_directory():
                continue
            return event
        try:
            error = watcher.errors.receive(timeout=0.01)
        except Empty:
            continue
        pytest.fail(f"unexpected scan error: {error}")
    pytest.fail("timed out waiting for an event")


def settle():
    """Let any scan cycle already in flight finish."""
    time.sleep(INTERVAL * 6)


@pytest.fixture
def watcher():
    w = Watcher(WatcherConfig(send_poll_ms=10))
    yield w
    w.close()


class TestWatcherLifecycle:
    """Tests for start/close state transitions."""

    def test_new_watcher_is_idle(self, watcher):
        assert watcher.state is WatcherState.IDLE
        assert watcher.is_running is False
        assert watcher.targets() == frozenset()

    def test_start(self, watcher):
        watcher.start(INTERVAL)
        assert watcher.state is WatcherState.RUNNING
        assert watcher.is_running is True

    def test_start_twice_raises(self, watcher):
        watcher.start(INTERVAL)
        with pytest.raises(AlreadyStartedError):
            watcher.start(INTERVAL)

    def test_start_after_close_raises(self, watcher):
        watcher.close()
        with pytest.raises(AlreadyStartedError):
            watcher.start(INTERVAL)

    def test_start_rejects_non_positive_interval(self, watcher):
        with pytest.raises(ValueError):
            watcher.start(0)
        assert watcher.state is WatcherState.IDLE

    def test_start_uses_config_interval(self):
        w = Watcher(WatcherConfig(interval_ms=20))
        try:
            w.start()
            assert w.is_running
        finally:
            w.close()

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            Watcher(WatcherConfig(interval_ms=0))

    def test_close_running(self, watcher):
        watcher.start(INTERVAL)
        watcher.close()
        assert watcher.state is WatcherState.CLOSED
        assert watcher.is_running is False

    def test_close_idle(self, watcher):
        watcher.close()
        assert watcher.state is WatcherState.CLOSED
        assert watcher.events.closed
        assert watcher.errors.closed

    def test_close_twice_is_noop(self, watcher):
        watcher.start(INTERVAL)
        watcher.close()
        watcher.close()
        assert watcher.state is WatcherState.CLOSED

    def test_concurrent_close(self, watcher, tmp_path):
        watcher.add(tmp_path)
        watcher.start(INTERVAL)
        errors = []

        def close():
            try:
                watcher.close()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=close) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert errors == []
        assert watcher.state is WatcherState.CLOSED

    def test_channels_closed_after_close(self, watcher):
        watcher.start(INTERVAL)
        watcher.close()

        with pytest.raises(ChannelClosedError):
            watcher.events.receive(timeout=1)
        with pytest.raises(ChannelClosedError):
            watcher.errors.receive(timeout=1)
        assert list(watcher.events) == []

    def test_close_clears_targets(self, watcher, tmp_path):
        watcher.add(tmp_path)
        watcher.close()
        assert watcher.targets() == frozenset()
        assert watcher.snapshot() == {}

    def test_close_does_not_wait_for_consumer(self, tmp_path):
        w = Watcher(WatcherConfig(send_poll_ms=10))
        w.add(tmp_path)
        w.start(INTERVAL)
        for i in range(5):
            (tmp_path / f"f{i}").write_text("x")
        # nobody drains events, so the loop is parked on a send
        time.sleep(0.3)

        started = time.monotonic()
        w.close()

        assert time.monotonic() - started < 2.0
        assert w.state is WatcherState.CLOSED

    def test_context_manager(self, tmp_path):
        with Watcher() as w:
            w.add(tmp_path)
            w.start(INTERVAL)
            assert w.is_running

        assert w.state is WatcherState.CLOSED


class TestWatcherTargets:
    """Tests for add/remove."""

    def test_add_returns_normalized_path(self, watcher, tmp_path):
        path = watcher.add(str(tmp_path / "sub" / ".."))
        assert path == tmp_path.resolve()
        assert watcher.targets() == frozenset({path})

    def test_add_nonexistent_raises(self, watcher, tmp_path):
        watcher.add(tmp_path)
        before = watcher.snapshot()

        with pytest.raises(NotFoundError):
            watcher.add(tmp_path / "missing")

        assert watcher.targets() == frozenset({tmp_path.resolve()})
        assert watcher.snapshot() == before

    def test_remove(self, watcher, tmp_path):
        watcher.add(tmp_path)
        watcher.remove(tmp_path)
        assert watcher.targets() == frozenset()

    def test_remove_unknown_is_noop(self, watcher, tmp_path):
        watcher.remove(tmp_path / "never-added")
        assert watcher.targets() == frozenset()

    def test_add_after_close_raises(self, watcher, tmp_path):
        watcher.close()
        with pytest.raises(AlreadyClosedError):
            watcher.add(tmp_path)

    def test_remove_after_close_raises(self, watcher, tmp_path):
        watcher.add(tmp_path)
        watcher.close()
        with pytest.raises(AlreadyClosedError):
            watcher.remove(tmp_path)

    def test_add_while_running(self, watcher, tmp_path):
        watcher.start(INTERVAL)
        watcher.add(tmp_path)
        settle()

        (tmp_path / "late.txt").write_text("l")
        event = next_event(watcher)

        assert event.kind == ChangeKind.CREATE
        assert event.path == tmp_path.resolve() / "late.txt"


class TestWatcherEvents:
    """End-to-end scan behaviour."""

    def test_create_rename_remove_move(self, watcher, tmp_path):
        d = tmp_path.resolve() / "d"
        e = tmp_path.resolve() / "e"
        d.mkdir()
        e.mkdir()
        watcher.add(d)
        watcher.start(INTERVAL)

        (d / "a").touch()
        event = next_event(watcher)
        assert event.kind == ChangeKind.CREATE
        assert event.path == d / "a"

        os.rename(d / "a", d / "b")
        event = next_event(watcher)
        assert event.has_kinds(ChangeKind.RENAME)
        assert event.path == d / "a"
        assert event.dest_path == d / "b"

        (d / "b").unlink()
        event = next_event(watcher)
        assert event.kind == ChangeKind.REMOVE
        assert event.path == d / "b"

        (d / "a").touch()
        event = next_event(watcher)
        assert event.kind == ChangeKind.CREATE
        assert event.path == d / "a"

        watcher.add(e)
        settle()
        os.rename(d / "a", e / "a")
        event = next_event(watcher)
        assert event.has_kinds(ChangeKind.MOVE)
        assert not event.has_kinds(ChangeKind.RENAME)
        assert event.path == d / "a"
        assert event.dest_path == e / "a"

    def test_modify(self, watcher, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("one")
        watcher.add(f)
        watcher.start(INTERVAL)
        settle()

        f.write_text("three")
        event = next_event(watcher)

        assert event.kind == ChangeKind.MODIFY
        assert event.path == f.resolve()
        assert event.metadata is not None

    def test_nested_changes_not_reported(self, watcher, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        watcher.add(tmp_path)
        watcher.start(INTERVAL)
        settle()

        (sub / "nested.txt").write_text("n")
        (tmp_path / "top.txt").write_text("t")
        event = next_event(watcher)

        assert event.path == tmp_path.resolve() / "top.txt"

    def test_vanished_target_reported_and_dropped(self, watcher, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        target = watcher.add(f)
        watcher.start(INTERVAL)

        f.unlink()
        error = watcher.errors.receive(timeout=5)

        assert isinstance(error, NotFoundError)
        assert error.path == target
        assert watcher.targets() == frozenset()

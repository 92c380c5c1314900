#!/usr/bin/env python3
"""
CLI for watching paths and printing change events.

Usage:
    python -m pollwatch /path/to/folder /path/to/file.txt
    python -m pollwatch --interval 250 --json /path/to/folder
    python -m pollwatch --ignore "*.tmp" --chmod /path/to/folder
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
from queue import Empty
from typing import List, Optional

from dotenv import load_dotenv

from .config import WatcherConfig
from .exceptions import FilesystemError
from .watcher import Watcher

logger = logging.getLogger("pollwatch.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        self._previous = {
            signal.SIGINT: signal.signal(signal.SIGINT, self._handler),
            signal.SIGTERM: signal.signal(signal.SIGTERM, self._handler),
        }

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True

    def restore(self) -> None:
        """Reinstall the handlers that were active before."""
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)


def _log_errors(watcher: Watcher) -> None:
    """Drain the error channel until the watcher is closed."""
    for error in watcher.errors:
        logger.warning(f"Scan error: {error}")


def format_event(event, as_json: bool = False) -> str:
    """Render an event as a single output line."""
    if as_json:
        return json.dumps(event.to_dict())
    return str(event)


def cmd_watch(args) -> int:
    """Watch the given paths until interrupted."""
    config = WatcherConfig(
        interval_ms=args.interval,
        detect_chmod=args.chmod,
        ignore_patterns=list(args.ignore or []),
    )

    shutdown = GracefulShutdown()
    try:
        with Watcher(config) as watcher:
            for name in args.paths:
                try:
                    path = watcher.add(name)
                except FilesystemError as e:
                    logger.error(f"Cannot watch {name}: {e}")
                    return 1
                logger.info(f"  - {path}")

            error_thread = threading.Thread(
                target=_log_errors, args=(watcher,), name="ErrorLogger", daemon=True
            )
            error_thread.start()

            watcher.start()
            logger.info(f"Watching {len(args.paths)} path(s) every {args.interval}ms")
            logger.info("Press Ctrl+C to stop")

            printed = 0
            while not shutdown.should_exit:
                if args.count is not None and printed >= args.count:
                    break
                try:
                    event = watcher.events.receive(timeout=0.5)
                except Empty:
                    continue
                print(format_event(event, args.json), flush=True)
                printed += 1
    finally:
        shutdown.restore()

    logger.info("Watcher stopped")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pollwatch",
        description="Poll files and directories for changes and print events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch a directory once a second
  pollwatch ./documents

  # Poll faster and emit JSON lines
  pollwatch --interval 200 --json ./documents ./notes.txt

Environment:
  POLLWATCH_INTERVAL_MS  default poll interval (also read from .env)
        """,
    )
    parser.add_argument("paths", nargs="+", help="Files or directories to watch")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--interval",
        type=int,
        default=int(os.environ.get("POLLWATCH_INTERVAL_MS", "1000")),
        help="Poll interval in ms",
    )
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    parser.add_argument("--chmod", action="store_true", help="Report permission-only changes")
    parser.add_argument("--ignore", action="append", metavar="PATTERN", help="Glob pattern of children to ignore (repeatable)")
    parser.add_argument("--count", type=int, help="Exit after printing this many events")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.interval <= 0:
        parser.error(f"--interval must be positive: {args.interval}")

    return cmd_watch(args)


if __name__ == "__main__":
    sys.exit(main())

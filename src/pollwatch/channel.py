"""Unbuffered handoff channel between the scan loop and its consumer."""

import threading
import time
from queue import Empty
from typing import Any, Iterator, Optional, Set, Tuple

from .exceptions import ChannelClosedError


class HandoffChannel:
    """
    Rendezvous channel with no buffer.

    A send completes only once a receiver has taken the item. A blocked
    send gives up, withdrawing its item, as soon as its cancel event is
    set or the channel is closed, so a missing consumer can never stall
    shutdown.
    """

    def __init__(self, name: str = "channel", poll_interval: float = 0.05):
        """
        Initialize the channel.

        Args:
            name: Name used in error messages
            poll_interval: How often a blocked send re-checks its cancel event
        """
        self.name = name
        self.poll_interval = poll_interval
        self._cond = threading.Condition(threading.Lock())
        self._slot: Optional[Tuple[object, Any]] = None
        self._taken: Set[object] = set()
        self._closed = False

    def send(self, item: Any, cancel: Optional[threading.Event] = None) -> bool:
        """
        Hand an item to a receiver, blocking until it is taken.

        Args:
            item: The item to deliver
            cancel: Event that aborts the send when set

        Returns:
            True if a receiver took the item, False if the send was
            cancelled or the channel closed first

        Raises:
            ChannelClosedError: If the channel was already closed
        """
        token = object()

        with self._cond:
            if self._closed:
                raise ChannelClosedError(f"{self.name} channel is closed")

            while self._slot is not None:
                if self._closed or (cancel is not None and cancel.is_set()):
                    return False
                self._cond.wait(self.poll_interval)

            self._slot = (token, item)
            self._cond.notify_all()

            # a receiver records the token of every item it takes
            while token not in self._taken:
                if self._closed or (cancel is not None and cancel.is_set()):
                    if self._slot is not None and self._slot[0] is token:
                        self._slot = None
                        self._cond.notify_all()
                    return False
                self._cond.wait(self.poll_interval)

            self._taken.discard(token)
            return True

    def receive(self, timeout: Optional[float] = None) -> Any:
        """
        Take the next item, blocking until one is sent.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The item

        Raises:
            queue.Empty: If nothing was sent within the timeout
            ChannelClosedError: If the channel is closed
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while self._slot is None:
                if self._closed:
                    raise ChannelClosedError(f"{self.name} channel is closed")
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise Empty
                self._cond.wait(remaining)

            token, item = self._slot
            self._slot = None
            self._taken.add(token)
            self._cond.notify_all()
            return item

    def interrupt(self) -> None:
        """Wake blocked senders so they re-check their cancel events."""
        with self._cond:
            self._cond.notify_all()

    def close(self) -> None:
        """Close the channel. Blocked receivers get ChannelClosedError."""
        with self._cond:
            self._closed = True
            self._slot = None
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __iter__(self) -> Iterator[Any]:
        """Yield items until the channel is closed."""
        while True:
            try:
                yield self.receive()
            except ChannelClosedError:
                return

"""Fan-out of snapshots to remote subscribers."""

import concurrent.futures
import json
import logging
import threading
from typing import Protocol

from sysmonitor.models import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 0.5


class Subscriber(Protocol):
    """A remote viewer receiving serialized snapshots."""

    @property
    def is_open(self) -> bool: ...

    def send(self, message: str) -> concurrent.futures.Future:
        """
        Start delivering one message and return without waiting for it.

        The returned future completes once the message is written, or fails
        with the delivery error. Raise if the write cannot be started.
        """
        ...


def serialize_snapshot(snapshot: Snapshot) -> str:
    """Serialize a Snapshot to its JSON wire form."""
    return json.dumps(snapshot.to_dict(), separators=(",", ":"))


class BroadcastHub:
    """
    Registry of connected subscribers.

    Registration and removal replace an immutable tuple under a lock, so a
    broadcast iterates a consistent copy without holding the lock while it
    sends. The same handle registered twice receives two deliveries.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        """
        Initialize the BroadcastHub.

        Args:
            send_timeout: Seconds a broadcast waits for all pending writes
                together. Writes still pending after that are cancelled.
        """
        self._lock = threading.Lock()
        self._subscribers: tuple[Subscriber, ...] = ()
        self._send_timeout = send_timeout

    def __len__(self) -> int:
        return len(self._subscribers)

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        return self._subscribers

    @property
    def send_timeout(self) -> float:
        return self._send_timeout

    def register(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers = (*self._subscribers, subscriber)
        logger.info("Subscriber connected: %r (%d total)", subscriber, len(self._subscribers))

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove one registration of subscriber; no-op if it is not registered."""
        with self._lock:
            subscribers = list(self._subscribers)
            try:
                subscribers.remove(subscriber)
            except ValueError:
                return
            self._subscribers = tuple(subscribers)
        logger.info("Subscriber disconnected: %r (%d total)", subscriber, len(self._subscribers))

    def broadcast(self, snapshot: Snapshot) -> int:
        """
        Serialize snapshot once and send it to every open subscriber.

        All writes are started before any is waited on, so the whole
        broadcast takes at most send_timeout however many peers stall.
        A failing subscriber is logged and skipped; it stays registered until
        its transport reports the disconnect.

        Returns:
            Number of subscribers the snapshot was delivered to.
        """
        subscribers = self._subscribers
        if not subscribers:
            return 0

        message = serialize_snapshot(snapshot)
        pending: dict[concurrent.futures.Future, Subscriber] = {}
        for subscriber in subscribers:
            try:
                if not subscriber.is_open:
                    continue
                pending[subscriber.send(message)] = subscriber
            except Exception as exc:
                logger.warning("Failed to deliver snapshot to %r: %s", subscriber, exc)

        if not pending:
            return 0

        done, not_done = concurrent.futures.wait(pending, timeout=self._send_timeout)
        for future in not_done:
            future.cancel()
            logger.warning(
                "Failed to deliver snapshot to %r: send timed out after %ss",
                pending[future],
                self._send_timeout,
            )

        delivered = 0
        for future in done:
            if future.cancelled():
                logger.warning("Failed to deliver snapshot to %r: send cancelled", pending[future])
                continue
            exc = future.exception()
            if exc is not None:
                logger.warning("Failed to deliver snapshot to %r: %s", pending[future], exc)
                continue
            delivered += 1
        return delivered

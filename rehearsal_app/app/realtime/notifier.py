"""Band-scoped fan-out of change notifications.

The registry maps band ids to the Socket.IO connection ids currently joined to
that band. It is owned by the application (``app.extensions["band_notifier"]``)
rather than living at module level, and is cleared when the server stops.
"""
from __future__ import annotations
import logging
from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from typing import Any, Callable, Iterator, Optional
from flask import current_app

logger = logging.getLogger(__name__)

EVENT_CHANGED = "event-changed"
AVAILABILITY_CHANGED = "availability-changed"

# send(event_name, payload, connection_id)
Sender = Callable[[str, Any, str], None]


class BandChannelRegistry:
    """Thread-safe band id -> connection ids map."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._subscribers: dict[str, set[str]] = defaultdict(set)

    def join(self, connection_id: str, band_id: str) -> None:
        with self._lock:
            self._subscribers[str(band_id)].add(connection_id)

    def leave(self, connection_id: str, band_id: str) -> bool:
        band_id = str(band_id)
        with self._lock:
            members = self._subscribers.get(band_id)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._subscribers[band_id]
            return True

    def disconnect(self, connection_id: str) -> list[str]:
        """Remove the connection from every band and return the bands it left."""
        with self._lock:
            left = [band_id for band_id, members in self._subscribers.items() if connection_id in members]
            for band_id in left:
                members = self._subscribers[band_id]
                members.discard(connection_id)
                if not members:
                    del self._subscribers[band_id]
            return left

    def subscribers(self, band_id: str) -> frozenset[str]:
        # snapshot so callers can iterate while joins/leaves continue
        with self._lock:
            return frozenset(self._subscribers.get(str(band_id), ()))

    def is_subscribed(self, connection_id: str, band_id: str) -> bool:
        with self._lock:
            return connection_id in self._subscribers.get(str(band_id), ())

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


class BandNotifier:
    """Delivers a payload to every connection subscribed to a band.

    Delivery is best-effort and at-most-once: nothing is stored, so a
    connection that is not subscribed at publish time never sees the message.
    Publishes to the same band go through one lock, which keeps per-connection
    order equal to publish order within a band.
    """

    def __init__(self, registry: BandChannelRegistry, send: Sender) -> None:
        self.registry = registry
        self._send = send
        # band id -> (lock, publishers using it); an entry lives only while in use
        self._dispatch_locks: dict[str, tuple[Lock, int]] = {}
        self._locks_guard = Lock()

    @contextmanager
    def _dispatch_lock(self, band_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._dispatch_locks.get(band_id, (None, 0))
            if lock is None:
                lock = Lock()
            self._dispatch_locks[band_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                current = self._dispatch_locks.get(band_id)
                # close() may have dropped the entry while this publish ran
                if current is not None and current[0] is lock:
                    if current[1] == 1:
                        del self._dispatch_locks[band_id]
                    else:
                        self._dispatch_locks[band_id] = (lock, current[1] - 1)

    def publish(self, band_id: str, event_name: str, payload: Any, skip: Optional[str] = None) -> int:
        """Send ``payload`` as ``event_name`` to the band's subscribers; returns deliveries made."""
        band_id = str(band_id)
        delivered = 0
        with self._dispatch_lock(band_id):
            for connection_id in self.registry.subscribers(band_id):
                if connection_id == skip:
                    continue
                try:
                    self._send(event_name, payload, connection_id)
                except Exception:
                    logger.exception("Failed to deliver %s to %s (band %s)", event_name, connection_id, band_id)
                    continue
                delivered += 1
        logger.info("Published %s to band %s (%d deliveries)", event_name, band_id, delivered)
        return delivered

    def close(self) -> None:
        self.registry.clear()
        with self._locks_guard:
            self._dispatch_locks.clear()


def notify_band(band_id: str, event_name: str, payload: dict) -> int:
    """Publish from inside a request using the application's notifier."""
    notifier: BandNotifier = current_app.extensions["band_notifier"]
    return notifier.publish(band_id, event_name, payload)

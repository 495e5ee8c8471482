"""
Live RSVP snapshots per event instance
"""

import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.schemas.rsvp import RSVPResponse
from app.services.repositories import RSVPRepo, use_firestore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[RSVPResponse]], None]


class Subscription:
    """Handle returned by ``RSVPFeed.subscribe``"""

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._release()


class RSVPFeed:
    """Delivers the full RSVP list of an event instance, newest first.

    Callbacks get a snapshot right away and again after every change. On
    Firestore this is a query snapshot listener and callbacks run on the
    listener's thread. On SQL storage the ledger calls ``publish`` after each
    write it makes, so only changes made through this process are seen.
    """

    def __init__(self):
        self._listeners: Dict[str, Dict[int, SnapshotCallback]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def snapshot(self, db: Optional[Session], event_instance_id: str) -> List[RSVPResponse]:
        if use_firestore():
            rows = RSVPRepo.list_by_event_instance_fs(event_instance_id)
        else:
            rows = RSVPRepo.list_by_event_instance_sql(db, event_instance_id)
        return [RSVPResponse.model_validate(r) for r in rows]

    def subscribe(self, db: Optional[Session], event_instance_id: str, callback: SnapshotCallback) -> Subscription:
        if use_firestore():
            watch = RSVPRepo.watch_event_instance_fs(
                event_instance_id,
                lambda docs: callback([RSVPResponse.model_validate(d) for d in docs]),
            )
            return Subscription(watch.unsubscribe)

        listener_id = next(self._ids)
        with self._lock:
            self._listeners.setdefault(event_instance_id, {})[listener_id] = callback
        logger.info(f"RSVP feed subscriber {listener_id} on event instance {event_instance_id}")

        callback(self.snapshot(db, event_instance_id))
        return Subscription(lambda: self._remove(event_instance_id, listener_id))

    def _remove(self, event_instance_id: str, listener_id: int) -> None:
        with self._lock:
            listeners = self._listeners.get(event_instance_id, {})
            listeners.pop(listener_id, None)
            if not listeners:
                self._listeners.pop(event_instance_id, None)

    def subscriber_count(self, event_instance_id: str) -> int:
        return len(self._listeners.get(event_instance_id, {}))

    def publish(self, db: Optional[Session], event_instance_id: str) -> None:
        """Push a fresh snapshot to in-process subscribers"""
        if use_firestore():
            return
        with self._lock:
            callbacks = list(self._listeners.get(event_instance_id, {}).values())
        if not callbacks:
            return

        snapshot = self.snapshot(db, event_instance_id)
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"RSVP feed subscriber failed for event instance {event_instance_id}: {e}")

"""
Fan-out of session snapshots to connected observers.

The hub listens to a SessionStore. Each committed mutation hands it a
snapshot (after the store lock is released); the hub renders the payload per
observer and queues it. Snapshots are queued in commit order: one that
arrives ahead of an older, still in-flight commit is parked until the gap is
filled. An observer never receives a version older than one it already has.

Sends happen outside the hub lock. Each observer has its own outbox and at
most one thread drains it at a time, so a slow observer holds up only its
own queue.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional

from impostor.models import SessionSnapshot


logger = logging.getLogger(__name__)

Send = Callable[[dict], None]


@dataclass
class Observer:
    send: Send
    viewer_id: Optional[str] = None
    last_version: int = -1
    outbox: Deque[dict] = field(default_factory=deque)
    sending: bool = False


class BroadcastHub:
    def __init__(self, store):
        self._store = store
        self._lock = threading.RLock()
        self._observers: Dict[str, Observer] = {}
        self._pending: Dict[int, SessionSnapshot] = {}
        self._next_version = store.get_state().version + 1
        store.add_listener(self.publish)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def subscribe(self, observer_id: str, send: Send, viewer_id: Optional[str] = None) -> None:
        """Register an observer and send it the current state right away."""
        with self._lock:
            observer = Observer(send=send, viewer_id=viewer_id)
            self._observers[observer_id] = observer
            self._enqueue(observer, self._store.get_state())
            total = len(self._observers)
        logger.info(f"[observer-join] observer={observer_id} viewer={viewer_id} total={total}")
        self._flush(observer_id, observer)

    def identify(self, observer_id: str, viewer_id: Optional[str]) -> bool:
        """Bind an observer to a player and resend the state from their view."""
        with self._lock:
            observer = self._observers.get(observer_id)
            if observer is None:
                return False
            observer.viewer_id = viewer_id
            self._enqueue(observer, self._store.get_state(), force=True)
        self._flush(observer_id, observer)
        return True

    def unsubscribe(self, observer_id: str) -> bool:
        with self._lock:
            observer = self._observers.pop(observer_id, None)
            if observer is not None:
                observer.outbox.clear()
        if observer is not None:
            logger.info(f"[observer-leave] observer={observer_id}")
        return observer is not None

    def publish(self, snapshot: SessionSnapshot) -> None:
        with self._lock:
            if snapshot.version < self._next_version:
                return
            self._pending[snapshot.version] = snapshot
            ready: List[SessionSnapshot] = []
            while self._next_version in self._pending:
                ready.append(self._pending.pop(self._next_version))
                self._next_version += 1
            if not ready:
                return
            targets = list(self._observers.items())
            for _, observer in targets:
                for current in ready:
                    self._enqueue(observer, current)
        for observer_id, observer in targets:
            self._flush(observer_id, observer)

    def close(self) -> None:
        self._store.remove_listener(self.publish)
        with self._lock:
            for observer in self._observers.values():
                observer.outbox.clear()
            self._observers.clear()
            self._pending.clear()

    def _enqueue(self, observer: Observer, snapshot: SessionSnapshot, force=False) -> None:
        # Called with the lock held
        if snapshot.version <= observer.last_version and not force:
            return
        observer.outbox.append(snapshot.to_dict(viewer_id=observer.viewer_id))
        observer.last_version = max(observer.last_version, snapshot.version)

    def _flush(self, observer_id: str, observer: Observer) -> None:
        """Drain an observer's outbox unless another thread already is."""
        while True:
            with self._lock:
                if observer.sending or not observer.outbox:
                    return
                if self._observers.get(observer_id) is not observer:
                    observer.outbox.clear()
                    return
                observer.sending = True
                payload = observer.outbox.popleft()
            try:
                observer.send(payload)
            except Exception as exc:
                # Dropped, not queued: the observer is gone for good
                with self._lock:
                    observer.sending = False
                    observer.outbox.clear()
                    if self._observers.get(observer_id) is observer:
                        del self._observers[observer_id]
                logger.warning(f"[observer-drop] observer={observer_id} version={payload['version']} error={exc}")
                return
            with self._lock:
                observer.sending = False

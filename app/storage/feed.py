import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List
import logging

log = logging.getLogger(__name__)

INSERT = "INSERT"

@dataclass(frozen=True)
class RecordEvent:
    event_type: str
    item: Dict[str, Any] = field(default_factory=dict)

Listener = Callable[[RecordEvent], None]

class Subscription:
    """Handle returned by ChangeFeed.subscribe; cancel() detaches the listener."""

    def __init__(self, feed: "ChangeFeed", listener: Listener):
        self._feed = feed
        self._listener = listener
        self.active = True

    def cancel(self):
        if not self.active:
            return
        self._feed._remove(self._listener)
        self.active = False

# -------------------------
# Change Feed
# -------------------------
class ChangeFeed:
    """
        In-process observer registry for record store changes.
        Listeners are called synchronously on the publishing thread.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        log.debug("Listener subscribed (%d active)", len(self._listeners))
        return Subscription(self, listener)

    def _remove(self, listener: Listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
        log.debug("Listener unsubscribed (%d active)", len(self._listeners))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: RecordEvent):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                # A broken listener must not fail the write that triggered it
                log.exception("Change listener failed for %s event", event.event_type)

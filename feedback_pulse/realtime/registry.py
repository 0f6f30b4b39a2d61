import logging
import threading
from typing import Any, Callable, Dict, List, Set

Callback = Callable[..., Any]


class SubscriberRegistry:
    """A thread-safe map of event type to the callbacks subscribed to it."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, Set[Callback]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def add(self, event_type: str, callback: Callback) -> Callable[[], None]:
        """
        Registers *callback* under *event_type* and returns an unsubscribe function.
        Adding the same callback twice for one type keeps a single entry.
        """
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._subscribers.setdefault(event_type, set()).add(callback)
        self._logger.debug("subscribed", extra={"event_type": event_type})

        def _unsubscribe() -> None:
            self.remove(event_type, callback)

        return _unsubscribe

    def remove(self, event_type: str, callback: Callback) -> bool:
        """Removes one callback; empty sets are dropped. Returns True if it was registered."""
        with self._lock:
            callbacks = self._subscribers.get(event_type)
            if not callbacks or callback not in callbacks:
                return False
            callbacks.discard(callback)
            if not callbacks:
                del self._subscribers[event_type]
            return True

    def callbacks_for(self, event_type: str) -> List[Callback]:
        """Returns a snapshot of the callbacks for *event_type* (safe to iterate unlocked)."""
        with self._lock:
            return list(self._subscribers.get(event_type, ()))

    def event_types(self) -> List[str]:
        with self._lock:
            return list(self._subscribers)

    def count(self) -> int:
        """Returns the total number of registered callbacks across all types."""
        with self._lock:
            return sum(len(callbacks) for callbacks in self._subscribers.values())

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

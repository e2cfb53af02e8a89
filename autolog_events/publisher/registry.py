# autolog_events/publisher/registry.py
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple


class SubscriberRegistry:
    """
    Thread-safe mapping of subscriber id -> handle.

    Broadcasts and sweeps iterate snapshot() copies, so registration changes
    made while they run never break the iteration. A subscriber added after
    the snapshot may miss that event; one removed after it may still get it.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, subscriber_id: str, handle: Any) -> None:
        """Insert or replace the handle stored under `subscriber_id`."""
        with self._lock:
            self._subscribers[subscriber_id] = handle

    def unregister(self, subscriber_id: str, handle: Optional[Any] = None) -> bool:
        """
        Remove a subscriber. Absent ids are ignored.

        Args:
            subscriber_id: Id to remove
            handle: When given, only remove if the stored handle is this object

        Returns:
            True if something was removed
        """
        with self._lock:
            current = self._subscribers.get(subscriber_id)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._subscribers[subscriber_id]
            return True

    def snapshot(self) -> List[Tuple[str, Any]]:
        """Point-in-time copy of (id, handle) pairs in registration order."""
        with self._lock:
            return list(self._subscribers.items())

    def get(self, subscriber_id: str) -> Optional[Any]:
        with self._lock:
            return self._subscribers.get(subscriber_id)

    def size(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def clear(self) -> int:
        with self._lock:
            count = len(self._subscribers)
            self._subscribers.clear()
            return count

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, subscriber_id: object) -> bool:
        with self._lock:
            return subscriber_id in self._subscribers

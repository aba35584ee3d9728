"""Local notification history kept on the client.

The store holds at most ``capacity`` entries, newest first. Inserting past
capacity drops the oldest entry. The cached list only changes after the
backing storage accepted the write; on a failed write the cache is dropped
so the next read comes from storage again.
"""
import json
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import StorageError
from .storage import NOTIFICATIONS_KEY, KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


@dataclass(frozen=True)
class LocalNotification:
    """A notification received by this device."""
    id: str
    title: str
    body: str
    payload: Optional[Dict[str, Any]] = None
    is_read: bool = False
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "payload": self.payload,
            "isRead": self.is_read,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalNotification":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            body=data.get("body", ""),
            payload=data.get("payload"),
            is_read=bool(data.get("isRead", False)),
            timestamp=data.get("timestamp") or "",
        )


class LocalNotificationStore:
    """Bounded, newest-first notification list with read state."""

    def __init__(self, storage: KeyValueStorage, capacity: int = DEFAULT_CAPACITY):
        self._storage = storage
        self._capacity = capacity
        # Serializes mutations; eviction rewrites the whole list
        self._lock = threading.RLock()
        self._cache: Optional[List[LocalNotification]] = None

    @property
    def capacity(self) -> int:
        return self._capacity

    def _load(self) -> List[LocalNotification]:
        if self._cache is None:
            raw = self._storage.get_item(NOTIFICATIONS_KEY)
            if not raw:
                self._cache = []
            else:
                try:
                    self._cache = [LocalNotification.from_dict(item) for item in json.loads(raw)]
                except (ValueError, TypeError, KeyError) as e:
                    # Next write replaces the unreadable value
                    logger.warning(f"Discarding unreadable stored notifications: {e}")
                    self._cache = []
        return self._cache

    def _commit(self, entries: List[LocalNotification]):
        self._storage.set_item(
            NOTIFICATIONS_KEY,
            json.dumps([entry.to_dict() for entry in entries]),
        )
        self._cache = entries

    def _mutate(self, action: str, change):
        """Apply ``change`` to the current list and persist the result."""
        with self._lock:
            try:
                entries = change(list(self._load()))
                if entries is not None:
                    self._commit(entries)
            except StorageError as e:
                self._cache = None
                logger.error(f"Failed to {action}: {e}")

    def list(self) -> List[LocalNotification]:
        """Snapshot of stored notifications, newest first."""
        with self._lock:
            try:
                return list(self._load())
            except StorageError as e:
                self._cache = None
                logger.error(f"Failed to get stored notifications: {e}")
                return []

    def insert(self, entry: LocalNotification):
        """Prepend ``entry``, evicting the oldest entries beyond capacity."""
        self._mutate(
            "store notification",
            lambda entries: ([entry] + entries)[:self._capacity],
        )

    def mark_read(self, notification_id: str):
        """Mark one entry read. Unknown ids are ignored."""
        def change(entries):
            if not any(e.id == notification_id and not e.is_read for e in entries):
                return None
            return [
                replace(e, is_read=True) if e.id == notification_id else e
                for e in entries
            ]
        self._mutate("mark notification as read", change)

    def delete(self, notification_id: str):
        """Remove entries with ``notification_id``. Unknown ids are ignored."""
        def change(entries):
            kept = [e for e in entries if e.id != notification_id]
            return kept if len(kept) != len(entries) else None
        self._mutate("delete notification", change)

    def clear(self):
        """Remove every stored notification."""
        with self._lock:
            try:
                self._storage.remove_item(NOTIFICATIONS_KEY)
                self._cache = []
            except StorageError as e:
                self._cache = None
                logger.error(f"Failed to clear notifications: {e}")

    def unread_count(self) -> int:
        return sum(1 for e in self.list() if not e.is_read)

    def read_count(self) -> int:
        return sum(1 for e in self.list() if e.is_read)

"""Client-local key/value storage.

Values are strings; callers serialize structured data as JSON. Any
failure to read or write raises ``StorageError``.
"""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

from ..errors import StorageError

logger = logging.getLogger(__name__)

# Keys in the client's key/value namespace
DEVICE_ID_KEY = "@device_id"
PUSH_TOKEN_KEY = "@push_token"
NOTIFICATIONS_KEY = "@notifications"
NOTIFICATION_SETTINGS_KEY = "@notification_settings"


class KeyValueStorage(Protocol):
    """Minimal async-storage style interface."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def multi_remove(self, keys: Iterable[str]) -> None: ...


class MemoryStorage:
    """Storage kept in a dict, for tests and ephemeral clients."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        self._items[key] = value

    def remove_item(self, key):
        self._items.pop(key, None)

    def multi_remove(self, keys):
        for key in keys:
            self._items.pop(key, None)


class JSONFileStorage:
    """Storage persisted as a single JSON object on disk.

    Every write replaces the file atomically, so a crash mid-write leaves
    the previous contents intact.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            items = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(items, dict):
            raise StorageError(f"Unexpected contents in {self.path}")
        return items

    def _write_all(self, items: Dict[str, str]):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def get_item(self, key):
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key, value):
        with self._lock:
            items = self._read_all()
            items[key] = value
            self._write_all(items)

    def remove_item(self, key):
        self.multi_remove([key])

    def multi_remove(self, keys):
        with self._lock:
            items = self._read_all()
            for key in keys:
                items.pop(key, None)
            self._write_all(items)

"""Device identity and push-token bookkeeping for the client."""
import json
import logging
import time
from typing import Callable, Optional

from ..errors import StorageError
from .storage import (
    DEVICE_ID_KEY,
    NOTIFICATION_SETTINGS_KEY,
    PUSH_TOKEN_KEY,
    KeyValueStorage,
)

logger = logging.getLogger(__name__)


class DeviceIdentity:
    """Lazily generated, persisted device id plus the current push token."""

    def __init__(
        self,
        storage: KeyValueStorage,
        platform: str,
        os_label: str,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self.platform = platform
        self.os_label = os_label
        self._clock = clock
        self._device_id: Optional[str] = None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get_device_id(self) -> str:
        """Get or generate the device id.

        Generated once as ``<platform>-<osLabel>-<epoch ms>`` and persisted;
        an existing id is never replaced.
        """
        if self._device_id:
            return self._device_id

        try:
            device_id = self._storage.get_item(DEVICE_ID_KEY)
            if not device_id:
                device_id = f"{self.platform}-{self.os_label}-{self._now_ms()}"
                self._storage.set_item(DEVICE_ID_KEY, device_id)
                logger.info(f"Generated new device id: {device_id}")
        except StorageError as e:
            logger.error(f"Failed to get device ID: {e}")
            device_id = f"{self.platform}-{self._now_ms()}"

        self._device_id = device_id
        return device_id

    def store_push_token(self, token: str):
        """Persist the push token issued by the platform."""
        self._storage.set_item(PUSH_TOKEN_KEY, token)

    def get_push_token(self) -> Optional[str]:
        try:
            return self._storage.get_item(PUSH_TOKEN_KEY)
        except StorageError as e:
            logger.error(f"Failed to read push token: {e}")
            return None

    def get_settings(self) -> dict:
        """Notification settings blob; notifications are enabled by default."""
        try:
            raw = self._storage.get_item(NOTIFICATION_SETTINGS_KEY)
            return json.loads(raw) if raw else {"enabled": True}
        except (StorageError, ValueError) as e:
            logger.error(f"Failed to read notification settings: {e}")
            return {"enabled": True}

    def disable_notifications(self):
        """Forget the push token and record that notifications are off."""
        try:
            self._storage.remove_item(PUSH_TOKEN_KEY)
            self._storage.set_item(NOTIFICATION_SETTINGS_KEY, json.dumps({"enabled": False}))
        except StorageError as e:
            logger.error(f"Failed to disable notifications: {e}")

    def clear_device_data(self):
        """Remove device id, push token and settings. Notification history is kept."""
        try:
            self._storage.multi_remove([
                DEVICE_ID_KEY,
                PUSH_TOKEN_KEY,
                NOTIFICATION_SETTINGS_KEY,
            ])
            self._device_id = None
        except StorageError as e:
            logger.error(f"Failed to clear device data: {e}")

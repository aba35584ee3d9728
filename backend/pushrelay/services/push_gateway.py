"""Push gateway adapters: APNs for iOS, FCM for Android.

Each adapter turns (token, title, body, data) into its platform's message
envelope and either returns normally or raises ``DeliveryError``.
``PlatformGateway`` routes by platform and enforces the per-call timeout,
so callers only ever see success or ``DeliveryError``.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import firebase_admin
from aioapns import APNs, NotificationRequest, PushType
from firebase_admin import credentials, messaging

from ..config import Settings
from ..errors import DeliveryError

logger = logging.getLogger(__name__)

PLATFORMS = ("ios", "android")


@dataclass
class APNsConfig:
    """APNs configuration."""
    key_path: str = ""  # Path to .p8 key file
    key_id: str = ""
    team_id: str = ""
    bundle_id: str = ""
    use_sandbox: bool = True  # Use sandbox for development

    @property
    def is_complete(self) -> bool:
        return all([self.key_path, self.key_id, self.team_id, self.bundle_id])


@dataclass
class FCMConfig:
    """Firebase Cloud Messaging configuration."""
    credentials_path: str = ""  # Service account JSON file
    project_id: str = ""
    app_name: str = "pushrelay"

    @property
    def is_complete(self) -> bool:
        return bool(self.credentials_path)


def build_apns_payload(title: str, body: str, data: Optional[dict] = None) -> Dict[str, Any]:
    """Build the APNs JSON payload: ``aps`` envelope plus custom keys."""
    payload: Dict[str, Any] = {
        "aps": {
            "alert": {"title": title, "body": body},
            "sound": "default",
        },
    }
    if data:
        payload.update(data)
    return payload


def build_fcm_message(token: str, title: str, body: str, data: Optional[dict] = None) -> messaging.Message:
    """Build an FCM message. FCM data values must be strings."""
    str_data = {}
    for key, value in (data or {}).items():
        str_data[str(key)] = value if isinstance(value, str) else json.dumps(value, default=str)
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=title, body=body),
        data=str_data,
    )


class PushGateway:
    """Base class for push delivery backends."""

    async def deliver(
        self,
        token: str,
        platform: str,
        title: str,
        body: str,
        data: Optional[dict] = None,
    ) -> None:
        """Deliver one notification to one device token.

        Raises:
            DeliveryError: if the gateway rejected or could not send the message
        """
        raise NotImplementedError

    async def close(self):
        """Release gateway resources."""


class APNsGateway(PushGateway):
    """Sends notifications to iOS devices through APNs."""

    def __init__(self, config: APNsConfig, client: Optional[APNs] = None):
        self._config = config
        self._client = client or APNs(
            key=config.key_path,
            key_id=config.key_id,
            team_id=config.team_id,
            topic=config.bundle_id,
            use_sandbox=config.use_sandbox,
        )
        logger.info(f"APNs client configured (sandbox={config.use_sandbox})")

    async def deliver(self, token, platform, title, body, data=None):
        request = NotificationRequest(
            device_token=token,
            message=build_apns_payload(title, body, data),
            push_type=PushType.ALERT,
        )
        try:
            response = await self._client.send_notification(request)
        except Exception as e:
            raise DeliveryError(f"APNs request failed: {e}") from e

        if not response.is_successful:
            raise DeliveryError(response.description or "APNs rejected the notification")
        logger.info(f"Push notification sent to {token[:16]}...")


class FCMGateway(PushGateway):
    """Sends notifications to Android devices through Firebase Cloud Messaging."""

    def __init__(self, config: FCMConfig, app: Optional[firebase_admin.App] = None):
        self._config = config
        self._owns_app = app is None
        if app is None:
            options = {"projectId": config.project_id} if config.project_id else None
            app = firebase_admin.initialize_app(
                credentials.Certificate(config.credentials_path),
                options=options,
                name=config.app_name,
            )
            logger.info(f"Firebase app '{config.app_name}' initialized")
        self._app = app

    async def deliver(self, token, platform, title, body, data=None):
        message = build_fcm_message(token, title, body, data)
        try:
            # The Admin SDK is blocking
            await asyncio.to_thread(messaging.send, message, app=self._app)
        except Exception as e:
            raise DeliveryError(f"FCM request failed: {e}") from e
        logger.info(f"Push notification sent to {token[:16]}...")

    async def close(self):
        if self._owns_app:
            firebase_admin.delete_app(self._app)


class PlatformGateway(PushGateway):
    """Routes each delivery to the gateway registered for the device platform."""

    def __init__(self, gateways: Dict[str, PushGateway], timeout: float = 10.0):
        self._gateways = dict(gateways)
        self._timeout = timeout

    @property
    def platforms(self):
        return sorted(self._gateways)

    async def deliver(self, token, platform, title, body, data=None):
        gateway = self._gateways.get(platform)
        if gateway is None:
            raise DeliveryError(f"No push gateway configured for platform '{platform}'")

        try:
            await asyncio.wait_for(
                gateway.deliver(token, platform, title, body, data),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"Push gateway timed out after {self._timeout}s") from e

    async def close(self):
        for gateway in self._gateways.values():
            await gateway.close()


def build_gateway(config: Settings) -> PlatformGateway:
    """Build a PlatformGateway from whichever providers are fully configured."""
    gateways: Dict[str, PushGateway] = {}

    apns_config = APNsConfig(
        key_path=config.apns_key_path,
        key_id=config.apns_key_id,
        team_id=config.apns_team_id,
        bundle_id=config.apns_bundle_id,
        use_sandbox=config.apns_use_sandbox,
    )
    if apns_config.is_complete:
        gateways["ios"] = APNsGateway(apns_config)
    else:
        logger.warning("APNs not fully configured - iOS deliveries will fail")

    fcm_config = FCMConfig(
        credentials_path=config.fcm_credentials_path,
        project_id=config.fcm_project_id,
    )
    if fcm_config.is_complete:
        gateways["android"] = FCMGateway(fcm_config)
    else:
        logger.warning("FCM not configured - Android deliveries will fail")

    return PlatformGateway(gateways, timeout=config.push_timeout_seconds)

"""HTTP client for the pushrelay backend."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import PushRelayError

logger = logging.getLogger(__name__)


class ApiError(PushRelayError):
    """The backend answered with a non-success status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"API Error: {status_code} {message}")
        self.status_code = status_code


class PushRelayClient:
    """Calls the registration and notification endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, endpoint: str, json: Optional[dict] = None) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, endpoint, json=json)
        except httpx.HTTPError as e:
            logger.error(f"API request failed for {endpoint}: {e}")
            raise

        if response.is_error:
            logger.error(f"API request failed for {endpoint}: {response.status_code}")
            raise ApiError(response.status_code, response.reason_phrase)
        return response.json()

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/api/health")
            return True
        except (ApiError, httpx.HTTPError, ValueError):
            return False

    async def register_device(
        self,
        device_id: str,
        push_token: str,
        platform: str,
        device_name: str,
    ) -> Dict[str, Any]:
        return await self._request("POST", "/api/devices/register", json={
            "deviceId": device_id,
            "pushToken": push_token,
            "platform": platform,
            "deviceName": device_name,
        })

    async def check_device_registration(self, device_id: str) -> bool:
        """True if the backend knows the device; False on any failure."""
        try:
            response = await self._request("GET", f"/api/devices/{device_id}")
            return bool(response.get("isRegistered"))
        except (ApiError, httpx.HTTPError, ValueError):
            return False

    async def unregister_device(self, device_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/devices/{device_id}")

    async def send_test_notification(self, device_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/notifications/test", json={"deviceId": device_id})

    async def get_all_devices(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/devices")

    async def send_notification(
        self,
        device_ids: List[str],
        title: str,
        body: str,
        data: Optional[dict] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"deviceIds": device_ids, "title": title, "body": body}
        if data is not None:
            payload["data"] = data
        return await self._request("POST", "/api/notifications/send", json=payload)

"""Client helpers: device identity and the HTTP API client."""
import json
import re

import httpx
import pytest

from pushrelay.client.api_client import ApiError, PushRelayClient
from pushrelay.client.device_identity import DeviceIdentity
from pushrelay.client.notification_store import LocalNotification, LocalNotificationStore
from pushrelay.client.storage import (
    DEVICE_ID_KEY,
    NOTIFICATION_SETTINGS_KEY,
    PUSH_TOKEN_KEY,
    MemoryStorage,
)
from pushrelay.errors import StorageError


class BrokenStorage(MemoryStorage):
    def get_item(self, key):
        raise StorageError("unavailable")

    def set_item(self, key, value):
        raise StorageError("unavailable")


def test_device_id_is_generated_once():
    storage = MemoryStorage()
    ticks = iter([1700000000.5, 1700000999.0])
    identity = DeviceIdentity(storage, "ios", "iOS", clock=lambda: next(ticks))

    first = identity.get_device_id()
    second = identity.get_device_id()

    assert first == second == "ios-iOS-1700000000500"
    assert storage.get_item(DEVICE_ID_KEY) == first


def test_device_id_is_reused_across_instances():
    storage = MemoryStorage()
    first = DeviceIdentity(storage, "android", "Android").get_device_id()
    second = DeviceIdentity(storage, "android", "Android").get_device_id()

    assert first == second
    assert re.match(r"^android-Android-\d+$", first)


def test_existing_device_id_is_not_replaced():
    storage = MemoryStorage({DEVICE_ID_KEY: "existing-device-123"})
    assert DeviceIdentity(storage, "ios", "iOS").get_device_id() == "existing-device-123"


def test_device_id_when_storage_is_unavailable():
    identity = DeviceIdentity(BrokenStorage(), "ios", "iOS", clock=lambda: 1.0)
    assert identity.get_device_id() == "ios-1000"
    assert identity.get_device_id() == "ios-1000"


def test_clear_device_data_keeps_notifications():
    storage = MemoryStorage()
    identity = DeviceIdentity(storage, "ios", "iOS")
    store = LocalNotificationStore(storage)
    identity.get_device_id()
    identity.store_push_token("token-1")
    identity.disable_notifications()
    store.insert(LocalNotification(id="1", title="T", body="B"))

    identity.clear_device_data()

    assert storage.get_item(DEVICE_ID_KEY) is None
    assert storage.get_item(PUSH_TOKEN_KEY) is None
    assert storage.get_item(NOTIFICATION_SETTINGS_KEY) is None
    assert [e.id for e in store.list()] == ["1"]


def test_disable_notifications():
    storage = MemoryStorage()
    identity = DeviceIdentity(storage, "ios", "iOS")
    identity.store_push_token("token-1")
    assert identity.get_settings() == {"enabled": True}

    identity.disable_notifications()

    assert identity.get_push_token() is None
    assert identity.get_settings() == {"enabled": False}


def make_client(handler) -> PushRelayClient:
    return PushRelayClient("http://relay.test", transport=httpx.MockTransport(handler))


async def test_register_device_posts_camel_case():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "deviceId": "d1"})

    client = make_client(handler)
    result = await client.register_device("d1", "tok", "ios", "iPhone")

    assert result["deviceId"] == "d1"
    assert seen["path"] == "/api/devices/register"
    assert seen["body"] == {
        "deviceId": "d1",
        "pushToken": "tok",
        "platform": "ios",
        "deviceName": "iPhone",
    }


async def test_check_device_registration():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"isRegistered": True, "isActive": False})

    assert await make_client(handler).check_device_registration("d1") is True


async def test_check_device_registration_false_on_error():
    def handler(request: httpx.Request):
        return httpx.Response(500, json={"error": "boom"})

    assert await make_client(handler).check_device_registration("d1") is False


async def test_health_check_false_when_unreachable():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("refused", request=request)

    assert await make_client(handler).health_check() is False


async def test_send_notification_raises_on_404():
    def handler(request: httpx.Request):
        return httpx.Response(404, json={"error": "No active devices found"})

    with pytest.raises(ApiError) as exc_info:
        await make_client(handler).send_notification(["d1"], "Hi", "There")
    assert exc_info.value.status_code == 404


async def test_send_test_notification():
    def handler(request: httpx.Request):
        assert request.url.path == "/api/notifications/test"
        assert json.loads(request.content) == {"deviceId": "d1"}
        return httpx.Response(200, json={"success": True, "totalSent": 1, "totalFailed": 0, "results": []})

    result = await make_client(handler).send_test_notification("d1")
    assert result["totalSent"] == 1


async def test_check_device_registration_false_on_malformed_body():
    def handler(request: httpx.Request):
        return httpx.Response(200, text="<html>proxy error</html>")

    assert await make_client(handler).check_device_registration("d1") is False

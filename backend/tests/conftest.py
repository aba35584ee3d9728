"""Pytest fixtures: temporary SQLite database, fake push gateway, test client."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from pushrelay.database import Database
from pushrelay.errors import DeliveryError
from pushrelay.main import create_app
from pushrelay.services.dispatcher import FanoutDispatcher
from pushrelay.services.push_gateway import PushGateway
from pushrelay.services.registry import DeviceRegistry


class FakeGateway(PushGateway):
    """Records deliveries; fails for tokens listed in ``failing_tokens``."""

    def __init__(self, failing_tokens=(), delay: float = 0):
        self.failing_tokens = set(failing_tokens)
        self.delay = delay
        self.calls = []
        self.closed = False

    async def deliver(self, token, platform, title, body, data=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append({
            "token": token,
            "platform": platform,
            "title": title,
            "body": body,
            "data": data,
        })
        if token in self.failing_tokens:
            raise DeliveryError(f"invalid token {token}")

    async def close(self):
        self.closed = True


def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'pushrelay-test.db'}"


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def database(tmp_path):
    db = Database(sqlite_url(tmp_path))
    await db.init()
    yield db
    await db.close()


@pytest.fixture
def registry(database):
    return DeviceRegistry(database.session_factory)


@pytest.fixture
def dispatcher(registry, gateway, database):
    return FanoutDispatcher(registry, gateway, database.session_factory)


@pytest.fixture
def client(tmp_path, gateway):
    """TestClient; lifespan creates the tables in a fresh SQLite file."""
    app = create_app(database=Database(sqlite_url(tmp_path)), gateway=gateway)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register_device(client):
    """Register a device through the API and assert success."""
    def register(device_id: str, token: str = None, platform: str = "ios", name: str = None):
        r = client.post(
            "/api/devices/register",
            json={
                "deviceId": device_id,
                "pushToken": token or f"token-{device_id}",
                "platform": platform,
                "deviceName": name or f"Device {device_id}",
            },
        )
        assert r.status_code == 200, r.text
        return r.json()
    return register

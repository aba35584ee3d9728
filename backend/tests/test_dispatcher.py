"""Fan-out dispatcher: per-device isolation, empty targets, delivery log."""
import asyncio

import pytest

from pushrelay.errors import DeliveryError, NoActiveDevicesError
from pushrelay.services.dispatcher import FanoutDispatcher
from pushrelay.services.push_gateway import PlatformGateway, PushGateway


@pytest.fixture
async def three_devices(registry):
    await registry.upsert("a", "token-a", "ios", "A")
    await registry.upsert("b", "token-b", "android", "B")
    await registry.upsert("c", "token-c", "ios", "C")


async def test_one_failure_does_not_abort_others(dispatcher, gateway, three_devices):
    gateway.failing_tokens = {"token-b"}

    result = await dispatcher.send({"a", "b", "c"}, "Hello", "World")

    assert result.total_sent == 2
    assert result.total_failed == 1
    assert len(gateway.calls) == 3

    failed = [r for r in result.results if r.status == "failed"]
    assert [r.device_id for r in failed] == ["b"]
    assert "token-b" in failed[0].error

    history = await dispatcher.history()
    assert len(history) == 3
    assert sorted(h.status for h in history) == ["failed", "sent", "sent"]


async def test_results_follow_registry_order(dispatcher, three_devices):
    result = await dispatcher.send(["a", "b", "c"], "Hello", "World")
    assert [r.device_id for r in result.results] == ["c", "b", "a"]


async def test_empty_target_set(dispatcher, gateway):
    with pytest.raises(NoActiveDevicesError):
        await dispatcher.send([], "Hello", "World")

    assert gateway.calls == []
    assert await dispatcher.history() == []


async def test_only_inactive_targets(dispatcher, registry, gateway, three_devices):
    await registry.deactivate("a")
    await registry.deactivate("b")

    with pytest.raises(NoActiveDevicesError):
        await dispatcher.send({"a", "b", "ghost"}, "Hello", "World")

    assert gateway.calls == []
    assert await dispatcher.history() == []


async def test_unknown_ids_are_dropped_silently(dispatcher, three_devices):
    result = await dispatcher.send({"a", "ghost"}, "Hello", "World")

    assert [r.device_id for r in result.results] == ["a"]
    assert result.total_failed == 0


async def test_gateway_gets_timestamp_but_log_keeps_caller_data(dispatcher, gateway, three_devices):
    await dispatcher.send({"a"}, "Hello", "World", data={"orderId": 42})

    sent_data = gateway.calls[0]["data"]
    assert sent_data["orderId"] == 42
    assert "timestamp" in sent_data

    [entry] = await dispatcher.history()
    assert entry.data == {"orderId": 42}
    assert entry.device_name == "A"
    assert entry.platform == "ios"


async def test_unexpected_gateway_exception_is_a_failed_outcome(registry, database, three_devices):
    class BrokenGateway(PushGateway):
        async def deliver(self, token, platform, title, body, data=None):
            if token == "token-a":
                raise RuntimeError("socket closed")

    dispatcher = FanoutDispatcher(registry, BrokenGateway(), database.session_factory)
    result = await dispatcher.send({"a", "b", "c"}, "Hello", "World")

    assert result.total_sent == 2
    assert result.total_failed == 1
    assert result.results[-1].error == "socket closed"


async def test_gateway_timeout_is_a_failed_outcome(registry, database, three_devices):
    class SlowGateway(PushGateway):
        async def deliver(self, token, platform, title, body, data=None):
            if platform == "android":
                await asyncio.sleep(5)

    fast = SlowGateway()
    gateway = PlatformGateway({"ios": fast, "android": fast}, timeout=0.05)
    dispatcher = FanoutDispatcher(registry, gateway, database.session_factory)

    result = await dispatcher.send({"a", "b", "c"}, "Hello", "World")

    statuses = {r.device_id: r.status for r in result.results}
    assert statuses == {"a": "sent", "b": "failed", "c": "sent"}


async def test_deliveries_run_concurrently(registry, database, three_devices):
    in_flight = 0
    peak = 0

    class CountingGateway(PushGateway):
        async def deliver(self, token, platform, title, body, data=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

    dispatcher = FanoutDispatcher(registry, CountingGateway(), database.session_factory, max_concurrency=2)
    await dispatcher.send({"a", "b", "c"}, "Hello", "World")

    assert peak == 2


async def test_test_notification_uses_send_path(dispatcher, gateway, three_devices):
    result = await dispatcher.test("a")

    assert result.total_sent == 1
    call = gateway.calls[0]
    assert call["title"] == "Test Notification"
    assert call["body"].startswith("Test notification sent at ")
    assert call["data"]["type"] == "test"

    [entry] = await dispatcher.history()
    assert entry.data == {"type": "test"}


async def test_test_notification_inactive_device(dispatcher, registry, three_devices):
    await registry.deactivate("a")
    with pytest.raises(NoActiveDevicesError):
        await dispatcher.test("a")


async def test_history_limit_and_order(dispatcher, three_devices):
    await dispatcher.send({"a"}, "first", "body")
    await dispatcher.send({"a"}, "second", "body")

    entries = await dispatcher.history(limit=1)
    assert [e.title for e in entries] == ["second"]


async def test_count_since(dispatcher, three_devices):
    await dispatcher.send({"a", "b"}, "Hello", "World")
    assert await dispatcher.count_since(hours=24) == 2


async def test_delivery_error_keeps_reason():
    error = DeliveryError("BadDeviceToken")
    assert error.reason == "BadDeviceToken"
    assert str(error) == "BadDeviceToken"


async def test_payload_timestamp_is_utc(dispatcher, gateway, three_devices):
    await dispatcher.send({"a"}, "Hello", "World")

    assert gateway.calls[0]["data"]["timestamp"].endswith("+00:00")

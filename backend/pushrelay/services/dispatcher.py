"""Fan-out dispatcher - one message to many devices, one outcome per device.

Every resolved device gets exactly one delivery attempt and one delivery
record, whatever happens to the others. Deliveries run concurrently up to
``max_concurrency``; results keep the order the registry returned devices in.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import DeliveryError, NoActiveDevicesError, StorageError
from ..models import Device, NotificationDelivery
from ..utils.db_utils import retry_on_lock
from .push_gateway import PushGateway
from .registry import DeviceRegistry

logger = logging.getLogger(__name__)

STATUS_SENT = "sent"
STATUS_FAILED = "failed"

TEST_TITLE = "Test Notification"


@dataclass
class DeliveryOutcome:
    """Result of one delivery attempt."""
    device_id: str
    status: str  # sent, failed
    error: Optional[str] = None


@dataclass
class DispatchResult:
    """Aggregate result of a fan-out."""
    results: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def total_sent(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_SENT)

    @property
    def total_failed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_FAILED)


@dataclass
class HistoryEntry:
    """Delivery record joined with the device's name and platform."""
    id: int
    device_id: str
    title: str
    body: str
    data: Optional[Dict[str, Any]]
    status: str
    created_at: datetime
    device_name: str
    platform: str


class FanoutDispatcher:
    """Sends notifications to sets of registered devices."""

    def __init__(
        self,
        registry: DeviceRegistry,
        gateway: PushGateway,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrency: int = 10,
    ):
        self._registry = registry
        self._gateway = gateway
        self._session_factory = session_factory
        self._max_concurrency = max(1, max_concurrency)

    async def send(
        self,
        device_ids: Iterable[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """Send one notification to every active device in ``device_ids``.

        Unknown and inactive ids are dropped silently.

        Raises:
            NoActiveDevicesError: if no active device remains; nothing is recorded
            StorageError: if the registry or the delivery log is unavailable
        """
        devices = await self._registry.resolve_active(device_ids)
        if not devices:
            logger.info("No active devices for dispatch")
            raise NoActiveDevicesError()

        data = dict(data or {})
        payload = {**data, "timestamp": datetime.now(timezone.utc).isoformat()}

        semaphore = asyncio.Semaphore(self._max_concurrency)
        outcomes = await asyncio.gather(*[
            self._deliver(semaphore, device, title, body, payload)
            for device in devices
        ])
        result = DispatchResult(results=list(outcomes))

        await self._record(result, title, body, data)

        logger.info(
            f"Push notifications sent: {result.total_sent} success, {result.total_failed} failed"
        )
        return result

    async def test(self, device_id: str) -> DispatchResult:
        """Send a canned test notification to a single device."""
        return await self.send(
            {device_id},
            title=TEST_TITLE,
            body=f"Test notification sent at {datetime.now().strftime('%H:%M:%S')}",
            data={"type": "test"},
        )

    async def _deliver(
        self,
        semaphore: asyncio.Semaphore,
        device: Device,
        title: str,
        body: str,
        payload: Dict[str, Any],
    ) -> DeliveryOutcome:
        async with semaphore:
            try:
                await self._gateway.deliver(
                    token=device.push_token,
                    platform=device.platform,
                    title=title,
                    body=body,
                    data=payload,
                )
            except DeliveryError as e:
                logger.warning(f"Failed to send to device {device.device_id}: {e.reason}")
                return DeliveryOutcome(device.device_id, STATUS_FAILED, e.reason)
            except Exception as e:
                logger.exception(f"Unexpected gateway error for device {device.device_id}")
                return DeliveryOutcome(device.device_id, STATUS_FAILED, str(e) or type(e).__name__)
        return DeliveryOutcome(device.device_id, STATUS_SENT)

    async def _record(self, result: DispatchResult, title: str, body: str, data: Dict[str, Any]):
        """Persist one delivery record per attempt in a single transaction."""
        try:
            await retry_on_lock(partial(self._write_records, result, title, body, data))
        except SQLAlchemyError as e:
            logger.error(f"Failed to record notification deliveries: {e}")
            raise StorageError("Failed to record notification deliveries") from e

    async def _write_records(self, result, title, body, data):
        now = datetime.utcnow()
        async with self._session_factory() as session:
            session.add_all([
                NotificationDelivery(
                    device_id=outcome.device_id,
                    title=title,
                    body=body,
                    data=data,
                    status=outcome.status,
                    created_at=now,
                )
                for outcome in result.results
            ])
            await session.commit()

    async def history(self, limit: int = 100) -> List[HistoryEntry]:
        """Most recent delivery records first, capped at ``limit`` rows."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(NotificationDelivery, Device.device_name, Device.platform)
                    .join(Device, NotificationDelivery.device_id == Device.device_id)
                    .order_by(NotificationDelivery.created_at.desc(), NotificationDelivery.id.desc())
                    .limit(limit)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to get notification history: {e}")
            raise StorageError("Failed to retrieve notification history") from e

        return [
            HistoryEntry(
                id=record.id,
                device_id=record.device_id,
                title=record.title,
                body=record.body,
                data=record.data,
                status=record.status,
                created_at=record.created_at,
                device_name=device_name,
                platform=platform,
            )
            for record, device_name, platform in rows
        ]

    async def count_since(self, hours: int = 24) -> int:
        """Number of delivery records created in the last ``hours``."""
        cutoff = datetime.utcnow() - timedelta(hours=hours)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count(NotificationDelivery.id))
                    .where(NotificationDelivery.created_at >= cutoff)
                )
                return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count notifications: {e}")
            raise StorageError("Failed to count notifications") from e

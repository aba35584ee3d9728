"""Device registry - idempotent registration and logical deactivation."""
import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Iterable, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import StorageError
from ..models import Device
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


@dataclass
class RegistrationStatus:
    """Registration state of a device id."""
    is_registered: bool
    is_active: bool


@dataclass
class DeviceCounts:
    total: int
    active: int


class DeviceRegistry:
    """Owns device records; never deletes them physically."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        # One lock per device id, dropped once no caller holds it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_id] = lock
        return lock

    async def upsert(
        self,
        device_id: str,
        push_token: str,
        platform: str,
        device_name: str,
    ) -> Device:
        """Create the device or refresh its token and name.

        Re-registering reactivates the device. ``platform`` is only written
        when the record is created.
        """
        lock = self._lock_for(device_id)
        async with lock:
            do_upsert = partial(self._upsert, device_id, push_token, platform, device_name)
            try:
                try:
                    device, created = await retry_on_lock(do_upsert)
                except IntegrityError:
                    # Another process inserted the same device id first
                    logger.info(f"Concurrent registration for {device_id}, retrying as update")
                    device, created = await retry_on_lock(do_upsert)
            except SQLAlchemyError as e:
                logger.error(f"Failed to register device {device_id}: {e}")
                raise StorageError("Failed to register device") from e

        if created:
            logger.info(f"New device registered: {device_id} ({platform}, token {push_token[:16]}...)")
        else:
            logger.info(f"Device token updated: {device_id} (token {push_token[:16]}...)")
        return device

    async def _upsert(self, device_id, push_token, platform, device_name) -> Tuple[Device, bool]:
        now = datetime.utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                select(Device).where(Device.device_id == device_id)
            )
            device = result.scalar_one_or_none()
            created = device is None

            if created:
                device = Device(
                    device_id=device_id,
                    push_token=push_token,
                    platform=platform,
                    device_name=device_name,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
                session.add(device)
            else:
                device.push_token = push_token
                device.device_name = device_name
                device.is_active = True
                device.updated_at = now

            await session.commit()
            return device, created

    async def check_registration(self, device_id: str) -> RegistrationStatus:
        """Report whether a record exists and whether it is active."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Device.is_active).where(Device.device_id == device_id)
                )
                row = result.first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to check device registration: {e}")
            raise StorageError("Failed to check device registration") from e

        if row is None:
            return RegistrationStatus(is_registered=False, is_active=False)
        return RegistrationStatus(is_registered=True, is_active=bool(row[0]))

    async def deactivate(self, device_id: str) -> bool:
        """Mark a device inactive. Unknown ids are a no-op.

        Returns True if a record was updated.
        """
        lock = self._lock_for(device_id)
        async with lock:
            try:
                updated = await retry_on_lock(partial(self._deactivate, device_id))
            except SQLAlchemyError as e:
                logger.error(f"Failed to unregister device {device_id}: {e}")
                raise StorageError("Failed to unregister device") from e

        if updated:
            logger.info(f"Device unregistered: {device_id}")
        else:
            logger.debug(f"Unregister requested for unknown device {device_id}")
        return updated

    async def _deactivate(self, device_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Device)
                .where(Device.device_id == device_id)
                .values(is_active=False, updated_at=datetime.utcnow())
            )
            await session.commit()
            return result.rowcount > 0

    async def list_devices(self) -> List[Device]:
        """All devices, most recently created first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Device).order_by(Device.created_at.desc(), Device.id.desc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to get devices: {e}")
            raise StorageError("Failed to retrieve devices") from e

    async def resolve_active(self, device_ids: Iterable[str]) -> List[Device]:
        """Active devices among ``device_ids``, in ``list_devices`` order.

        Unknown and inactive ids are dropped.
        """
        ids = set(device_ids)
        if not ids:
            return []
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Device)
                    .where(Device.device_id.in_(ids), Device.is_active.is_(True))
                    .order_by(Device.created_at.desc(), Device.id.desc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve devices: {e}")
            raise StorageError("Failed to resolve devices") from e

    async def count(self) -> DeviceCounts:
        """Count of all and of active devices."""
        try:
            async with self._session_factory() as session:
                total = (await session.execute(select(func.count(Device.id)))).scalar() or 0
                active = (await session.execute(
                    select(func.count(Device.id)).where(Device.is_active.is_(True))
                )).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count devices: {e}")
            raise StorageError("Failed to count devices") from e
        return DeviceCounts(total=total, active=active)

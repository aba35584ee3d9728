"""Notification dispatch and history API endpoints."""
import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, Request

from ..deps import get_dispatcher
from ..schemas.notification import (
    DeliveryResultItem,
    HistoryItem,
    NotificationTestRequest,
    SendNotificationRequest,
    SendNotificationResponse,
)
from ..services.dispatcher import DispatchResult, FanoutDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _build_send_response(result: DispatchResult) -> SendNotificationResponse:
    return SendNotificationResponse(
        success=True,
        results=[
            DeliveryResultItem(
                device_id=outcome.device_id,
                status=outcome.status,
                error=outcome.error,
            )
            for outcome in result.results
        ],
        total_sent=result.total_sent,
        total_failed=result.total_failed,
    )


@router.post(
    "/send",
    response_model=SendNotificationResponse,
    response_model_exclude_none=True,
)
async def send_notification(
    request: SendNotificationRequest,
    dispatcher: FanoutDispatcher = Depends(get_dispatcher),
):
    """Send a notification to the given devices.

    Inactive and unknown device ids are skipped. Responds 404 when none of
    the ids is an active device.
    """
    result = await dispatcher.send(
        request.device_ids,
        title=request.title,
        body=request.body,
        data=request.data,
    )
    return _build_send_response(result)


@router.post(
    "/test",
    response_model=SendNotificationResponse,
    response_model_exclude_none=True,
)
async def send_test_notification(
    request: NotificationTestRequest,
    dispatcher: FanoutDispatcher = Depends(get_dispatcher),
):
    """Send the canned test notification to one device."""
    result = await dispatcher.test(request.device_id)
    return _build_send_response(result)


@router.get("/history", response_model=List[HistoryItem])
async def get_history(
    request: Request,
    dispatcher: FanoutDispatcher = Depends(get_dispatcher),
):
    """Most recent delivery records with device name and platform."""
    limit = request.app.state.history_limit
    entries = await dispatcher.history(limit=limit)
    return [HistoryItem(**asdict(entry)) for entry in entries]

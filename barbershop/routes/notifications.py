"""
Push relay endpoints and notification history

``/api/send-notification`` is the relay contract: callers post a recipient
and a message, the server resolves the device token and talks to FCM.
Failures come back as ``{"error": <code>, "message": ...}`` with the status
of the matching NotificationError.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import AliasChoices, BaseModel, Field

from ..auth import CurrentUser, get_current_user, require_admin
from ..config import NOTIFY_RATE_LIMIT, NOTIFY_RATE_WINDOW_SECONDS
from ..notifications.relay import PushRelay, get_push_relay
from ..rate_limiter import create_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])

relay_rate_limit = create_rate_limiter(
    NOTIFY_RATE_LIMIT, NOTIFY_RATE_WINDOW_SECONDS, key_prefix="rate:relay"
)


class SendNotificationRequest(BaseModel):
    recipientId: str = Field(..., min_length=1, validation_alias=AliasChoices("recipientId", "userId"))
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    correlationId: Optional[str] = Field(
        None, validation_alias=AliasChoices("correlationId", "appointmentId")
    )
    queueNumber: Optional[int] = None
    extra: Optional[dict[str, Any]] = None


class SendNotificationResponse(BaseModel):
    success: bool
    deliveryId: Optional[str] = None


class BulkNotificationRequest(BaseModel):
    userIds: list[str] = Field(..., min_length=1, max_length=500)
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)


@router.post("/api/send-notification", response_model=SendNotificationResponse)
async def send_notification(
    data: SendNotificationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    relay: PushRelay = Depends(get_push_relay),
    _: None = Depends(relay_rate_limit),
):
    """Deliver one push notification to a recipient's registered device"""
    if not current_user.is_admin and current_user.uid != data.recipientId:
        logger.warning(f"🚫 {current_user.uid} tried to notify {data.recipientId}")
        raise HTTPException(status_code=403, detail="Not allowed to notify this recipient")

    queue_number = data.queueNumber
    if queue_number is None and data.extra:
        queue_number = data.extra.get("queueNumber") or data.extra.get("position")

    result = await relay.send(
        data.recipientId,
        data.title,
        data.body,
        correlation_id=data.correlationId,
        queue_number=queue_number,
        extra=data.extra,
        sent_by=current_user.uid,
    )
    return SendNotificationResponse(success=True, deliveryId=result.delivery_id)


@router.post("/api/send-bulk-notification")
async def send_bulk_notification(
    data: BulkNotificationRequest,
    current_user: CurrentUser = Depends(require_admin),
    relay: PushRelay = Depends(get_push_relay),
    _: None = Depends(relay_rate_limit),
):
    return await relay.send_bulk(
        list(dict.fromkeys(data.userIds)), data.title, data.body, sent_by=current_user.uid
    )


@router.get("/notifications")
async def get_notification_history(
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    relay: PushRelay = Depends(get_push_relay),
):
    """Notifications sent to the current user, newest first"""
    notifications = await asyncio.to_thread(relay.audit.history, current_user.uid, limit)
    return {"notifications": notifications}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    relay: PushRelay = Depends(get_push_relay),
):
    if not await asyncio.to_thread(relay.audit.mark_read, current_user.uid, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}

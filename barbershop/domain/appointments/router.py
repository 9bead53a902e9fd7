"""Admin appointment router - list, status changes and manual queue notifications"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import CurrentUser, require_admin
from ...config import NOTIFY_RATE_LIMIT, NOTIFY_RATE_WINDOW_SECONDS
from ...firebase import get_db
from ...notifications.relay import PushRelay, get_push_relay
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AppointmentPage,
    DeliveryResponse,
    NotificationDraft,
    OverrideNotification,
    StatusUpdate,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/appointments", tags=["Admin Appointments"])

notify_rate_limit = create_rate_limiter(
    NOTIFY_RATE_LIMIT, NOTIFY_RATE_WINDOW_SECONDS, key_prefix="rate:notify"
)


def get_appointment_service(
    db=Depends(get_db),
    relay: PushRelay = Depends(get_push_relay),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, relay)


@router.get("", response_model=AppointmentPage)
async def list_appointments(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    current_user: CurrentUser = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments in queue order, filtered, searched and paged"""
    page = await asyncio.to_thread(service.list_appointments, status=status, search=search, page=page)
    return page.to_dict()


@router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    data: StatusUpdate,
    current_user: CurrentUser = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await asyncio.to_thread(service.update_status, appointment_id, data.status, current_user)
    return {"success": True, "id": appointment_id, "status": appointment["status"]}


@router.get("/{appointment_id}/notification-draft", response_model=NotificationDraft)
async def get_notification_draft(
    appointment_id: str,
    current_user: CurrentUser = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await asyncio.to_thread(service.notification_draft, appointment_id)


@router.post("/{appointment_id}/notify", response_model=DeliveryResponse)
async def notify_customer(
    appointment_id: str,
    data: OverrideNotification,
    current_user: CurrentUser = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
    _: None = Depends(notify_rate_limit),
):
    """Send a manual notification to the appointment's customer"""
    result = await service.send_notification(appointment_id, data, current_user)
    return DeliveryResponse(success=result.success, deliveryId=result.delivery_id, channel=result.channel)

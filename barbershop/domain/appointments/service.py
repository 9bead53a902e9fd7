"""Appointment service - admin listing, status changes and manual notifications"""

import asyncio
import logging
from typing import Optional

from fastapi import HTTPException

from ...auth import CurrentUser
from ...config import DEFAULT_LOCALE
from ...errors import TokenInvalidError
from ...notifications.messages import render_admin_default
from ...notifications.relay import PushRelay
from ...notifications.sinks import DeliveryResult
from ...queue.positions import queue_positions, sort_for_admin
from ...shared.listing import ListConfig, Page, build_page
from ..recipients.repository import RecipientRepository
from .repository import AppointmentRepository
from .schemas import OverrideNotification

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "completed": "Completed",
    "cancelled": "Cancelled",
}

APPOINTMENT_LIST = ListConfig(
    search_fields=("customerName", "customerEmail", "customerPhone", "serviceName"),
    status_labels=STATUS_LABELS,
)


class AppointmentService:
    """Service layer for the admin appointments screen"""

    def __init__(self, db, relay: PushRelay, locale: str = DEFAULT_LOCALE):
        self.db = db
        self.relay = relay
        self.locale = locale
        self.repo = AppointmentRepository()

    def _enrich(self, appointments: list[dict]) -> list[dict]:
        """Join customer, service and queue position onto each appointment"""
        users = RecipientRepository.get_users(
            self.db, [a["userId"] for a in appointments if a.get("userId")]
        )
        services = self.repo.get_services(self.db, [a.get("serviceId") for a in appointments])
        positions = queue_positions(appointments)

        rows = []
        for appointment in appointments:
            user = users.get(appointment.get("userId")) or {}
            service = services.get(appointment.get("serviceId")) or {}
            rows.append(
                {
                    **appointment,
                    "customerName": user.get("name") or user.get("displayName") or "Unknown",
                    "customerEmail": user.get("email") or "N/A",
                    "customerPhone": user.get("phone") or "",
                    "serviceName": service.get("name") or "Unknown Service",
                    "servicePrice": service.get("price") or 0,
                    "serviceDuration": service.get("duration") or appointment.get("serviceDuration") or 0,
                    "hasFcmToken": bool(user.get("fcmToken")),
                    "queuePosition": positions.get(appointment["id"]),
                }
            )
        return rows

    def list_appointments(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
    ) -> Page:
        appointments = self.repo.get_appointments(self.db)
        rows = sort_for_admin(self._enrich(appointments))
        return build_page(rows, APPOINTMENT_LIST, status=status, search=search, page=page)

    def get_appointment(self, appointment_id: str) -> dict:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def update_status(self, appointment_id: str, status: str, user: CurrentUser) -> dict:
        appointment = self.get_appointment(appointment_id)
        self.repo.update_status(self.db, appointment_id, status)
        logger.info(
            f"📝 {user.uid} moved appointment {appointment_id} from {appointment.get('status')} to {status}"
        )
        return {**appointment, "status": status}

    def notification_draft(self, appointment_id: str) -> dict:
        """Default copy the operator sees before sending a manual notification"""
        appointment = self.get_appointment(appointment_id)
        row = self._enrich_one(appointment)
        position = row["queuePosition"]
        title, body = render_admin_default(
            row["customerName"], position if position is not None else "-", self.locale
        )
        return {
            "appointmentId": appointment_id,
            "title": title,
            "body": body,
            "queuePosition": position,
            "hasFcmToken": row["hasFcmToken"],
        }

    def _enrich_one(self, appointment: dict) -> dict:
        active = self.repo.get_active_appointments(self.db)
        if not any(a.get("id") == appointment["id"] for a in active):
            active.append(appointment)
        rows = self._enrich(active)
        return next(r for r in rows if r["id"] == appointment["id"])

    async def send_notification(
        self,
        appointment_id: str,
        data: OverrideNotification,
        user: CurrentUser,
    ) -> DeliveryResult:
        """Operator override: sends whatever the operator wrote, whatever the queue says"""
        appointment = await asyncio.to_thread(self.get_appointment, appointment_id)
        recipient_id = appointment.get("userId")
        if not recipient_id:
            raise HTTPException(status_code=400, detail="Appointment has no customer")

        title, body = data.title, data.body
        position = None
        if not title or not body:
            draft = await asyncio.to_thread(self.notification_draft, appointment_id)
            title, body = title or draft["title"], body or draft["body"]
            position = draft["queuePosition"]

        logger.info(f"📣 {user.uid} sending manual notification for appointment {appointment_id}")
        try:
            return await self.relay.send(
                recipient_id,
                title,
                body,
                correlation_id=appointment_id,
                queue_number=position,
                extra={"type": "queue_update", "appointmentId": appointment_id},
                sent_by=user.uid,
            )
        except TokenInvalidError:
            await self.relay.mark_unreachable(recipient_id)
            raise

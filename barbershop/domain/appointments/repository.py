"""Appointment repository - Firestore operations for appointments"""

from datetime import datetime, timezone
from typing import Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from ...queue.positions import ACTIVE_STATUSES

APPOINTMENTS = "appointments"
SERVICES = "services"


class AppointmentRepository:
    """Repository for appointment document operations"""

    @staticmethod
    def get_appointments(db) -> list[dict]:
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in db.collection(APPOINTMENTS).stream()]

    @staticmethod
    def get_active_appointments(db) -> list[dict]:
        query = db.collection(APPOINTMENTS).where(
            filter=FieldFilter("status", "in", list(ACTIVE_STATUSES))
        )
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]

    @staticmethod
    def get_appointment(db, appointment_id: str) -> Optional[dict]:
        snapshot = db.collection(APPOINTMENTS).document(appointment_id).get()
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}

    @staticmethod
    def update_status(db, appointment_id: str, status: str) -> None:
        db.collection(APPOINTMENTS).document(appointment_id).update(
            {"status": status, "updatedAt": datetime.now(timezone.utc).isoformat()}
        )

    @staticmethod
    def get_services(db, service_ids: list[str]) -> dict[str, dict]:
        services = {}
        for service_id in set(filter(None, service_ids)):
            snapshot = db.collection(SERVICES).document(service_id).get()
            if snapshot.exists:
                services[service_id] = snapshot.to_dict() or {}
        return services

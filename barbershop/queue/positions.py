"""
Queue positions derived from appointments

The queue is every pending or confirmed appointment, oldest first. A
customer's position is the rank of their earliest active appointment; the
estimated wait adds up the service time of everyone ahead of them.
"""

from datetime import datetime
from typing import Iterable, Optional

from ..config import DEFAULT_SERVICE_MINUTES
from .models import QueueEntry

ACTIVE_STATUSES = ("pending", "confirmed")


def _parse(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def scheduled_at(appointment: dict) -> datetime:
    """When the appointment is booked for, falling back to when it was created"""
    date = appointment.get("date")
    if date:
        parsed = _parse(f"{date}T{appointment.get('time') or '00:00'}")
        if parsed:
            return parsed
    created = appointment.get("createdAt")
    if isinstance(created, datetime):
        return created.replace(tzinfo=None)
    if isinstance(created, str):
        parsed = _parse(created)
        if parsed:
            return parsed
    return datetime.max


def is_active(appointment: dict) -> bool:
    return appointment.get("status") in ACTIVE_STATUSES


def customer_of(appointment: dict) -> Optional[str]:
    return appointment.get("userId") or appointment.get("customerId")


def active_queue(appointments: Iterable[dict]) -> list[dict]:
    active = [a for a in appointments if is_active(a)]
    return sorted(active, key=lambda a: (scheduled_at(a), a.get("id") or ""))


def queue_positions(appointments: Iterable[dict]) -> dict[str, int]:
    """Position of every active appointment, keyed by appointment id"""
    return {
        a["id"]: position
        for position, a in enumerate(active_queue(appointments), start=1)
        if a.get("id")
    }


def service_minutes(appointment: dict, default: int = DEFAULT_SERVICE_MINUTES) -> int:
    duration = appointment.get("serviceDuration") or appointment.get("durationMinutes")
    try:
        return max(int(duration), 0) if duration is not None else default
    except (TypeError, ValueError):
        return default


def queue_entries(
    appointments: Iterable[dict], default_minutes: int = DEFAULT_SERVICE_MINUTES
) -> dict[str, QueueEntry]:
    entries: dict[str, QueueEntry] = {}
    wait = 0
    for position, appointment in enumerate(active_queue(appointments), start=1):
        customer_id = customer_of(appointment)
        if customer_id and customer_id not in entries:
            entries[customer_id] = QueueEntry(
                position=position,
                estimated_wait_minutes=wait,
                customer_id=customer_id,
                appointment_id=appointment.get("id"),
            )
        wait += service_minutes(appointment, default_minutes)
    return entries


def sort_for_admin(appointments: Iterable[dict]) -> list[dict]:
    """Active appointments first in queue order, finished ones newest first"""
    appointments = list(appointments)
    finished = sorted(
        (a for a in appointments if not is_active(a)),
        key=scheduled_at,
        reverse=True,
    )
    return active_queue(appointments) + finished

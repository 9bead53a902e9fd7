from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class QueueEntry:
    """A customer's place in the appointment queue at one point in time"""

    position: int
    estimated_wait_minutes: int
    customer_id: Optional[str] = None
    appointment_id: Optional[str] = None

    def __post_init__(self):
        if self.position < 1:
            raise ValueError(f"position must be >= 1, got {self.position}")
        if self.estimated_wait_minutes < 0:
            raise ValueError(
                f"estimated_wait_minutes must be >= 0, got {self.estimated_wait_minutes}"
            )

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "estimatedWaitMinutes": self.estimated_wait_minutes,
            "customerId": self.customer_id,
            "appointmentId": self.appointment_id,
        }


@dataclass
class NotificationState:
    previous_position: Optional[int] = None
    has_fired_at_position_one: bool = False

    def reset(self) -> None:
        self.previous_position = None
        self.has_fired_at_position_one = False

"""
Queue position trigger

Decides whether a queue update is worth telling the customer about. The
decision is a pure function of the previous snapshot, the current snapshot
and the session's NotificationState; recording the outcome is up to the
caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import NotificationState, QueueEntry


class TriggerReason(str, Enum):
    FIRST_IN_LINE = "first-in-line"
    SECOND_IN_LINE = "second-in-line"
    MOVED_UP_WITHIN_TOP_3 = "moved-up-within-top-3"


@dataclass(frozen=True)
class TriggerDecision:
    should_fire: bool
    position: int
    estimated_wait_minutes: int
    reason: Optional[TriggerReason] = None


def evaluate(
    previous: Optional[QueueEntry],
    current: QueueEntry,
    state: NotificationState,
) -> TriggerDecision:
    def fire(reason: TriggerReason) -> TriggerDecision:
        return TriggerDecision(True, current.position, current.estimated_wait_minutes, reason)

    # First observation only establishes the baseline
    if previous is None:
        return TriggerDecision(False, current.position, current.estimated_wait_minutes)

    moved_up = current.position < previous.position

    if current.position == 1:
        # Position 1 notifies at most once per session, whichever rule would match
        if state.has_fired_at_position_one:
            return TriggerDecision(False, current.position, current.estimated_wait_minutes)
        return fire(TriggerReason.FIRST_IN_LINE)
    if current.position == 2 and moved_up:
        return fire(TriggerReason.SECOND_IN_LINE)
    if current.position <= 3 and moved_up:
        return fire(TriggerReason.MOVED_UP_WITHIN_TOP_3)

    return TriggerDecision(False, current.position, current.estimated_wait_minutes)

"""
Watch session

Follows one customer's queue entry and turns position changes into
notifications. Each update is handled to completion (evaluate, record,
schedule delivery) before the next one; delivery itself runs as a
background task so a slow sink never holds up later updates.

Results that arrive after the session was reset or closed are dropped.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from ..config import DEFAULT_LOCALE
from ..errors import NotificationError
from ..notifications.messages import render_queue_message
from ..notifications.sinks import DeliveryResult, NotificationSink
from .models import NotificationState, QueueEntry
from .trigger import TriggerDecision, TriggerReason, evaluate

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    ARMED = "armed"
    FIRED_AT_ONE = "fired-at-one"


class WatchSession:
    def __init__(
        self,
        sink: NotificationSink,
        correlation_id: Optional[str] = None,
        locale: str = DEFAULT_LOCALE,
        on_result: Optional[Callable[[TriggerDecision, DeliveryResult], None]] = None,
    ):
        self.sink = sink
        self.correlation_id = correlation_id
        self.locale = locale
        self.on_result = on_result

        self.state = SessionState.IDLE
        self.notification_state = NotificationState()
        self.previous: Optional[QueueEntry] = None
        self.last_result: Optional[DeliveryResult] = None
        self.closed = False

        self._generation = 0
        self._deliveries: set[asyncio.Task] = set()

    def observe(self, entry: Optional[QueueEntry]) -> Optional[TriggerDecision]:
        """Process one update from the queue position source"""
        if self.closed:
            logger.debug("Ignoring queue update for a closed session")
            return None

        if entry is None:
            self.reset()
            return None

        if self.state is SessionState.IDLE:
            self.state = SessionState.WATCHING

        decision = evaluate(self.previous, entry, self.notification_state)

        self.previous = entry
        self.notification_state.previous_position = entry.position

        if decision.should_fire:
            if decision.reason is TriggerReason.FIRST_IN_LINE:
                self.notification_state.has_fired_at_position_one = True
            self._dispatch(decision, entry)

        if self.notification_state.has_fired_at_position_one:
            self.state = SessionState.FIRED_AT_ONE
        else:
            self.state = SessionState.ARMED

        return decision

    def _dispatch(self, decision: TriggerDecision, entry: QueueEntry) -> None:
        title, body = render_queue_message(
            decision.position, decision.estimated_wait_minutes, self.locale
        )
        metadata = {
            "position": decision.position,
            "queueNumber": decision.position,
            "estimatedWaitMinutes": decision.estimated_wait_minutes,
            "reason": decision.reason.value,
        }
        correlation_id = self.correlation_id or entry.appointment_id
        if correlation_id:
            metadata["correlationId"] = correlation_id
            metadata["tag"] = f"queue-{correlation_id}"
        if entry.customer_id:
            metadata["recipientId"] = entry.customer_id

        logger.info(f"📣 Queue position {decision.position}: firing '{decision.reason.value}'")
        task = asyncio.get_running_loop().create_task(
            self._deliver(decision, title, body, metadata, self._generation)
        )
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(
        self, decision: TriggerDecision, title: str, body: str, metadata: dict, generation: int
    ) -> None:
        try:
            result = await self.sink.deliver(title, body, metadata)
        except NotificationError as e:
            logger.warning(f"⚠️ Queue notification not sent: {e.code} ({e.message})")
            result = DeliveryResult.failed(self.sink.channel, e.code, e.message)
        except Exception as e:
            logger.error(f"❌ Queue notification failed unexpectedly: {e}")
            result = DeliveryResult.failed(self.sink.channel, "delivery-failed", str(e))

        if self.closed or generation != self._generation:
            logger.debug(f"Dropping late delivery result for position {decision.position}")
            return

        self.last_result = result
        if self.on_result is not None:
            self.on_result(decision, result)

    def reset(self) -> None:
        """Queue entry disappeared: forget everything about this session"""
        self._generation += 1
        self.sink.cancel()
        self.notification_state.reset()
        self.previous = None
        self.last_result = None
        self.state = SessionState.IDLE

    def close(self) -> None:
        if self.closed:
            return
        self.reset()
        self.closed = True

    @property
    def pending(self) -> int:
        return len(self._deliveries)

    async def wait_idle(self) -> None:
        """Wait for deliveries already handed to the sink"""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

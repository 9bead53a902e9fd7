"""
Fan-out of queue snapshots to per-customer watch sessions
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional

from ..config import DEFAULT_LOCALE
from ..notifications.host import EventStreamHost
from ..notifications.sinks import NotificationSink
from .models import QueueEntry
from .session import WatchSession
from .source import QueueSource
from .trigger import TriggerDecision

logger = logging.getLogger(__name__)


class QueueMonitor:
    """One watch session per customer currently in the queue"""

    def __init__(
        self,
        sink_factory: Callable[[str], NotificationSink],
        locale: str = DEFAULT_LOCALE,
    ):
        self.sink_factory = sink_factory
        self.locale = locale
        self.sessions: dict[str, WatchSession] = {}
        self._retired: list[WatchSession] = []

    def apply(self, entries: dict[str, QueueEntry]) -> dict[str, TriggerDecision]:
        for customer_id in list(self.sessions):
            if customer_id not in entries:
                session = self.sessions.pop(customer_id)
                session.observe(None)
                session.close()
                self._retire(session)
                logger.info(f"👋 {customer_id} left the queue")

        decisions = {}
        for customer_id, entry in entries.items():
            session = self.sessions.get(customer_id)
            if session is None:
                session = WatchSession(self.sink_factory(customer_id), locale=self.locale)
                self.sessions[customer_id] = session
                logger.info(f"🆕 Watching {customer_id} at position {entry.position}")
            decisions[customer_id] = session.observe(entry)
        return decisions

    async def run(self, source: QueueSource) -> None:
        async for entries in source.snapshots():
            self.apply(entries)

    def _retire(self, session: WatchSession) -> None:
        """Closed sessions are only kept while a delivery is still in flight"""
        self._retired = [s for s in self._retired if s.pending]
        if session.pending:
            self._retired.append(session)

    def close(self) -> None:
        for session in self.sessions.values():
            session.close()
            self._retire(session)
        self.sessions.clear()

    async def wait_idle(self) -> None:
        sessions = list(self.sessions.values()) + self._retired
        await asyncio.gather(*(s.wait_idle() for s in sessions))
        self._retired.clear()


@dataclass
class Watch:
    customer_id: str
    session: WatchSession
    host: EventStreamHost
    closed: bool = field(default=False)

    def close(self, reason: str = "closed") -> None:
        if self.closed:
            return
        self.closed = True
        self.session.close()
        self.host.close()
        self.host.publish("closed", {"reason": reason})


class WatchRegistry:
    """At most one live watch per customer; a new watch replaces the old one"""

    def __init__(self):
        self._watches: dict[str, Watch] = {}

    def open(self, customer_id: str, session: WatchSession, host: EventStreamHost) -> Watch:
        existing = self._watches.get(customer_id)
        if existing is not None:
            logger.info(f"🔁 Replacing existing queue watch for {customer_id}")
            existing.close(reason="replaced")

        watch = Watch(customer_id=customer_id, session=session, host=host)
        self._watches[customer_id] = watch
        return watch

    def get(self, customer_id: str) -> Optional[Watch]:
        return self._watches.get(customer_id)

    def release(self, watch: Watch) -> None:
        watch.close()
        if self._watches.get(watch.customer_id) is watch:
            del self._watches[watch.customer_id]


async def follow(watch: Watch, updates: AsyncIterator[Optional[QueueEntry]]) -> None:
    """Feed one customer's queue updates into their watch"""
    async for entry in updates:
        if watch.closed:
            return
        watch.host.publish("queue", entry.to_dict() if entry else None)
        watch.session.observe(entry)

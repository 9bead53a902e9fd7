"""
Queue position source backed by a Firestore snapshot listener

Firestore calls the listener on its own thread; snapshots are handed to the
event loop with ``call_soon_threadsafe`` and consumed as an async iterator.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from google.cloud.firestore_v1.base_query import FieldFilter

from ..config import DEFAULT_SERVICE_MINUTES
from .models import QueueEntry
from .positions import ACTIVE_STATUSES, queue_entries

logger = logging.getLogger(__name__)

_CLOSED = object()
_UNSET = object()


class QueueSource(Protocol):
    def snapshots(self) -> AsyncIterator[dict[str, QueueEntry]]:
        ...

    def close(self) -> None:
        ...


async def for_customer(source: QueueSource, customer_id: str) -> AsyncIterator[Optional[QueueEntry]]:
    """Narrow a queue source to one customer, yielding only when their entry changes"""
    previous = _UNSET
    async for entries in source.snapshots():
        entry = entries.get(customer_id)
        if entry != previous:
            previous = entry
            yield entry


class FirestoreQueueSource:
    def __init__(self, db, default_minutes: int = DEFAULT_SERVICE_MINUTES):
        self.db = db
        self.default_minutes = default_minutes
        self._updates: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._watch = None

    def start(self) -> None:
        if self._watch is not None:
            return
        self._loop = asyncio.get_running_loop()
        query = self.db.collection("appointments").where(
            filter=FieldFilter("status", "in", list(ACTIVE_STATUSES))
        )
        self._watch = query.on_snapshot(self._on_snapshot)
        logger.info("👀 Listening for queue changes")

    def _on_snapshot(self, docs, changes, read_time) -> None:
        appointments = [{"id": doc.id, **(doc.to_dict() or {})} for doc in docs]
        entries = queue_entries(appointments, self.default_minutes)
        self._hand_off(entries)

    def _hand_off(self, item) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._updates.put_nowait, item)
        except RuntimeError:
            logger.debug("Event loop gone, dropping queue snapshot")

    async def snapshots(self) -> AsyncIterator[dict[str, QueueEntry]]:
        self.start()
        while True:
            item = await self._updates.get()
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
            logger.info("Stopped listening for queue changes")
        self._hand_off(_CLOSED)

"""
Host capabilities for the local notification channel

The browser owns notification permission and the actual notification UI.
``EventStreamHost`` stands in for it on the server side of a queue watch
stream: it turns "show" and "close" calls into server-sent events and waits
for the browser to answer permission prompts.
"""

import asyncio
import logging
from typing import Optional, Protocol

from ..config import PERMISSION_REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

PERMISSION_STATES = ("granted", "default", "denied")


class NotificationHandle(Protocol):
    def close(self) -> None:
        ...


class NotificationHost(Protocol):
    def permission(self) -> str:
        ...

    async def request_permission(self) -> bool:
        ...

    def show(self, title: str, body: str, icon: str, tag: str, data: dict) -> NotificationHandle:
        ...


class StreamNotificationHandle:
    def __init__(self, host: "EventStreamHost", tag: str):
        self.host = host
        self.tag = tag
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.host.publish("dismiss", {"tag": self.tag})


class EventStreamHost:
    def __init__(
        self,
        permission: str = "default",
        request_timeout: float = PERMISSION_REQUEST_TIMEOUT_SECONDS,
    ):
        if permission not in PERMISSION_STATES:
            raise ValueError(f"Unknown permission state: {permission}")
        self._permission = permission
        self.request_timeout = request_timeout
        self.events: asyncio.Queue = asyncio.Queue()
        self._pending: Optional[asyncio.Future] = None

    def permission(self) -> str:
        return self._permission

    async def request_permission(self) -> bool:
        if self._pending is None or self._pending.done():
            self._pending = asyncio.get_running_loop().create_future()
            self.publish("permission-request", {})

        try:
            return await asyncio.wait_for(asyncio.shield(self._pending), self.request_timeout)
        except asyncio.TimeoutError:
            logger.info("⏱️ Permission request went unanswered")
            return False

    def resolve_permission(self, state: str) -> None:
        if state not in PERMISSION_STATES:
            raise ValueError(f"Unknown permission state: {state}")
        self._permission = state
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(state == "granted")

    def show(self, title: str, body: str, icon: str, tag: str, data: dict) -> StreamNotificationHandle:
        self.publish(
            "notification",
            {"title": title, "body": body, "icon": icon, "tag": tag, "data": data},
        )
        return StreamNotificationHandle(self, tag)

    def publish(self, event: str, data) -> None:
        self.events.put_nowait({"event": event, "data": data})

    async def next_event(self) -> dict:
        return await self.events.get()

    def close(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

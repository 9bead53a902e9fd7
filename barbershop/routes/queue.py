"""
Customer queue endpoints

``/queue/watch`` is the local notification channel: the browser keeps an
event stream open, receives queue updates and notification/dismiss events,
and answers permission prompts through ``/queue/watch/permission``.
"""

import asyncio
import json
import logging
from typing import AsyncGenerator, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from ..auth import CurrentUser, get_current_user
from ..config import DEFAULT_LOCALE, DEFAULT_SERVICE_MINUTES
from ..domain.appointments.repository import AppointmentRepository
from ..firebase import get_db
from ..notifications.audit import AuditLog
from ..notifications.host import EventStreamHost
from ..notifications.sinks import AuditedSink, LocalNotificationSink
from ..queue.monitor import WatchRegistry, follow
from ..queue.positions import queue_entries
from ..queue.session import WatchSession
from ..queue.source import FirestoreQueueSource, for_customer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["Queue"])

PING_SECONDS = 15


class PermissionAnswer(BaseModel):
    state: Literal["granted", "denied", "default"]


def get_watch_registry(request: Request) -> WatchRegistry:
    return request.app.state.watch_registry


@router.get("/me")
async def get_my_queue_entry(
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    """Where the current user stands right now"""
    appointments = await asyncio.to_thread(AppointmentRepository.get_active_appointments, db)
    entry = queue_entries(appointments, DEFAULT_SERVICE_MINUTES).get(current_user.uid)
    return {
        "inQueue": entry is not None,
        "entry": entry.to_dict() if entry else None,
        "queueLength": len(appointments),
    }


@router.get("/watch")
async def watch_queue(
    permission: Literal["granted", "default", "denied"] = Query("default"),
    locale: str = Query(DEFAULT_LOCALE),
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    registry: WatchRegistry = Depends(get_watch_registry),
):
    """Stream queue updates and local notifications for the current user"""
    host = EventStreamHost(permission=permission)
    sink = AuditedSink(
        LocalNotificationSink(host, recipient_id=current_user.uid),
        AuditLog(db),
        sent_by="queue-watch",
    )
    session = WatchSession(sink, locale=locale)
    watch = registry.open(current_user.uid, session, host)
    source = FirestoreQueueSource(db)
    logger.info(f"📡 Queue watch opened for {current_user.uid}")

    async def event_generator() -> AsyncGenerator[dict, None]:
        task = asyncio.create_task(follow(watch, for_customer(source, current_user.uid)))
        task.add_done_callback(lambda t: _follow_done(t, watch))
        try:
            while True:
                event = await host.next_event()
                yield {"event": event["event"], "data": json.dumps(event["data"])}
                if event["event"] == "closed":
                    break
        finally:
            task.cancel()
            source.close()
            registry.release(watch)
            logger.info(f"📴 Queue watch closed for {current_user.uid}")

    return EventSourceResponse(
        event_generator(),
        ping=PING_SECONDS,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _follow_done(task: asyncio.Task, watch) -> None:
    if task.cancelled():
        return
    if task.exception() is not None:
        logger.error(f"❌ Queue watch for {watch.customer_id} failed: {task.exception()}")
        watch.close(reason="error")
    else:
        watch.close(reason="ended")


@router.post("/watch/permission")
async def answer_permission(
    data: PermissionAnswer,
    current_user: CurrentUser = Depends(get_current_user),
    registry: WatchRegistry = Depends(get_watch_registry),
):
    """Answer the notification permission prompt sent on the watch stream"""
    watch = registry.get(current_user.uid)
    if watch is None or watch.closed:
        raise HTTPException(status_code=404, detail="No active queue watch")

    watch.host.resolve_permission(data.state)
    logger.info(f"🔔 {current_user.uid} answered notification permission: {data.state}")
    return {"success": True, "permission": data.state}

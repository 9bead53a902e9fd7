"""
Queue Notifier Background Worker
Watches the live appointment queue and pushes "your turn is coming up"
notifications through the push relay
"""

import asyncio
import logging
from functools import partial

import httpx

from ..config import DEFAULT_LOCALE, RELAY_SERVICE_TOKEN, RELAY_TIMEOUT_SECONDS, RELAY_URL
from ..domain.recipients.repository import RecipientRepository
from ..firebase import close_clients, create_clients
from ..notifications.sinks import RelayNotificationSink
from ..queue.monitor import QueueMonitor
from ..queue.source import FirestoreQueueSource

logger = logging.getLogger(__name__)

RESTART_DELAY_SECONDS = 30


async def is_opted_in(db, recipient_id: str) -> bool:
    return await asyncio.to_thread(RecipientRepository.has_device_token, db, recipient_id)


def relay_sink_factory(db, http: httpx.AsyncClient):
    def build(customer_id: str) -> RelayNotificationSink:
        return RelayNotificationSink(
            http,
            RELAY_URL,
            partial(is_opted_in, db),
            recipient_id=customer_id,
            auth_token=RELAY_SERVICE_TOKEN,
            timeout=RELAY_TIMEOUT_SECONDS,
        )

    return build


async def watch_queue(db, http: httpx.AsyncClient) -> None:
    """Run one queue monitor until the listener stops or fails"""
    source = FirestoreQueueSource(db)
    monitor = QueueMonitor(relay_sink_factory(db, http), locale=DEFAULT_LOCALE)
    try:
        await monitor.run(source)
    finally:
        source.close()
        monitor.close()
        await monitor.wait_idle()


async def run_queue_notifier():
    """
    Main worker loop - restarts the queue listener if it fails
    """
    logger.info("🚀 Starting queue notifier worker...")
    if not RELAY_SERVICE_TOKEN:
        logger.warning("⚠️ RELAY_SERVICE_TOKEN not set - the relay will reject worker requests")

    clients = create_clients(http_timeout=RELAY_TIMEOUT_SECONDS)
    try:
        while True:
            try:
                await watch_queue(clients.db, clients.http)
                logger.warning("⚠️ Queue listener stopped, restarting")
            except Exception as e:
                logger.error(f"❌ Error in queue notifier loop: {e}")
            await asyncio.sleep(RESTART_DELAY_SECONDS)
    finally:
        await close_clients(clients)

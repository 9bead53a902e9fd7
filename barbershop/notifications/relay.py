"""
Push relay service

Server-side entry point for every push notification: the relay endpoint, the
admin override and bulk sends all go through here. Each send is delivered by
FirebasePushSink and audited.
"""

import asyncio
import logging
from typing import Callable, Optional

from fastapi import Depends

from ..domain.recipients.repository import RecipientRepository
from ..errors import NotificationError, TokenInvalidError
from ..firebase import get_db, get_firebase_app
from .audit import AuditLog
from .push import FirebasePushSink
from .sinks import AuditedSink, DeliveryResult

logger = logging.getLogger(__name__)


class PushRelay:
    def __init__(self, db, firebase_app=None, send: Optional[Callable] = None):
        self.db = db
        self.audit = AuditLog(db)
        self._push = FirebasePushSink(db, firebase_app=firebase_app, send=send)

    def sink(self, sent_by: Optional[str] = None) -> AuditedSink:
        return AuditedSink(self._push, self.audit, sent_by=sent_by)

    async def send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        correlation_id: Optional[str] = None,
        queue_number: Optional[int] = None,
        extra: Optional[dict] = None,
        sent_by: Optional[str] = None,
    ) -> DeliveryResult:
        metadata = {"recipientId": recipient_id}
        if correlation_id:
            metadata["correlationId"] = correlation_id
        if queue_number is not None:
            metadata["queueNumber"] = queue_number
        if extra:
            metadata["extra"] = extra
            if extra.get("type"):
                metadata["type"] = extra["type"]

        return await self.sink(sent_by).deliver(title, body, metadata)

    async def send_bulk(
        self,
        recipient_ids: list[str],
        title: str,
        body: str,
        sent_by: Optional[str] = None,
    ) -> dict:
        results = []
        for recipient_id in recipient_ids:
            try:
                result = await self.send(recipient_id, title, body, sent_by=sent_by)
                results.append({"userId": recipient_id, "success": True, "deliveryId": result.delivery_id})
            except TokenInvalidError as e:
                await self.mark_unreachable(recipient_id)
                results.append({"userId": recipient_id, "success": False, "error": e.code})
            except NotificationError as e:
                results.append({"userId": recipient_id, "success": False, "error": e.code})

        successful = sum(1 for r in results if r["success"])
        logger.info(f"📨 Bulk push: {successful}/{len(recipient_ids)} delivered")
        return {
            "total": len(recipient_ids),
            "successful": successful,
            "failed": len(recipient_ids) - successful,
            "results": results,
        }

    async def mark_unreachable(self, recipient_id: str) -> None:
        """Forget a token the push provider has rejected for good"""
        try:
            await asyncio.to_thread(
                RecipientRepository.clear_device_token, self.db, recipient_id, "unregistered"
            )
            logger.info(f"🧹 Cleared invalid device token for {recipient_id}")
        except Exception as e:
            logger.error(f"❌ Failed to clear device token for {recipient_id}: {e}")


def get_push_relay(db=Depends(get_db), firebase_app=Depends(get_firebase_app)) -> PushRelay:
    """Dependency injection for PushRelay"""
    return PushRelay(db, firebase_app=firebase_app)

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

logger = logging.getLogger(__name__)

COLLECTION = "notifications"


class AuditLog:
    """Notification history in the ``notifications`` collection"""

    def __init__(self, db):
        self.db = db

    async def record(
        self,
        *,
        recipient_id: Optional[str],
        title: str,
        body: str,
        channel: str,
        outcome: str,
        error: Optional[str] = None,
        delivery_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        sent_by: Optional[str] = None,
    ) -> Optional[str]:
        """Write one audit record. Never raises."""
        metadata = metadata or {}
        record = {
            "userId": recipient_id,
            "title": title,
            "body": body,
            "channel": channel,
            "outcome": outcome,
            "error": error,
            "deliveryId": delivery_id,
            "appointmentId": metadata.get("correlationId") or metadata.get("appointmentId"),
            "queueNumber": metadata.get("queueNumber") or metadata.get("position"),
            "type": metadata.get("type", "queue"),
            "read": False,
            "sentBy": sent_by,
            "sentAt": datetime.now(timezone.utc),
        }

        try:
            _, ref = await asyncio.to_thread(self.db.collection(COLLECTION).add, record)
            logger.debug(f"📝 Audit record {ref.id} written for {recipient_id} ({outcome})")
            return ref.id
        except Exception as e:
            logger.error(f"❌ Failed to write notification audit record for {recipient_id}: {e}")
            return None

    def history(self, user_id: str, limit: int = 50) -> list[dict]:
        query = (
            self.db.collection(COLLECTION)
            .where(filter=FieldFilter("userId", "==", user_id))
            .order_by("sentAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return [{"id": doc.id, **doc.to_dict()} for doc in query.stream()]

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        ref = self.db.collection(COLLECTION).document(notification_id)
        snapshot = ref.get()
        if not snapshot.exists or (snapshot.to_dict() or {}).get("userId") != user_id:
            return False
        ref.update({"read": True})
        return True

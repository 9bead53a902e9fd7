"""
Firebase Cloud Messaging push sink

This is the server side of the push relay: it holds the provider
credential, resolves the recipient's device token and sends the message.
"""

import asyncio
import logging
from functools import partial
from typing import Callable, Optional

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from ..config import NOTIFICATION_BADGE, NOTIFICATION_ICON
from ..domain.recipients.repository import RecipientRepository
from ..errors import (
    DeliveryFailedError,
    NotificationError,
    RecipientNotOptedInError,
    TokenInvalidError,
)
from .sinks import DeliveryResult

logger = logging.getLogger(__name__)

VIBRATE_PATTERN = [200, 100, 200]


def build_message(
    token: str,
    title: str,
    body: str,
    metadata: dict,
    icon: str = NOTIFICATION_ICON,
    badge: str = NOTIFICATION_BADGE,
) -> messaging.Message:
    appointment_id = metadata.get("correlationId") or metadata.get("appointmentId") or ""
    queue_number = metadata.get("queueNumber")
    link = f"/appointments/{appointment_id}" if appointment_id else "/"

    # FCM data payload values must be strings
    data = {
        str(key): str(value)
        for key, value in (metadata.get("extra") or {}).items()
        if value is not None
    }
    data.update(
        {
            "appointmentId": appointment_id,
            "queueNumber": str(queue_number) if queue_number is not None else "",
            "url": link,
        }
    )

    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=title, body=body),
        data=data,
        webpush=messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                icon=icon,
                badge=badge,
                vibrate=VIBRATE_PATTERN,
            ),
            fcm_options=messaging.WebpushFCMOptions(link=link),
        ),
    )


class FirebasePushSink:
    channel = "push"

    def __init__(
        self,
        db,
        firebase_app=None,
        send: Optional[Callable[[messaging.Message], str]] = None,
        recipient_id: Optional[str] = None,
    ):
        self.db = db
        self.recipient_id = recipient_id
        self._send = send or partial(messaging.send, app=firebase_app)

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        metadata = dict(metadata or {})
        recipient_id = metadata.get("recipientId") or self.recipient_id
        if not recipient_id:
            raise ValueError("FirebasePushSink needs a recipient id")

        try:
            token = await asyncio.to_thread(RecipientRepository.get_device_token, self.db, recipient_id)
        except NotificationError:
            raise
        except Exception as e:
            logger.error(f"❌ Device token lookup for {recipient_id} failed: {e}")
            raise DeliveryFailedError("Could not look up the recipient's device token") from e

        if not token:
            logger.info(f"🔕 {recipient_id} has no device token on file")
            raise RecipientNotOptedInError(f"Recipient {recipient_id} has not enabled notifications")

        message = build_message(token, title, body, metadata)

        try:
            message_id = await asyncio.to_thread(self._send, message)
        except messaging.UnregisteredError as e:
            logger.warning(f"⚠️ Device token for {recipient_id} is no longer registered")
            raise TokenInvalidError("Recipient's notification token is no longer valid") from e
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            logger.error(f"❌ FCM send to {recipient_id} failed: {e}")
            raise DeliveryFailedError(str(e) or "Push provider error") from e

        logger.info(f"📲 Push sent to {recipient_id}: {message_id}")
        return DeliveryResult(success=True, channel=self.channel, delivery_id=message_id)

    def cancel(self) -> None:
        pass

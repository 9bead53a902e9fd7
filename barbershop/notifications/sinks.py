"""
Notification sinks

A sink delivers one already-decided notification through one channel:

- LocalNotificationSink shows it on the customer's own device through a
  host capability (browser notification permission + "show" call).
- RelayNotificationSink hands it to the push relay over HTTP, which looks up
  the recipient's device token and calls the push provider.
- AuditedSink wraps either one and records what happened.

Relay failures raise the typed errors from ``barbershop.errors``. A refused
local permission is not an error for the rest of the system: it is logged
and reported as an unsuccessful DeliveryResult.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Optional, Protocol

import httpx

from ..config import (
    LOCAL_NOTIFICATION_TIMEOUT_SECONDS,
    NOTIFICATION_ICON,
    RELAY_TIMEOUT_SECONDS,
)
from ..errors import (
    ERRORS_BY_CODE,
    PERMISSION_DENIED,
    DeliveryFailedError,
    NotificationError,
    RecipientNotOptedInError,
)
from .audit import AuditLog
from .host import NotificationHost

logger = logging.getLogger(__name__)

DEFAULT_TAG = "queue-notification"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    channel: str
    delivery_id: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def failed(cls, channel: str, error: str, detail: Optional[str] = None) -> "DeliveryResult":
        return cls(success=False, channel=channel, error=error, detail=detail)

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationSink(Protocol):
    channel: str

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        ...

    def cancel(self) -> None:
        ...


class LocalNotificationSink:
    """Shows notifications through the host, one visible notification per tag"""

    channel = "local"

    def __init__(
        self,
        host: NotificationHost,
        recipient_id: Optional[str] = None,
        icon: str = NOTIFICATION_ICON,
        dismiss_after: float = LOCAL_NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.recipient_id = recipient_id
        self.icon = icon
        self.dismiss_after = dismiss_after
        self._active: dict[str, tuple[object, asyncio.TimerHandle]] = {}
        self._permission_requests: set[asyncio.Task] = set()

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        metadata = dict(metadata or {})
        tag = metadata.pop("tag", None) or DEFAULT_TAG

        permission = self.host.permission()
        if permission != "granted":
            granted = False
            if permission != "denied":
                granted = await self._request_permission()
            if not granted:
                logger.info(f"🔕 Notification permission not granted ({permission}), skipping '{title}'")
                return DeliveryResult.failed(self.channel, PERMISSION_DENIED, "Notification permission denied")

        try:
            handle = self.host.show(title=title, body=body, icon=self.icon, tag=tag, data=metadata)
        except Exception as e:
            logger.error(f"❌ Failed to show local notification '{title}': {e}")
            return DeliveryResult.failed(self.channel, DeliveryFailedError.code, str(e))

        self._replace(tag, handle)
        logger.info(f"🔔 Local notification shown: tag={tag} title='{title}'")
        return DeliveryResult(success=True, channel=self.channel, delivery_id=tag)

    async def _request_permission(self) -> bool:
        task = asyncio.ensure_future(self.host.request_permission())
        self._permission_requests.add(task)
        try:
            await asyncio.wait({task})
        finally:
            self._permission_requests.discard(task)
            if not task.done():
                task.cancel()

        if task.cancelled():
            logger.info("Permission request cancelled")
            return False
        if task.exception() is not None:
            logger.warning(f"⚠️ Permission request failed: {task.exception()}")
            return False
        return bool(task.result())

    def _replace(self, tag: str, handle) -> None:
        previous = self._active.pop(tag, None)
        if previous is not None:
            previous_handle, timer = previous
            timer.cancel()
            self._close(previous_handle)

        timer = asyncio.get_running_loop().call_later(self.dismiss_after, self._expire, tag, handle)
        self._active[tag] = (handle, timer)

    def _expire(self, tag: str, handle) -> None:
        current = self._active.get(tag)
        if current is not None and current[0] is handle:
            del self._active[tag]
        self._close(handle)

    @staticmethod
    def _close(handle) -> None:
        try:
            handle.close()
        except Exception as e:
            logger.warning(f"⚠️ Failed to close notification: {e}")

    def cancel(self) -> None:
        """Abandon any permission prompt still waiting for an answer"""
        for task in list(self._permission_requests):
            task.cancel()


def error_from_response(response: httpx.Response) -> NotificationError:
    try:
        payload = response.json()
    except ValueError:
        payload = {}

    code = payload.get("error") if isinstance(payload, dict) else None
    message = (payload.get("message") if isinstance(payload, dict) else None) or code
    message = message or f"Relay returned HTTP {response.status_code}"

    error_cls = ERRORS_BY_CODE.get(code)
    if error_cls is not None:
        return error_cls(message)
    return DeliveryFailedError(message, retryable=response.status_code >= 500)


class RelayNotificationSink:
    """Client side of the push relay contract"""

    channel = "relay"

    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str,
        opted_in: Callable[[str], Awaitable[bool]],
        recipient_id: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: float = RELAY_TIMEOUT_SECONDS,
    ):
        self.http = http
        self.url = url
        self.opted_in = opted_in
        self.recipient_id = recipient_id
        self.auth_token = auth_token
        self.timeout = timeout

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        metadata = dict(metadata or {})
        metadata.pop("tag", None)
        recipient_id = metadata.pop("recipientId", None) or self.recipient_id
        if not recipient_id:
            raise ValueError("RelayNotificationSink needs a recipient id")

        if not await self.opted_in(recipient_id):
            raise RecipientNotOptedInError(f"Recipient {recipient_id} has not enabled notifications")

        payload = {"recipientId": recipient_id, "title": title, "body": body}
        correlation_id = metadata.pop("correlationId", None)
        if correlation_id:
            payload["correlationId"] = correlation_id
        if metadata:
            payload["extra"] = metadata

        headers = {"Authorization": f"Bearer {self.auth_token}"} if self.auth_token else None

        try:
            response = await self.http.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise DeliveryFailedError("Push relay timed out") from e
        except httpx.HTTPError as e:
            raise DeliveryFailedError(f"Push relay unreachable: {e}") from e

        if response.is_success:
            data = response.json()
            logger.info(f"✅ Relay delivered to {recipient_id}: {data.get('deliveryId')}")
            return DeliveryResult(success=True, channel=self.channel, delivery_id=data.get("deliveryId"))

        error = error_from_response(response)
        logger.warning(f"⚠️ Relay refused delivery to {recipient_id}: {error.code} ({response.status_code})")
        raise error

    def cancel(self) -> None:
        pass


class AuditedSink:
    """Delivery first, then a best-effort audit record of the outcome"""

    def __init__(self, inner: NotificationSink, audit: AuditLog, sent_by: Optional[str] = None):
        self.inner = inner
        self.audit = audit
        self.sent_by = sent_by

    @property
    def channel(self) -> str:
        return self.inner.channel

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        metadata = dict(metadata or {})
        recipient_id = metadata.get("recipientId") or getattr(self.inner, "recipient_id", None)

        try:
            result = await self.inner.deliver(title, body, metadata)
        except NotificationError as e:
            await self.audit.record(
                recipient_id=recipient_id,
                title=title,
                body=body,
                channel=self.channel,
                outcome="failed",
                error=e.code,
                metadata=metadata,
                sent_by=self.sent_by,
            )
            raise

        await self.audit.record(
            recipient_id=recipient_id,
            title=title,
            body=body,
            channel=self.channel,
            outcome="delivered" if result.success else "failed",
            error=result.error,
            delivery_id=result.delivery_id,
            metadata=metadata,
            sent_by=self.sent_by,
        )
        return result

    def cancel(self) -> None:
        self.inner.cancel()

import asyncio
import json

import httpx
import pytest
import respx

from barbershop.errors import (
    DeliveryFailedError,
    RecipientNotFoundError,
    RecipientNotOptedInError,
    TokenInvalidError,
)
from barbershop.notifications.audit import AuditLog
from barbershop.notifications.host import EventStreamHost
from barbershop.notifications.sinks import (
    AuditedSink,
    LocalNotificationSink,
    RelayNotificationSink,
)
from tests.conftest import FailingCollection, FakeHost, RecordingSink

RELAY_URL = "https://relay.example/api/send-notification"


# Local channel


@pytest.mark.asyncio
async def test_local_delivery_shows_notification():
    host = FakeHost()
    sink = LocalNotificationSink(host, icon="/icon.svg")

    result = await sink.deliver("Hi", "Your turn", {"tag": "queue-a1", "position": 1})

    assert result.success is True
    assert result.channel == "local"
    shown, _ = host.shown[0]
    assert shown["tag"] == "queue-a1"
    assert shown["icon"] == "/icon.svg"
    assert shown["data"] == {"position": 1}


@pytest.mark.asyncio
async def test_same_tag_replaces_previous_notification():
    host = FakeHost()
    sink = LocalNotificationSink(host)

    await sink.deliver("One", "first", {"tag": "queue-a1"})
    await sink.deliver("Two", "second", {"tag": "queue-a1"})
    await sink.deliver("Other", "third", {"tag": "queue-b2"})

    (_, first), (_, second), (_, other) = host.shown
    assert first.closed is True
    assert second.closed is False
    assert other.closed is False


@pytest.mark.asyncio
async def test_untagged_deliveries_share_the_default_tag():
    host = FakeHost()
    sink = LocalNotificationSink(host)

    await sink.deliver("One", "first")
    await sink.deliver("Two", "second")

    assert host.shown[0][0]["tag"] == "queue-notification"
    assert host.shown[0][1].closed is True


@pytest.mark.asyncio
async def test_notification_auto_dismisses():
    host = FakeHost()
    sink = LocalNotificationSink(host, dismiss_after=0.01)

    await sink.deliver("Hi", "Your turn", {"tag": "queue-a1"})
    await asyncio.sleep(0.05)

    assert host.shown[0][1].closed is True


@pytest.mark.asyncio
async def test_denied_permission_is_not_prompted_and_not_raised():
    host = FakeHost(permission="denied")
    sink = LocalNotificationSink(host)

    result = await sink.deliver("Hi", "Your turn")

    assert result.success is False
    assert result.error == "permission-denied"
    assert host.prompts == 0
    assert host.shown == []


@pytest.mark.asyncio
async def test_default_permission_prompts_once_per_attempt():
    host = FakeHost(permission="default", answer=False)
    sink = LocalNotificationSink(host)

    result = await sink.deliver("Hi", "Your turn")

    assert result.success is False
    assert host.prompts == 1
    assert host.shown == []


@pytest.mark.asyncio
async def test_granted_prompt_shows_notification():
    host = FakeHost(permission="default", answer=True)
    sink = LocalNotificationSink(host)

    result = await sink.deliver("Hi", "Your turn")

    assert result.success is True
    assert host.prompts == 1
    assert len(host.shown) == 1


@pytest.mark.asyncio
async def test_show_failure_becomes_failed_result():
    sink = LocalNotificationSink(FakeHost(fail_show=True))

    result = await sink.deliver("Hi", "Your turn")

    assert result.success is False
    assert result.error == "delivery-failed"


@pytest.mark.asyncio
async def test_cancel_abandons_pending_permission_prompt():
    host = EventStreamHost(permission="default", request_timeout=5)
    sink = LocalNotificationSink(host)

    delivery = asyncio.create_task(sink.deliver("Hi", "Your turn"))
    await asyncio.sleep(0)
    assert (await host.next_event())["event"] == "permission-request"

    sink.cancel()
    result = await delivery

    assert result.success is False
    assert result.error == "permission-denied"


@pytest.mark.asyncio
async def test_event_stream_host_round_trip():
    host = EventStreamHost(permission="default", request_timeout=5)
    sink = LocalNotificationSink(host)

    delivery = asyncio.create_task(sink.deliver("Hi", "Your turn", {"tag": "queue-a1"}))
    assert (await host.next_event())["event"] == "permission-request"
    host.resolve_permission("granted")
    result = await delivery

    assert result.success is True
    event = await host.next_event()
    assert event["event"] == "notification"
    assert event["data"]["title"] == "Hi"
    assert event["data"]["tag"] == "queue-a1"


@pytest.mark.asyncio
async def test_unanswered_permission_request_times_out():
    host = EventStreamHost(permission="default", request_timeout=0.01)

    assert await host.request_permission() is False


# Relay channel


def relay_sink(http, opted_in=True, **kwargs) -> RelayNotificationSink:
    async def check(recipient_id):
        return opted_in

    return RelayNotificationSink(http, RELAY_URL, check, recipient_id="cust-1", **kwargs)


@pytest.mark.asyncio
@respx.mock
async def test_relay_posts_contract_payload():
    route = respx.post(RELAY_URL).respond(200, json={"success": True, "deliveryId": "msg-1"})

    async with httpx.AsyncClient() as http:
        result = await relay_sink(http, auth_token="svc").deliver(
            "Hi", "Your turn", {"correlationId": "appt-1", "position": 2, "tag": "queue-appt-1"}
        )

    assert result.success is True
    assert result.delivery_id == "msg-1"
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer svc"
    payload = json.loads(request.content)
    assert payload == {
        "recipientId": "cust-1",
        "title": "Hi",
        "body": "Your turn",
        "correlationId": "appt-1",
        "extra": {"position": 2},
    }


@pytest.mark.asyncio
@respx.mock
async def test_relay_without_device_token_never_calls_http():
    route = respx.post(RELAY_URL).respond(200, json={"success": True, "deliveryId": "msg-1"})

    async with httpx.AsyncClient() as http:
        with pytest.raises(RecipientNotOptedInError):
            await relay_sink(http, opted_in=False).deliver("Hi", "Your turn")

    assert route.called is False


@pytest.mark.asyncio
@respx.mock
async def test_relay_unregistered_token_is_terminal_error():
    respx.post(RELAY_URL).respond(
        410, json={"error": "registration-token-not-registered", "message": "Token no longer valid"}
    )

    async with httpx.AsyncClient() as http:
        with pytest.raises(TokenInvalidError) as exc_info:
            await relay_sink(http).deliver("Hi", "Your turn")

    assert exc_info.value.code == "registration-token-not-registered"
    assert not isinstance(exc_info.value, DeliveryFailedError)


@pytest.mark.asyncio
@respx.mock
async def test_relay_maps_known_error_codes():
    respx.post(RELAY_URL).respond(404, json={"error": "recipient-not-found", "message": "nope"})

    async with httpx.AsyncClient() as http:
        with pytest.raises(RecipientNotFoundError):
            await relay_sink(http).deliver("Hi", "Your turn")


@pytest.mark.asyncio
@respx.mock
async def test_relay_server_error_is_retryable_failure():
    respx.post(RELAY_URL).respond(500, text="boom")

    async with httpx.AsyncClient() as http:
        with pytest.raises(DeliveryFailedError) as exc_info:
            await relay_sink(http).deliver("Hi", "Your turn")

    assert exc_info.value.retryable is True


@pytest.mark.asyncio
@respx.mock
async def test_relay_client_error_is_not_retryable():
    respx.post(RELAY_URL).respond(400, json={"error": "bad-request"})

    async with httpx.AsyncClient() as http:
        with pytest.raises(DeliveryFailedError) as exc_info:
            await relay_sink(http).deliver("Hi", "Your turn")

    assert exc_info.value.retryable is False


@pytest.mark.asyncio
@respx.mock
async def test_relay_network_failure_is_generic_delivery_failure():
    respx.post(RELAY_URL).mock(side_effect=httpx.ConnectError("refused"))

    async with httpx.AsyncClient() as http:
        with pytest.raises(DeliveryFailedError):
            await relay_sink(http).deliver("Hi", "Your turn")


# Audit


@pytest.mark.asyncio
async def test_audited_sink_records_success(db):
    sink = AuditedSink(RecordingSink(), AuditLog(db), sent_by="admin-1")

    result = await sink.deliver("Hi", "Your turn", {"recipientId": "cust-1", "correlationId": "appt-1"})

    assert result.success is True
    (record,) = db.all("notifications")
    assert record["userId"] == "cust-1"
    assert record["outcome"] == "delivered"
    assert record["appointmentId"] == "appt-1"
    assert record["sentBy"] == "admin-1"


@pytest.mark.asyncio
async def test_audited_sink_records_failure_and_reraises(db):
    sink = AuditedSink(RecordingSink(error=TokenInvalidError()), AuditLog(db))

    with pytest.raises(TokenInvalidError):
        await sink.deliver("Hi", "Your turn", {"recipientId": "cust-1"})

    (record,) = db.all("notifications")
    assert record["outcome"] == "failed"
    assert record["error"] == "registration-token-not-registered"


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_delivery(db):
    db.collections["notifications"] = FailingCollection("notifications")
    inner = RecordingSink()
    sink = AuditedSink(inner, AuditLog(db))

    result = await sink.deliver("Hi", "Your turn", {"recipientId": "cust-1"})

    assert result.success is True
    assert len(inner.deliveries) == 1

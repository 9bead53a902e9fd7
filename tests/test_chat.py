import json
from datetime import datetime

import httpx
import pytest
import respx
from fastapi import HTTPException

from barbershop.config import BIGMODEL_API_URL
from barbershop.domain.chat.prompts import SYSTEM_PROMPT, with_system_prompt
from barbershop.domain.chat.router import get_chat_service
from barbershop.domain.chat.service import ChatService
from barbershop.domain.chat.tools import check_operating_hours, get_available_barbers, get_products, run_tool


def completion(content=None, tool_calls=None) -> dict:
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {"choices": [{"message": message}]}


def sent_json(route, index=-1) -> dict:
    return json.loads(route.calls[index].request.content)


def test_system_prompt_is_prepended_once():
    messages = [{"role": "user", "content": "Berapa harga pangkas?"}]

    assert with_system_prompt(messages)[0] == {"role": "system", "content": SYSTEM_PROMPT}
    custom = [{"role": "system", "content": "custom"}, *messages]
    assert with_system_prompt(custom) == custom


@pytest.mark.asyncio
@respx.mock
async def test_chat_returns_assistant_message():
    route = respx.post(BIGMODEL_API_URL).respond(200, json=completion("Halo! Pangkas Rambut Rp15.000"))

    async with httpx.AsyncClient() as http:
        service = ChatService(http, api_key="test-key", enable_tools=False)
        message = await service.chat([{"role": "user", "content": "Harga?"}])

    assert message == "Halo! Pangkas Rambut Rp15.000"
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer test-key"
    payload = sent_json(route)
    assert payload["messages"][0]["role"] == "system"
    assert payload["temperature"] == 0.7
    assert "tools" not in payload


@pytest.mark.asyncio
async def test_chat_without_api_key_fails():
    async with httpx.AsyncClient() as http:
        with pytest.raises(HTTPException) as exc_info:
            await ChatService(http, api_key=None).chat([{"role": "user", "content": "Hi"}])

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
@respx.mock
async def test_chat_provider_error_is_bad_gateway():
    respx.post(BIGMODEL_API_URL).respond(429, json={"error": "rate limited"})

    async with httpx.AsyncClient() as http:
        with pytest.raises(HTTPException) as exc_info:
            await ChatService(http, api_key="k").chat([{"role": "user", "content": "Hi"}])

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
@respx.mock
async def test_chat_runs_requested_tools(db):
    db.seed("services", "svc-1", {"name": "Pangkas Rambut", "price": 15000, "duration": 30})
    tool_call = {"id": "call-1", "type": "function", "function": {"name": "get_services", "arguments": "{}"}}
    route = respx.post(BIGMODEL_API_URL).mock(
        side_effect=[
            httpx.Response(200, json=completion(tool_calls=[tool_call])),
            httpx.Response(200, json=completion("Pangkas Rambut Rp15.000")),
        ]
    )

    async with httpx.AsyncClient() as http:
        service = ChatService(http, db=db, api_key="k", enable_tools=True)
        message = await service.chat([{"role": "user", "content": "Layanan apa saja?"}])

    assert message == "Pangkas Rambut Rp15.000"
    assert route.call_count == 2
    assert "tools" in sent_json(route, 0)
    tool_message = sent_json(route, 1)["messages"][-1]
    assert tool_message["role"] == "tool"
    assert tool_message["tool_call_id"] == "call-1"
    assert json.loads(tool_message["content"])["services"][0]["name"] == "Pangkas Rambut"


@pytest.mark.asyncio
@respx.mock
async def test_stream_passes_provider_events_through():
    body = b'data: {"choices":[{"delta":{"content":"Ha"}}]}\n\ndata: [DONE]\n\n'
    respx.post(BIGMODEL_API_URL).respond(200, content=body, headers={"Content-Type": "text/event-stream"})

    async with httpx.AsyncClient() as http:
        service = ChatService(http, api_key="k")
        chunks = [chunk async for chunk in service.stream([{"role": "user", "content": "Hi"}])]

    assert b"".join(chunks) == body


@pytest.mark.asyncio
@respx.mock
async def test_stream_reports_provider_error_as_event():
    respx.post(BIGMODEL_API_URL).respond(500)

    async with httpx.AsyncClient() as http:
        chunks = [chunk async for chunk in ChatService(http, api_key="k").stream([{"role": "user", "content": "Hi"}])]

    assert chunks == [b'data: {"error": "Streaming error: 500"}\n\n']


def test_operating_hours():
    opened = check_operating_hours(now=datetime(2024, 5, 1, 9, 30))
    closed = check_operating_hours(now=datetime(2024, 5, 1, 21, 0))

    assert opened["is_open"] is True
    assert opened["status"] == "BUKA"
    assert closed["is_open"] is False
    assert closed["contact"]["phone"] == "081312772527"


def test_product_and_barber_tools_filter(db):
    db.seed("products", "p1", {"name": "Pomade", "category": "pomade", "price": 48000, "stock": 3})
    db.seed("products", "p2", {"name": "Shampoo", "category": "shampoo", "price": 20000, "stock": 0})
    db.seed("barbers", "b1", {"name": "Akmal", "isActive": True, "rating": 5})
    db.seed("barbers", "b2", {"name": "Ujang", "isActive": False})

    assert [p["name"] for p in get_products(db, "pomade")["products"]] == ["Pomade"]
    assert get_products(db)["total"] == 2
    assert [b["name"] for b in get_available_barbers(db)["barbers"]] == ["Akmal"]
    with pytest.raises(ValueError):
        run_tool(db, "delete_everything", {})


def test_chat_route(app_factory, customer_user):
    client = app_factory(customer_user)

    class StubChat:
        async def chat(self, messages):
            return f"echo: {messages[-1]['content']}"

    client.app.dependency_overrides[get_chat_service] = lambda: StubChat()

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Halo"}]})

    assert response.status_code == 200
    assert response.json() == {"message": "echo: Halo"}
    assert client.post("/api/chat", json={"messages": []}).status_code == 422

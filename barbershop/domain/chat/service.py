"""Chat service - server-side proxy to the BigModel chat completions API"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import HTTPException

from ...config import (
    BIGMODEL_API_KEY,
    BIGMODEL_API_URL,
    BIGMODEL_MODEL,
    BIGMODEL_TIMEOUT_SECONDS,
    CHAT_ENABLE_TOOLS,
)
from .prompts import with_system_prompt
from .tools import TOOLS_DEFINITION, run_tool

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 3


def sse_error(message: str) -> bytes:
    return f"data: {json.dumps({'error': message})}\n\n".encode()


class ChatService:
    """Keeps the provider key on the server; the browser only ever sees replies"""

    def __init__(
        self,
        http: httpx.AsyncClient,
        db=None,
        api_key: Optional[str] = BIGMODEL_API_KEY,
        api_url: str = BIGMODEL_API_URL,
        model: str = BIGMODEL_MODEL,
        enable_tools: bool = CHAT_ENABLE_TOOLS,
    ):
        self.http = http
        self.db = db
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.enable_tools = enable_tools and db is not None

    def _headers(self) -> dict:
        if not self.api_key:
            logger.error("❌ BIGMODEL_API_KEY not configured")
            raise HTTPException(status_code=500, detail="API key not configured")
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def _payload(self, messages: list[dict], **extra) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": 0.7,
            "top_p": 0.9,
            **extra,
        }

    async def _complete(self, messages: list[dict], headers: dict) -> dict:
        extra = {"tools": TOOLS_DEFINITION} if self.enable_tools else {}
        try:
            response = await self.http.post(
                self.api_url,
                json=self._payload(messages, **extra),
                headers=headers,
                timeout=BIGMODEL_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ BigModel request failed: {e}")
            raise HTTPException(status_code=502, detail="Chat provider unreachable") from e

        if not response.is_success:
            logger.error(f"❌ BigModel API error: {response.status_code} {response.text[:200]}")
            raise HTTPException(status_code=502, detail=f"BigModel API error: {response.status_code}")

        choices = response.json().get("choices") or [{}]
        return choices[0].get("message") or {}

    async def chat(self, messages: list[dict]) -> str:
        headers = self._headers()
        conversation = with_system_prompt(messages)

        for _ in range(MAX_TOOL_ROUNDS + 1):
            message = await self._complete(conversation, headers)
            tool_calls = message.get("tool_calls") if self.enable_tools else None
            if not tool_calls:
                return message.get("content") or "No response"

            conversation.append(message)
            for call in tool_calls:
                conversation.append(await self._run_tool_call(call))

        logger.warning("⚠️ Chat gave up after too many tool rounds")
        return "No response"

    async def _run_tool_call(self, call: dict) -> dict:
        function = call.get("function") or {}
        name = function.get("name", "")
        try:
            args = json.loads(function.get("arguments") or "{}")
            result = await asyncio.to_thread(run_tool, self.db, name, args)
        except (ValueError, TypeError) as e:
            logger.warning(f"⚠️ Tool call {name} failed: {e}")
            result = {"error": str(e)}

        logger.info(f"🔧 Chat tool {name} executed")
        return {"role": "tool", "tool_call_id": call.get("id"), "content": json.dumps(result)}

    async def stream(self, messages: list[dict]) -> AsyncIterator[bytes]:
        """Relay the provider's SSE stream as-is; errors become a final error event"""
        try:
            headers = self._headers()
        except HTTPException as e:
            yield sse_error(e.detail)
            return

        payload = self._payload(with_system_prompt(messages), stream=True)
        try:
            async with self.http.stream(
                "POST", self.api_url, json=payload, headers=headers, timeout=BIGMODEL_TIMEOUT_SECONDS
            ) as response:
                if not response.is_success:
                    logger.error(f"❌ BigModel streaming error: {response.status_code}")
                    yield sse_error(f"Streaming error: {response.status_code}")
                    return
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            logger.error(f"❌ BigModel stream failed: {e}")
            yield sse_error(str(e) or "Chat provider unreachable")

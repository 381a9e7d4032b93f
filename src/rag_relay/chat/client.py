"""httpx client for the `/chat` streaming endpoint."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from types import TracebackType

import httpx

from rag_relay.chat.decoder import AssistantMessage, SSEDecoder
from rag_relay.errors import InvalidRequestError

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


class ChatClient:
    """Sends one chat turn per request and reassembles the streamed reply.

    Disconnects are not retried: the turn is returned as failed with whatever
    text had arrived.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        client: httpx.AsyncClient | None = None,
        on_update: Callable[[AssistantMessage], None] | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(30.0, read=None)
        )
        self._owns_client = client is None
        self._on_update = on_update
        self.session_id: str | None = None

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, message: str) -> AssistantMessage:
        text = message.strip()
        if not text:
            raise InvalidRequestError("Message is required")

        payload: dict[str, str] = {"message": text}
        if self.session_id:
            payload["session_id"] = self.session_id

        reply = AssistantMessage()
        decoder = SSEDecoder()
        try:
            async with self._client.stream("POST", "/chat", json=payload) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    reply.fail(_error_detail(body, response.status_code))
                    return reply

                self.session_id = response.headers.get(SESSION_HEADER, self.session_id)
                async for data in response.aiter_bytes():
                    for frame in decoder.feed(data):
                        if reply.apply(frame):
                            self._notify(reply)
                    if reply.finished:
                        break
        except httpx.HTTPError as exc:
            logger.error("Chat stream failed: %s", exc)
            if not reply.finished:
                reply.fail(f"Connection error: {exc}")
                self._notify(reply)
            return reply

        if not reply.finished:
            reply.end_of_stream()
            self._notify(reply)
        return reply

    def _notify(self, reply: AssistantMessage) -> None:
        if self._on_update is not None:
            self._on_update(reply)


def _error_detail(body: bytes, status_code: int) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return f"HTTP error! status: {status_code}"
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return f"HTTP error! status: {status_code}"

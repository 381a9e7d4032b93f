"""Event-stream response that drives one chat turn through `ChatRelay.handle_turn`."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from fastapi.responses import Response

from rag_relay.chat.relay import ChatRelay, ChatSession

logger = logging.getLogger(__name__)

Message = dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]


class ASGIFrameWriter:
    """`ResponseWriter` over the ASGI `send` callable of one HTTP response.

    Servers raise an `OSError` subclass from `send` once the client has gone,
    which is what `handle_turn` treats as a disconnect.
    """

    def __init__(self, send: Send) -> None:
        self._send = send

    async def write(self, data: str) -> None:
        await self._send(
            {"type": "http.response.body", "body": data.encode("utf-8"), "more_body": True}
        )

    async def finish(self) -> None:
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


class ChatTurnResponse(Response):
    """Streams one chat turn as `text/event-stream`.

    The turn runs alongside a listener for `http.disconnect`; whichever ends
    first cancels the other, so the model stream is closed as soon as the
    client leaves rather than when the response is garbage collected.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        relay: ChatRelay,
        session: ChatSession,
        message: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.relay = relay
        self.session = session
        self.message = message
        self.status_code = 200
        self.background = None
        self.init_headers(headers)

    async def __call__(self, scope: Message, receive: Receive, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            }
        )
        relay_task = asyncio.create_task(
            self.relay.handle_turn(ASGIFrameWriter(send), self.session, self.message)
        )
        disconnect_task = asyncio.create_task(_wait_for_disconnect(receive))
        try:
            await asyncio.wait(
                {relay_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (relay_task, disconnect_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(relay_task, disconnect_task, return_exceptions=True)

        if relay_task.cancelled():
            logger.info(
                "Client disconnected from session %s before the turn finished",
                self.session.connection_id,
            )
            return
        relay_task.result()


async def _wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return

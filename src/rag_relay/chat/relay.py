"""Server side of the streaming chat relay."""

from __future__ import annotations

import logging
import time
import uuid
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from rag_relay.chat.frames import ContentFrame, EndFrame, ErrorFrame, StreamFrame, encode_frame
from rag_relay.errors import ConfigurationError, InvalidRequestError
from rag_relay.generation.model_client import ModelClient
from rag_relay.types import ChatMessage

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Failed to get response from AI"


def validate_message(message: object) -> str:
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequestError("Message is required")
    return message


class RelayState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CLOSED = "closed"


class TurnOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(slots=True)
class ChatSession:
    """Per-connection chat state. Never shared between connections."""

    connection_id: str
    system_persona: str
    history: list[ChatMessage] = field(default_factory=list)

    def messages_for(self, user_message: str) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system_persona),
            *self.history,
            ChatMessage(role="user", content=user_message),
        ]

    def commit_turn(self, user_message: str, reply: str) -> None:
        self.history.append(ChatMessage(role="user", content=user_message))
        self.history.append(ChatMessage(role="assistant", content=reply))


class SessionStore:
    """In-memory chat sessions keyed by server-minted connection ids.

    Only ids minted here are ever registered; an unknown id asked for by a
    client opens a fresh session under a new id. Sessions idle for longer than
    `idle_ttl` seconds are dropped, and once `max_sessions` are open the least
    recently used one is evicted to make room.
    """

    def __init__(
        self,
        system_persona: str,
        *,
        max_sessions: int = 1000,
        idle_ttl: float | None = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions <= 0:
            raise ConfigurationError("max_sessions must be positive")
        self.system_persona = system_persona
        self.max_sessions = max_sessions
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: OrderedDict[str, ChatSession] = OrderedDict()
        self._last_used: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, connection_id: str) -> ChatSession | None:
        self._evict_idle()
        session = self._sessions.get(connection_id)
        if session is not None:
            self._sessions.move_to_end(connection_id)
            self._last_used[connection_id] = self._clock()
        return session

    def get_or_create(self, connection_id: str | None = None) -> ChatSession:
        if connection_id is not None:
            session = self.get(connection_id)
            if session is not None:
                return session
            logger.debug("Unknown chat session %s; opening a new one", connection_id)
        else:
            self._evict_idle()

        while len(self._sessions) >= self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            self._last_used.pop(evicted, None)
            logger.info("Evicted least recently used chat session %s", evicted)

        session_id = uuid.uuid4().hex
        session = ChatSession(connection_id=session_id, system_persona=self.system_persona)
        self._sessions[session_id] = session
        self._last_used[session_id] = self._clock()
        logger.debug("Opened chat session %s", session_id)
        return session

    def close(self, connection_id: str) -> bool:
        removed = self._sessions.pop(connection_id, None) is not None
        self._last_used.pop(connection_id, None)
        if removed:
            logger.debug("Closed chat session %s", connection_id)
        return removed

    def _evict_idle(self) -> None:
        if self.idle_ttl is None:
            return
        cutoff = self._clock() - self.idle_ttl
        while self._sessions:
            oldest = next(iter(self._sessions))
            if self._last_used[oldest] > cutoff:
                break
            del self._sessions[oldest]
            del self._last_used[oldest]
            logger.info("Expired idle chat session %s", oldest)


class ResponseWriter(Protocol):
    """Transport for one logical response on a possibly long-lived connection."""

    async def write(self, data: str) -> None:
        """Write one encoded frame; raises `OSError` if the client is gone."""

    async def finish(self) -> None:
        """End the logical response without closing the connection."""


class ChatTurn:
    """One request/response exchange: Idle -> Streaming -> Closed.

    `frames()` yields content frames in production order and then exactly one
    `EndFrame` or one `ErrorFrame`. The session history is only extended when
    the model finishes, so failed or aborted turns leave it untouched.
    """

    def __init__(
        self,
        session: ChatSession,
        user_message: str,
        model_client: ModelClient,
        *,
        error_message: str = GENERATION_FAILED,
    ) -> None:
        self.session = session
        self.user_message = user_message
        self.state = RelayState.IDLE
        self.outcome: TurnOutcome | None = None
        self.text = ""
        self._model_client = model_client
        self._error_message = error_message

    async def frames(self) -> AsyncIterator[StreamFrame]:
        if self.state is not RelayState.IDLE:
            raise RuntimeError("A chat turn can only be streamed once")
        self.state = RelayState.STREAMING
        stream = self._model_client.stream(self.session.messages_for(self.user_message))
        try:
            while True:
                try:
                    fragment = await anext(stream)
                except StopAsyncIteration:
                    break
                except Exception:
                    logger.exception(
                        "Model stream failed for session %s", self.session.connection_id
                    )
                    self._close(TurnOutcome.FAILED)
                    yield ErrorFrame(message=self._error_message)
                    return
                if not fragment:
                    continue
                self.text += fragment
                yield ContentFrame(text=fragment)

            self.session.commit_turn(self.user_message, self.text)
            self._close(TurnOutcome.COMPLETED)
            yield EndFrame()
        finally:
            if self.outcome is None:
                self._close(TurnOutcome.ABORTED)
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def abort(self) -> None:
        if self.outcome is None:
            self._close(TurnOutcome.ABORTED)

    def _close(self, outcome: TurnOutcome) -> None:
        self.state = RelayState.CLOSED
        self.outcome = outcome


class ChatRelay:
    """Validates chat requests and relays model output as stream frames."""

    def __init__(self, model_client: ModelClient) -> None:
        self.model_client = model_client

    def start_turn(self, session: ChatSession, message: object) -> ChatTurn:
        """Validate `message` and create an idle turn.

        Raises:
            InvalidRequestError: the message is missing, not a string or blank.
                No frame has been produced when this is raised.
        """

        return ChatTurn(session, validate_message(message), self.model_client)

    async def handle_turn(
        self, writer: ResponseWriter, session: ChatSession, message: object
    ) -> ChatTurn:
        """Stream one turn to `writer`.

        A write failure means the client went away: the relay loop stops, the
        model stream is closed, and nothing is raised to the caller.
        """

        turn = self.start_turn(session, message)
        frames = turn.frames()
        try:
            async for frame in frames:
                await writer.write(encode_frame(frame))
            await writer.finish()
        except OSError as exc:
            logger.info(
                "Client disconnected from session %s mid-turn: %s",
                session.connection_id,
                exc,
            )
            turn.abort()
        finally:
            await frames.aclose()
        return turn

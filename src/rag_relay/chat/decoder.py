"""Client-side SSE decoding and assistant-message state."""

from __future__ import annotations

import codecs
import json
import logging
from enum import Enum

from rag_relay.chat.frames import (
    DATA_PREFIX,
    FRAME_BOUNDARY,
    ContentFrame,
    EndFrame,
    ErrorFrame,
    StreamFrame,
    frame_from_payload,
)

logger = logging.getLogger(__name__)

INCOMPLETE_STREAM = "Stream ended before the response was complete."


class SSEDecoder:
    """Incrementally turns transport reads into stream frames.

    Bytes are decoded with an incremental UTF-8 decoder, so a multi-byte
    character split across two reads is not corrupted. Text after the last
    frame boundary stays buffered until the next `feed`. Frames that do not
    start with `data:` are ignored; frames whose payload is not valid are
    logged and skipped.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Buffered text not yet terminated by a frame boundary."""
        return self._buffer

    def feed(self, data: bytes | str) -> list[StreamFrame]:
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        self._buffer += data

        frames: list[StreamFrame] = []
        boundary = self._buffer.find(FRAME_BOUNDARY)
        while boundary != -1:
            raw = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + len(FRAME_BOUNDARY) :]
            frame = self._parse(raw)
            if frame is not None:
                frames.append(frame)
            boundary = self._buffer.find(FRAME_BOUNDARY)
        return frames

    @staticmethod
    def _parse(raw: str) -> StreamFrame | None:
        if not raw.startswith(DATA_PREFIX):
            return None
        body = raw[len(DATA_PREFIX) :]
        if body.startswith(" "):
            body = body[1:]
        try:
            return frame_from_payload(json.loads(body))
        except ValueError as exc:
            logger.warning("Skipping malformed frame %r: %s", raw, exc)
            return None


class MessageStatus(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class AssistantMessage:
    """UI state of the in-progress assistant reply for one turn."""

    def __init__(self) -> None:
        self.text = ""
        self.status = MessageStatus.PENDING
        self.error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in (MessageStatus.COMPLETE, MessageStatus.FAILED)

    def apply(self, frame: StreamFrame) -> bool:
        """Apply one frame; returns False when it was ignored."""

        if self.finished:
            logger.debug("Ignoring %s after terminal frame", type(frame).__name__)
            return False
        if isinstance(frame, ContentFrame):
            self.text += frame.text
            self.status = MessageStatus.STREAMING
        elif isinstance(frame, EndFrame):
            self.status = MessageStatus.COMPLETE
        elif isinstance(frame, ErrorFrame):
            self.fail(frame.message)
        return True

    def fail(self, message: str) -> None:
        self.status = MessageStatus.FAILED
        self.error = message

    def end_of_stream(self) -> None:
        """Mark the turn failed if the transport closed before a terminal frame."""
        if not self.finished:
            self.fail(INCOMPLETE_STREAM)

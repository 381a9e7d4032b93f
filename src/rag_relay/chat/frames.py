"""Server-Sent-Events frame model and wire encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

DATA_PREFIX = "data:"
FRAME_BOUNDARY = "\n\n"


@dataclass(frozen=True, slots=True)
class ContentFrame:
    text: str


@dataclass(frozen=True, slots=True)
class EndFrame:
    pass


@dataclass(frozen=True, slots=True)
class ErrorFrame:
    message: str


StreamFrame = Union[ContentFrame, EndFrame, ErrorFrame]


def frame_payload(frame: StreamFrame) -> dict[str, Any]:
    if isinstance(frame, ContentFrame):
        return {"content": frame.text}
    if isinstance(frame, EndFrame):
        return {"event": "end"}
    if isinstance(frame, ErrorFrame):
        return {"error": frame.message}
    raise TypeError(f"Not a stream frame: {frame!r}")


def encode_frame(frame: StreamFrame) -> str:
    """Serialize one frame as `data: <JSON>\\n\\n`."""

    payload = json.dumps(frame_payload(frame), ensure_ascii=False)
    return f"{DATA_PREFIX} {payload}{FRAME_BOUNDARY}"


def frame_from_payload(payload: Any) -> StreamFrame:
    """Map a decoded JSON payload back to a frame.

    Raises:
        ValueError: the payload is not one of the three known shapes.
    """

    if not isinstance(payload, dict):
        raise ValueError(f"Frame payload must be an object, got {type(payload).__name__}")
    if isinstance(payload.get("content"), str):
        return ContentFrame(text=payload["content"])
    if payload.get("event") == "end":
        return EndFrame()
    if isinstance(payload.get("error"), str):
        return ErrorFrame(message=payload["error"])
    raise ValueError(f"Unrecognized frame payload: {payload!r}")

"""Model client interface, LangChain adapter and deterministic offline client."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from rag_relay.errors import GenerationError
from rag_relay.types import ChatMessage

_CONTEXT_LINE = re.compile(r"^\[(?P<label>\d+)\]\s+(?P<body>.+)$", flags=re.MULTILINE)
_FRAGMENT_SPLIT = re.compile(r"(?<=\s)(?=\S)")


class ModelClient(ABC):
    """Chat model contract used by the answerer and the streaming relay."""

    @abstractmethod
    def complete(self, messages: Sequence[ChatMessage]) -> str:
        """Return the whole completion for `messages`."""

    @abstractmethod
    def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Yield completion text fragments in order. Finite, not restartable."""


class LangChainModelClient(ModelClient):
    """Adapter over a LangChain chat model (`invoke` / `astream`)."""

    def __init__(self, chat_model: Any) -> None:
        self._chat_model = chat_model

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        try:
            response = self._chat_model.invoke(to_langchain_messages(messages))
        except Exception as exc:
            raise GenerationError(f"Model completion failed: {exc}") from exc
        return _content_text(getattr(response, "content", response))

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        try:
            async for chunk in self._chat_model.astream(to_langchain_messages(messages)):
                text = _content_text(getattr(chunk, "content", chunk))
                if text:
                    yield text
        except Exception as exc:
            raise GenerationError(f"Model stream failed: {exc}") from exc


class ExtractiveModelClient(ModelClient):
    """Deterministic client used when no hosted model is configured.

    Given a prompt with labelled context lines (`[1] ...`), it answers with up
    to three of those lines and their labels. Any other prompt is echoed back,
    which keeps the chat relay usable offline.
    """

    def __init__(self, max_snippets: int = 3, snippet_length: int = 220) -> None:
        self.max_snippets = max_snippets
        self.snippet_length = snippet_length

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        prompt = _last_user_content(messages)
        matches = list(_CONTEXT_LINE.finditer(prompt))
        if not matches:
            return f"You said: {prompt}"

        lines = [
            f"{_truncate(match.group('body').strip(), self.snippet_length)} "
            f"[{match.group('label')}]"
            for match in matches[: self.max_snippets]
        ]
        return "\n".join(lines)

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        for fragment in _FRAGMENT_SPLIT.split(self.complete(messages)):
            if fragment:
                yield fragment


def create_openai_chat_client(
    model_name: str, *, api_key: str, temperature: float
) -> LangChainModelClient:
    from langchain_openai import ChatOpenAI

    return LangChainModelClient(
        ChatOpenAI(model=model_name, temperature=temperature, api_key=api_key)
    )


def to_langchain_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        elif message.role == "user":
            converted.append(HumanMessage(content=message.content))
        else:
            raise ValueError(f"Unknown message role: {message.role}")
    return converted


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content)


def _last_user_content(messages: Sequence[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."

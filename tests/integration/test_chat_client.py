from collections.abc import AsyncIterator, Sequence

import httpx
import pytest

from rag_relay.api.main import create_app
from rag_relay.chat.client import ChatClient
from rag_relay.chat.decoder import MessageStatus
from rag_relay.config import AppSettings
from rag_relay.errors import InvalidRequestError
from rag_relay.generation.model_client import ModelClient
from rag_relay.ingest.embedder import HashingEmbedder
from rag_relay.types import ChatMessage


class ScriptedModel(ModelClient):
    def __init__(self, fragments: list[str], fail: bool = False) -> None:
        self.fragments = fragments
        self.fail = fail

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        return "".join(self.fragments)

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        for fragment in self.fragments:
            yield fragment
        if self.fail:
            raise RuntimeError("model crashed")


def _http(model: ModelClient) -> httpx.AsyncClient:
    app = create_app(AppSettings(), embedder=HashingEmbedder(), model_client=model)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_client_reassembles_streamed_reply() -> None:
    updates: list[str] = []
    async with _http(ScriptedModel(["Hel", "lo"])) as http:
        client = ChatClient(client=http, on_update=lambda reply: updates.append(reply.text))
        reply = await client.send("Say hello")

    assert reply.text == "Hello"
    assert reply.status is MessageStatus.COMPLETE
    assert updates[-1] == "Hello"
    assert client.session_id


@pytest.mark.asyncio
async def test_client_reports_mid_stream_failure() -> None:
    async with _http(ScriptedModel(["Hel"], fail=True)) as http:
        reply = await ChatClient(client=http).send("Say hello")

    assert reply.text == "Hel"
    assert reply.status is MessageStatus.FAILED


@pytest.mark.asyncio
async def test_client_rejects_blank_message_locally() -> None:
    async with _http(ScriptedModel(["x"])) as http:
        with pytest.raises(InvalidRequestError):
            await ChatClient(client=http).send("  ")


@pytest.mark.asyncio
async def test_transport_error_fails_turn_without_retry() -> None:
    attempts: list[httpx.Request] = []

    def _refuse(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(_refuse), base_url="http://test"
    ) as http:
        reply = await ChatClient(client=http).send("hello")

    assert reply.status is MessageStatus.FAILED
    assert reply.error.startswith("Connection error")
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_http_rejection_surfaces_server_error_message() -> None:
    def _reject(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Message is required"})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(_reject), base_url="http://test"
    ) as http:
        reply = await ChatClient(client=http).send("hello")

    assert reply.status is MessageStatus.FAILED
    assert reply.error == "Message is required"

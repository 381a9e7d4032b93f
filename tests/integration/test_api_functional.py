from collections.abc import AsyncIterator, Sequence

from fastapi.testclient import TestClient

from rag_relay.api.main import create_app
from rag_relay.chat.decoder import AssistantMessage, MessageStatus, SSEDecoder
from rag_relay.config import AppSettings
from rag_relay.generation.model_client import ExtractiveModelClient, ModelClient
from rag_relay.ingest.embedder import HashingEmbedder
from rag_relay.types import ChatMessage


class BrokenStreamModel(ModelClient):
    def complete(self, messages: Sequence[ChatMessage]) -> str:
        return "Hel"

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        yield "Hel"
        raise RuntimeError("upstream dropped the stream")


def _client(model_client: ModelClient | None = None) -> TestClient:
    app = create_app(
        AppSettings(),
        embedder=HashingEmbedder(),
        model_client=model_client or ExtractiveModelClient(),
    )
    return TestClient(app)


def _read_turn(client: TestClient, payload: dict[str, str]) -> tuple[AssistantMessage, str]:
    decoder = SSEDecoder()
    reply = AssistantMessage()
    with client.stream("POST", "/chat", json=payload) as response:
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        session_id = response.headers["x-session-id"]
        for data in response.iter_bytes():
            for frame in decoder.feed(data):
                reply.apply(frame)
    reply.end_of_stream()
    return reply, session_id


def test_api_ingest_query_search(tmp_path) -> None:
    client = _client()
    doc = tmp_path / "policy.txt"
    doc.write_text(
        "Company policy states employees must encrypt customer data at rest.\n\n"
        "Holiday arrangements are documented in the employee handbook.\n",
        encoding="utf-8",
    )

    ingest_resp = client.post("/ingest", json={"path": str(doc), "doc_id": "policy-doc"})
    assert ingest_resp.status_code == 200
    assert ingest_resp.json()["chunk_ids"][0] == "policy-doc-chunk-0000"

    query_resp = client.post(
        "/query", json={"question": "Must employees encrypt customer data?", "top_k": 1}
    )
    assert query_resp.status_code == 200
    payload = query_resp.json()
    assert "[1]" in payload["answer"]
    assert payload["citations"][0]["label"] == 1
    assert payload["citations"][0]["doc_id"] == "policy-doc"

    search_resp = client.post("/sources/search", json={"query": "encrypt customer data", "top_k": 3})
    assert search_resp.status_code == 200
    assert search_resp.json()["items"]

    health = client.get("/health").json()
    assert health["index_size"] == len(ingest_resp.json()["chunk_ids"])
    assert health["embedder"] == "hashing-256"


def test_query_on_empty_index_returns_insufficient_information() -> None:
    resp = _client().post("/query", json={"question": "anything?"})

    assert resp.status_code == 200
    assert "enough information" in resp.json()["answer"]
    assert resp.json()["citations"] == []


def test_ingest_missing_file_is_bad_request(tmp_path) -> None:
    resp = _client().post("/ingest", json={"path": str(tmp_path / "missing.txt")})
    assert resp.status_code == 400


def test_chat_streams_reply_and_keeps_session() -> None:
    client = _client()

    reply, session_id = _read_turn(client, {"message": "hello relay"})
    assert reply.status is MessageStatus.COMPLETE
    assert reply.text == "You said: hello relay"

    second, same_id = _read_turn(client, {"message": "again", "session_id": session_id})
    assert second.text == "You said: again"
    assert same_id == session_id
    assert len(client.app.state.sessions.get(session_id).history) == 4

    assert client.delete(f"/chat/sessions/{session_id}").status_code == 200
    assert client.delete(f"/chat/sessions/{session_id}").status_code == 404


def test_chat_with_unknown_session_id_starts_server_minted_session() -> None:
    client = _client()

    reply, session_id = _read_turn(client, {"message": "hi", "session_id": "made-up"})

    assert reply.status is MessageStatus.COMPLETE
    assert session_id != "made-up"
    assert client.app.state.sessions.get("made-up") is None
    assert len(client.app.state.sessions) == 1


def test_chat_model_failure_ends_with_error_frame() -> None:
    reply, _ = _read_turn(_client(BrokenStreamModel()), {"message": "hi"})

    assert reply.text == "Hel"
    assert reply.status is MessageStatus.FAILED
    assert reply.error == "Failed to get response from AI"


def test_chat_rejects_missing_message_with_400() -> None:
    client = _client()

    missing = client.post("/chat", json={})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Message is required"}

    blank = client.post("/chat", json={"message": "   "})
    assert blank.status_code == 400

    not_json = client.post(
        "/chat", content=b"message=hi", headers={"content-type": "application/json"}
    )
    assert not_json.status_code == 400
    assert len(client.app.state.sessions) == 0

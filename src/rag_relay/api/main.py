"""FastAPI entrypoint for ingest/query/search/chat endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from rag_relay.api.streaming import ChatTurnResponse
from rag_relay.chat.client import SESSION_HEADER
from rag_relay.chat.persona import system_prompt_for
from rag_relay.chat.relay import ChatRelay, SessionStore, validate_message
from rag_relay.config import AppSettings
from rag_relay.errors import (
    DimensionMismatchError,
    EmbedderMismatchError,
    GenerationError,
    InvalidRequestError,
    RetrievalError,
)
from rag_relay.generation.answerer import QueryAnswerer
from rag_relay.generation.model_client import (
    ExtractiveModelClient,
    ModelClient,
    create_openai_chat_client,
)
from rag_relay.ingest.chunker import RecursiveChunker
from rag_relay.ingest.embedder import Embedder, HashingEmbedder, create_openai_embedder
from rag_relay.ingest.loader import DocumentLoader
from rag_relay.ingest.pipeline import IngestPipeline
from rag_relay.obs.logging import configure_logging
from rag_relay.retrieval.retriever import Retriever
from rag_relay.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)


class IngestRequest(BaseModel):
    path: str = Field(min_length=1)
    doc_id: str | None = None


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=20)


class SourceSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int = Field(default=5, ge=1, le=20)


class ChatRequest(BaseModel):
    message: str | None = None
    session_id: str | None = None


def _create_embedder(settings: AppSettings) -> Embedder:
    if not settings.openai_api_key:
        return HashingEmbedder()
    return create_openai_embedder(
        settings.models.embedding_model, settings.openai_api_key
    )


def _create_model_client(settings: AppSettings, temperature: float) -> ModelClient:
    if not settings.openai_api_key:
        return ExtractiveModelClient()
    return create_openai_chat_client(
        settings.models.chat_model,
        api_key=settings.openai_api_key,
        temperature=temperature,
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (RetrievalError, GenerationError)):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, (DimensionMismatchError, EmbedderMismatchError)):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def create_app(
    settings: AppSettings | None = None,
    *,
    embedder: Embedder | None = None,
    model_client: ModelClient | None = None,
) -> FastAPI:
    """Build the service with every collaborator constructed from `settings`.

    `embedder` and `model_client` override the configured providers; the
    offline defaults are used when no API key is configured.
    """

    settings = settings or AppSettings.from_env()
    configure_logging(settings.log_level)

    embedder = embedder or _create_embedder(settings)
    answer_client = model_client or _create_model_client(
        settings, settings.models.answer_temperature
    )
    chat_client = model_client or _create_model_client(
        settings, settings.models.chat_temperature
    )

    index = VectorIndex(embedder)
    pipeline = IngestPipeline(DocumentLoader(), RecursiveChunker(settings.chunking), index)
    retriever = Retriever(index, settings.retrieval)
    answerer = QueryAnswerer(answer_client, settings.retrieval)
    sessions = SessionStore(
        system_prompt_for(settings.persona_path),
        max_sessions=settings.sessions.max_sessions,
        idle_ttl=settings.sessions.idle_ttl_seconds,
    )
    relay = ChatRelay(chat_client)

    app = FastAPI(title="RAG Relay", version="0.1.0")
    app.state.index = index
    app.state.sessions = sessions

    @app.exception_handler(RequestValidationError)
    async def _reject_invalid_body(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"error": f"{location}: {message}" if location else message},
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": bool(settings.openai_api_key),
            "embedder": index.embedder_identity,
            "index_size": len(index),
            "sessions": len(sessions),
        }

    @app.post("/ingest")
    def ingest(request: IngestRequest) -> dict[str, Any]:
        try:
            chunks = pipeline.ingest_path(request.path, doc_id=request.doc_id)
        except (OSError, ValueError, RetrievalError, DimensionMismatchError) as exc:
            logger.error("Ingest failed for %s: %s", request.path, exc)
            raise _http_error(exc) from exc

        return {
            "chunks_created": len(chunks),
            "chunk_ids": [chunk.chunk_id for chunk in chunks],
        }

    @app.post("/query")
    def query(request: QueryRequest) -> dict[str, Any]:
        try:
            answer = answerer.answer(request.question, index, request.top_k)
        except (RetrievalError, GenerationError, DimensionMismatchError) as exc:
            logger.error("Query failed: %s", exc)
            raise _http_error(exc) from exc

        return {
            "answer": answer.text,
            "citations": [
                {
                    "label": label,
                    "chunk_id": result.chunk.chunk_id,
                    "doc_id": result.chunk.document_id,
                    "score": result.score,
                    "text": result.chunk.text,
                }
                for label, result in enumerate(answer.results, start=1)
            ],
        }

    @app.post("/sources/search")
    def source_search(request: SourceSearchRequest) -> dict[str, Any]:
        try:
            hits = retriever.retrieve(request.query, top_k=request.top_k)
        except (RetrievalError, DimensionMismatchError) as exc:
            raise _http_error(exc) from exc
        return {
            "items": [
                {
                    "chunk_id": hit.chunk.chunk_id,
                    "doc_id": hit.chunk.document_id,
                    "score": hit.score,
                    "text": hit.chunk.text,
                    "start_offset": hit.chunk.start_offset,
                    "end_offset": hit.chunk.end_offset,
                }
                for hit in hits
            ]
        }

    @app.post("/chat")
    async def chat(request: ChatRequest) -> Response:
        try:
            message = validate_message(request.message)
        except InvalidRequestError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})

        session = sessions.get_or_create(request.session_id)
        return ChatTurnResponse(
            relay,
            session,
            message,
            headers={"Cache-Control": "no-cache", SESSION_HEADER: session.connection_id},
        )

    @app.delete("/chat/sessions/{session_id}")
    async def close_session(session_id: str) -> dict[str, Any]:
        if not sessions.close(session_id):
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return {"closed": session_id}

    return app


app = create_app()

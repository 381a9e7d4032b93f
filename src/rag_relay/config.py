"""Configuration models for the RAG pipeline and chat relay."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", " ")


class ChunkingConfig(BaseModel):
    """Configures recursive separator chunking.

    `max_size` and `overlap` are validated by the chunker itself so that bad
    values surface as `ConfigurationError` rather than a pydantic error.
    """

    max_size: int = 500
    overlap: int = 100
    separators: tuple[str, ...] = DEFAULT_SEPARATORS
    hard_split: bool = False


class RetrievalConfig(BaseModel):
    """Configures nearest-neighbour retrieval."""

    top_k: int = Field(default=3, ge=1)
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)


class ModelConfig(BaseModel):
    """Configures the hosted chat and embedding models."""

    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-ada-002"
    answer_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class SessionConfig(BaseModel):
    """Bounds the in-memory chat session store."""

    max_sessions: int = Field(default=1000, ge=1)
    idle_ttl_seconds: float | None = Field(default=1800.0, gt=0)


class AppSettings(BaseModel):
    """Process-level settings passed explicitly into `create_app`."""

    openai_api_key: str | None = None
    persona_path: str | None = None
    log_level: str = "INFO"
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)

    @classmethod
    def from_env(cls) -> "AppSettings":
        models = ModelConfig(
            chat_model=os.getenv("OPENAI_MODEL", ModelConfig().chat_model),
            embedding_model=os.getenv(
                "OPENAI_EMBEDDING_MODEL", ModelConfig().embedding_model
            ),
        )
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            persona_path=os.getenv("RAG_PERSONA_PATH") or None,
            log_level=os.getenv("RAG_LOG_LEVEL", "INFO"),
            models=models,
        )

"""RAG pipeline and streaming chat relay."""

from .config import AppSettings, ChunkingConfig, ModelConfig, RetrievalConfig, SessionConfig

__all__ = [
    "AppSettings",
    "ChunkingConfig",
    "ModelConfig",
    "RetrievalConfig",
    "SessionConfig",
]

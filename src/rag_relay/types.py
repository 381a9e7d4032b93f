"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Document:
    """A loaded source document before chunking."""

    id: str
    source_path: str
    raw_text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Chunk:
    """A contiguous slice of a document's text.

    `text` is always `raw_text[start_offset:end_offset]` of the source document.
    """

    document_id: str
    ordinal: int
    text: str
    start_offset: int
    end_offset: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return f"{self.document_id}-chunk-{self.ordinal:04d}"


@dataclass(frozen=True, slots=True)
class EmbeddedChunk:
    """A chunk paired with its embedding vector."""

    chunk: Chunk
    vector: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class RetrievalResult:
    """A retrieval hit scored by cosine similarity."""

    chunk: Chunk
    score: float


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One entry of a chat transcript."""

    role: str
    content: str


@dataclass(slots=True)
class Answer:
    """A grounded answer and the chunks offered to the model as context."""

    text: str
    cited_chunks: list[Chunk]
    results: list[RetrievalResult] = field(default_factory=list)

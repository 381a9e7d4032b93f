"""In-memory vector index with exact cosine-similarity search."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from math import sqrt

from rag_relay.errors import DimensionMismatchError, EmbedderMismatchError, RetrievalError
from rag_relay.ingest.embedder import Embedder
from rag_relay.types import Chunk, EmbeddedChunk, RetrievalResult

logger = logging.getLogger(__name__)


class VectorIndex:
    """Append-only list of embedded chunks scanned linearly at query time.

    The index is tagged with the identity of the embedder that built it.
    Vectors from another embedding space are rejected on insert and on query,
    and every vector must share the dimension recorded by the first insert.

    Querying an empty index returns an empty list.
    """

    def __init__(self, embedder: Embedder) -> None:
        self._embedder = embedder
        self._entries: list[EmbeddedChunk] = []
        self._dimension: int | None = None

    @property
    def embedder_identity(self) -> str:
        return self._embedder.identity

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def entries(self) -> tuple[EmbeddedChunk, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, chunks: Sequence[Chunk]) -> list[EmbeddedChunk]:
        """Embed `chunks` in one batch call and append them in order.

        Either every chunk is appended or none is.
        """

        if not chunks:
            return []
        try:
            vectors = self._embedder.embed_batch([chunk.text for chunk in chunks])
        except Exception as exc:
            raise RetrievalError(
                f"Embedding failed for {len(chunks)} chunks: {exc}"
            ) from exc
        if len(vectors) != len(chunks):
            raise RetrievalError(
                f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        entries = [
            EmbeddedChunk(chunk=chunk, vector=tuple(vector))
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]
        self._append(entries)
        logger.debug("Indexed %d chunks (total=%d)", len(entries), len(self._entries))
        return entries

    def add_embedded(
        self, entries: Sequence[EmbeddedChunk], *, embedder_identity: str
    ) -> None:
        """Append chunks embedded elsewhere, provided they share this index's space."""

        if embedder_identity != self.embedder_identity:
            raise EmbedderMismatchError(
                f"Index built with '{self.embedder_identity}' cannot accept vectors "
                f"from '{embedder_identity}'"
            )
        self._append(list(entries))

    def query(
        self, text: str, k: int, *, embedder: Embedder | None = None
    ) -> list[RetrievalResult]:
        """Return the `min(k, len(self))` chunks most similar to `text`.

        Results are sorted by descending cosine similarity; ties keep insertion
        order.
        """

        if k <= 0:
            raise ValueError("k must be positive")
        if embedder is not None and embedder.identity != self.embedder_identity:
            raise EmbedderMismatchError(
                f"Query embedder '{embedder.identity}' does not match index "
                f"embedder '{self.embedder_identity}'"
            )
        if not self._entries:
            return []

        try:
            query_vector = self._embedder.embed(text)
        except Exception as exc:
            raise RetrievalError(f"Embedding failed for query: {exc}") from exc
        self._check_dimension(query_vector)

        scored = [
            RetrievalResult(
                chunk=entry.chunk,
                score=_cosine_similarity(query_vector, entry.vector),
            )
            for entry in self._entries
        ]
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return ranked[:k]

    def _append(self, entries: list[EmbeddedChunk]) -> None:
        dimension = self._dimension
        for entry in entries:
            if dimension is None:
                dimension = len(entry.vector)
            elif len(entry.vector) != dimension:
                raise DimensionMismatchError(
                    f"Vector for {entry.chunk.chunk_id} has dimension "
                    f"{len(entry.vector)}, expected {dimension}"
                )
        self._dimension = dimension
        self._entries.extend(entries)

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if self._dimension is not None and len(vector) != self._dimension:
            raise DimensionMismatchError(
                f"Query vector has dimension {len(vector)}, expected {self._dimension}"
            )


def _cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(-1.0, min(1.0, numerator / (norm_a * norm_b)))

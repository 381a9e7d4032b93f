"""Top-k retriever over a vector index."""

from __future__ import annotations

from rag_relay.config import RetrievalConfig
from rag_relay.retrieval.vector_index import VectorIndex
from rag_relay.types import RetrievalResult


class Retriever:
    """Applies default `top_k` and an optional score floor to index queries."""

    def __init__(self, index: VectorIndex, config: RetrievalConfig | None = None) -> None:
        self.index = index
        self.config = config or RetrievalConfig()

    def retrieve(self, query: str, *, top_k: int | None = None) -> list[RetrievalResult]:
        k = top_k if top_k is not None else self.config.top_k
        results = self.index.query(query, k)
        if self.config.min_score is None:
            return results
        return [item for item in results if item.score >= self.config.min_score]

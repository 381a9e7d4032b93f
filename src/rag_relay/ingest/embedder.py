"""Embedding abstractions, a deterministic baseline and a LangChain adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from typing import Any


class Embedder(ABC):
    """Embedder interface used by the vector index.

    `identity` names the embedding space. Vectors from embedders with different
    identities are not comparable and must never share an index.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable name of the embedding space."""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed one text."""

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts; must match per-item `embed` calls."""
        return [self.embed(text) for text in texts]


class HashingEmbedder(Embedder):
    """Deterministic sparse-like embedding without external model calls.

    This class is primarily used for local tests and keyless runs. In
    production, use `LangChainEmbedder` over a hosted embedding model.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    @property
    def identity(self) -> str:
        return f"hashing-{self.dimension}"

    def embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class LangChainEmbedder(Embedder):
    """Adapter over a `langchain_core.embeddings.Embeddings` implementation.

    Queries and chunks both go through `embed_documents`, so a query vector is
    always comparable with the stored ones even for providers whose
    `embed_query` adds an instruction prefix.
    """

    def __init__(self, embeddings: Any, *, model_name: str) -> None:
        self._embeddings = embeddings
        self._model_name = model_name

    @property
    def identity(self) -> str:
        return f"langchain:{self._model_name}"

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        vectors = self._embeddings.embed_documents(texts)
        return [[float(value) for value in vector] for vector in vectors]


def create_openai_embedder(model_name: str, api_key: str) -> LangChainEmbedder:
    from langchain_openai import OpenAIEmbeddings

    embeddings = OpenAIEmbeddings(model=model_name, api_key=api_key)
    return LangChainEmbedder(embeddings, model_name=model_name)

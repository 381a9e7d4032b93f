"""Retrieval-augmented question answering."""

from __future__ import annotations

import logging
import re

from rag_relay.config import RetrievalConfig
from rag_relay.generation.model_client import ModelClient
from rag_relay.retrieval.retriever import Retriever
from rag_relay.retrieval.vector_index import VectorIndex
from rag_relay.types import Answer, ChatMessage, RetrievalResult

logger = logging.getLogger(__name__)

INSUFFICIENT_INFORMATION = (
    "I don't have enough information in the indexed documents to answer that question."
)

_SYSTEM_PROMPT = """
You answer questions for a document-grounded assistant.

Rules:
1) Answer using only the supplied context. Do not use outside knowledge.
2) Cite the context entries you rely on by their label, e.g. [1] or [2].
3) If the context does not contain the answer, say you do not have enough information.
""".strip()

_WHITESPACE = re.compile(r"\s+")


class QueryAnswerer:
    """Retrieves top-k chunks, builds a labelled prompt and asks the model once."""

    def __init__(
        self,
        model_client: ModelClient,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.model_client = model_client
        self.config = config or RetrievalConfig()

    def answer(self, question: str, index: VectorIndex, k: int | None = None) -> Answer:
        """Answer `question` from `index`.

        `cited_chunks` lists every chunk offered as context, in label order,
        whether or not the model actually cited it. An empty retrieval returns
        a fixed answer without calling the model.
        """

        results = Retriever(index, self.config).retrieve(question, top_k=k)
        if not results:
            logger.info("No context retrieved; returning insufficient-information answer")
            return Answer(text=INSUFFICIENT_INFORMATION, cited_chunks=[], results=[])

        text = self.model_client.complete(build_messages(question, results))
        return Answer(
            text=text,
            cited_chunks=[result.chunk for result in results],
            results=results,
        )


def build_context(results: list[RetrievalResult]) -> str:
    """Render one line per chunk, labelled 1..n in retrieval order."""

    lines = []
    for label, result in enumerate(results, start=1):
        body = _WHITESPACE.sub(" ", result.chunk.text).strip()
        lines.append(f"[{label}] {body} (source: {result.chunk.chunk_id})")
    return "\n".join(lines)


def build_messages(question: str, results: list[RetrievalResult]) -> list[ChatMessage]:
    prompt = f"Context:\n{build_context(results)}\n\nQuestion: {question}\n\nAnswer:"
    return [
        ChatMessage(role="system", content=_SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]

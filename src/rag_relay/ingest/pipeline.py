"""End-to-end ingest pipeline: load -> chunk -> embed -> index."""

from __future__ import annotations

import logging
from pathlib import Path

from rag_relay.ingest.chunker import RecursiveChunker
from rag_relay.ingest.loader import DocumentLoader
from rag_relay.retrieval.vector_index import VectorIndex
from rag_relay.types import Chunk, Document

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Coordinates loader/chunker/index stages.

    Every run chunks all of its documents before touching the index, and the
    index appends a batch atomically, so a failed run leaves the index as it
    was.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        chunker: RecursiveChunker,
        index: VectorIndex,
    ) -> None:
        self._loader = loader
        self._chunker = chunker
        self._index = index

    def ingest_path(self, path: str | Path, *, doc_id: str | None = None) -> list[Chunk]:
        """Ingest a single source file and return created chunks."""

        document = self._loader.load_path(path, doc_id=doc_id)
        return self.ingest_documents([document])

    def ingest_directory(
        self, directory: str | Path, *, recursive: bool = False
    ) -> list[Chunk]:
        documents = self._loader.load_directory(directory, recursive=recursive)
        return self.ingest_documents(documents)

    def ingest_documents(self, documents: list[Document]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(self._chunker.chunk_document(document))
        self._index.add(chunks)
        logger.info(
            "Ingested %d documents into %d chunks (index size=%d)",
            len(documents),
            len(chunks),
            len(self._index),
        )
        return chunks

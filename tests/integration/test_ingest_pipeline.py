import pytest

from rag_relay.config import ChunkingConfig
from rag_relay.errors import RetrievalError
from rag_relay.ingest.chunker import RecursiveChunker
from rag_relay.ingest.embedder import HashingEmbedder
from rag_relay.ingest.loader import DocumentLoader
from rag_relay.ingest.pipeline import IngestPipeline
from rag_relay.retrieval.vector_index import VectorIndex

_FRUIT = "apples are red\n\nbananas are yellow\n\ncherries are dark"
_PETS = "dogs bark loudly\n\ncats purr softly\n\nbirds sing early"


def _pipeline(index: VectorIndex) -> IngestPipeline:
    chunker = RecursiveChunker(ChunkingConfig(max_size=24, overlap=4))
    return IngestPipeline(DocumentLoader(), chunker, index)


def test_two_document_corpus_query_returns_k_results(tmp_path) -> None:
    (tmp_path / "fruit.txt").write_text(_FRUIT, encoding="utf-8")
    (tmp_path / "pets.txt").write_text(_PETS, encoding="utf-8")
    index = VectorIndex(HashingEmbedder())

    chunks = _pipeline(index).ingest_directory(tmp_path)

    assert [c.document_id for c in chunks].count("fruit") == 3
    assert [c.document_id for c in chunks].count("pets") == 3
    assert len(index) == 6

    results = index.query("which animals purr softly", 2)

    assert len(results) == 2
    assert {r.chunk.chunk_id for r in results} <= {c.chunk_id for c in chunks}
    assert all(-1.0 <= r.score <= 1.0 for r in results)
    assert results[0].chunk.document_id == "pets"
    assert "cats purr softly" in results[0].chunk.text


def test_failed_ingest_leaves_index_usable(tmp_path) -> None:
    class BrokenEmbedder(HashingEmbedder):
        def embed_batch(self, texts: list[str]) -> list[list[float]]:
            raise TimeoutError("embedding request timed out")

    (tmp_path / "pets.txt").write_text(_PETS, encoding="utf-8")
    index = VectorIndex(BrokenEmbedder())

    with pytest.raises(RetrievalError):
        _pipeline(index).ingest_path(tmp_path / "pets.txt")

    assert len(index) == 0
    assert index.query("cats", 2) == []

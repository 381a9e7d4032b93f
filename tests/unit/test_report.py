from collections.abc import AsyncIterator, Sequence

from rag_relay.errors import GenerationError
from rag_relay.generation.answerer import QueryAnswerer
from rag_relay.generation.model_client import ModelClient
from rag_relay.generation.report import run_queries, write_report
from rag_relay.ingest.embedder import HashingEmbedder
from rag_relay.retrieval.vector_index import VectorIndex
from rag_relay.types import ChatMessage, Chunk


class FlakyModel(ModelClient):
    """Fails for any prompt mentioning 'flaky'."""

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        if "flaky" in messages[-1].content:
            raise GenerationError("model overloaded")
        return "Answer [1]."

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        yield self.complete(messages)


def test_failed_query_does_not_stop_the_batch(tmp_path) -> None:
    index = VectorIndex(HashingEmbedder())
    text = "RAG retrieves relevant chunks before generation."
    index.add([Chunk(document_id="rag", ordinal=0, text=text, start_offset=0, end_offset=len(text))])

    reports = run_queries(
        QueryAnswerer(FlakyModel()),
        index,
        ["What is RAG?", "Is this flaky?", "What are chunks?"],
        k=1,
    )

    assert [r.ok for r in reports] == [True, False, True]
    assert reports[0].sources == ["rag-chunk-0000"]
    assert reports[1].error == "model overloaded"
    assert len(index) == 1

    output = write_report(tmp_path / "rag-output.txt", reports).read_text(encoding="utf-8")
    assert "Question: Is this flaky?\nError: model overloaded" in output
    assert "[1] rag-chunk-0000" in output

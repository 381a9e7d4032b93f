import pytest

from rag_relay.config import ChunkingConfig
from rag_relay.errors import ConfigurationError
from rag_relay.ingest.chunker import RecursiveChunker, chunk
from rag_relay.types import Document

_SAMPLE_DOCS = [
    "Retrieval-Augmented Generation combines search with generation.\n\n"
    "Documents are split into chunks. Each chunk is embedded! Does it work? "
    "Vectors are compared with cosine similarity.\nThe best chunks become context.",
    "short",
    "   leading and trailing whitespace survives   \n\n\n",
    "word " * 120,
    "A. B. C.",
]


def _reconstruct(chunks) -> str:
    if not chunks:
        return ""
    parts = [chunks[0].text]
    for previous, current in zip(chunks, chunks[1:]):
        parts.append(current.text[previous.end_offset - current.start_offset :])
    return "".join(parts)


@pytest.mark.parametrize("text", _SAMPLE_DOCS)
@pytest.mark.parametrize("max_size,overlap", [(4, 1), (10, 0), (25, 5), (60, 20), (500, 100)])
def test_chunks_reconstruct_document_and_respect_max_size(text, max_size, overlap) -> None:
    chunks = chunk(text, max_size, overlap, document_id="doc")

    assert _reconstruct(chunks) == text
    for item in chunks:
        assert text[item.start_offset : item.end_offset] == item.text
        if len(item.text) > max_size:
            # only a token longer than max_size may push a chunk over the limit
            assert any(len(token) > max_size for token in item.text.split())


def test_overlap_prefix_matches_previous_tail() -> None:
    chunks = chunk("alpha beta gamma delta epsilon zeta eta theta", 12, 3)

    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end_offset - current.start_offset == 3
        assert current.text[:3] == previous.text[-3:]
        assert current.metadata["overlap"] == 3


def test_period_separated_scenario() -> None:
    chunks = chunk("A. B. C.", max_size=4, overlap=1)

    assert [c.text for c in chunks] == ["A. ", " B. ", " C."]
    assert all(len(c.text) <= 4 for c in chunks)
    assert all(
        previous.end_offset - current.start_offset == 1
        for previous, current in zip(chunks, chunks[1:])
    )


def test_empty_input_yields_no_chunks() -> None:
    assert chunk("", 10, 2) == []


def test_unsplittable_word_is_emitted_oversized_not_dropped() -> None:
    text = "tiny supercalifragilistic word"
    chunks = chunk(text, 10, 2)

    assert _reconstruct(chunks) == text
    oversized = [c for c in chunks if len(c.text) > 10]
    assert len(oversized) == 1
    assert "supercalifragilistic" in oversized[0].text


def test_word_with_trailing_space_fits_by_shrinking_overlap() -> None:
    text = "aa bbbbbbbb cc"
    chunks = chunk(text, 10, 2)

    assert _reconstruct(chunks) == text
    assert all(len(c.text) <= 10 for c in chunks)
    assert any("bbbbbbbb" in c.text for c in chunks)
    for previous, current in zip(chunks, chunks[1:]):
        assert 0 <= previous.end_offset - current.start_offset <= 2


def test_default_config_keeps_long_word_within_max_size() -> None:
    text = "lead " * 30 + "x" * 400 + " " + "tail " * 30
    chunks = chunk(text, 500, 100)

    assert _reconstruct(chunks) == text
    assert len(chunks) > 2
    assert all(len(c.text) <= 500 for c in chunks)


def test_oversized_token_gets_no_overlap_prefix() -> None:
    text = "ab " + "z" * 15 + " cd"
    chunks = chunk(text, 10, 2)

    oversized = [c for c in chunks if len(c.text) > 10]
    assert [c.text for c in oversized] == ["z" * 15]
    assert oversized[0].metadata["overlap"] == 0


def test_hard_split_cuts_unsplittable_words() -> None:
    chunker = RecursiveChunker(ChunkingConfig(max_size=8, overlap=2, hard_split=True))
    text = "abcdefghijklmnopqrstuvwxyz"

    chunks = chunker.chunk_text(text)

    assert _reconstruct(chunks) == text
    assert all(len(c.text) <= 8 for c in chunks)


def test_empty_separator_splits_by_character() -> None:
    chunker = RecursiveChunker(ChunkingConfig(max_size=5, overlap=1, separators=("\n", "")))
    text = "abcdefghij"

    chunks = chunker.chunk_text(text)

    assert _reconstruct(chunks) == text
    assert all(len(c.text) <= 5 for c in chunks)


def test_chunk_document_carries_identity_and_metadata() -> None:
    document = Document(
        id="guide",
        source_path="/tmp/guide.txt",
        raw_text="First paragraph here.\n\nSecond paragraph there.",
        metadata={"source": "/tmp/guide.txt"},
    )
    chunks = RecursiveChunker(ChunkingConfig(max_size=30, overlap=5)).chunk_document(document)

    assert [c.ordinal for c in chunks] == list(range(len(chunks)))
    assert chunks[0].chunk_id == "guide-chunk-0000"
    assert all(c.document_id == "guide" for c in chunks)
    assert all(c.metadata["source"] == "/tmp/guide.txt" for c in chunks)


@pytest.mark.parametrize("max_size,overlap", [(0, 0), (-5, 0), (10, 10), (10, 12), (10, -1)])
def test_invalid_configuration_rejected(max_size, overlap) -> None:
    with pytest.raises(ConfigurationError):
        chunk("some text", max_size, overlap)

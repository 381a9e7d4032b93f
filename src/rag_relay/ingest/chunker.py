"""Recursive separator chunking with character overlap."""

from __future__ import annotations

import logging

from rag_relay.config import ChunkingConfig
from rag_relay.errors import ConfigurationError
from rag_relay.types import Chunk, Document

logger = logging.getLogger(__name__)

_Span = tuple[int, int]


class RecursiveChunker:
    """Splits text into overlapping chunks bounded by `max_size` characters.

    Design notes:
    1. Recursive splitting first.
       A span longer than the piece limit is split on the coarsest separator it
       contains, and every resulting piece is split again with the finer
       separators only. Separators stay attached to the end of the piece they
       terminate, so pieces are exact, contiguous slices of the source text.

    2. Greedy merging second.
       Adjacent pieces are merged into the largest run that fits the chunk
       budget. The first chunk may use all of `max_size`; later chunks reserve
       `overlap` characters for the prefix copied from their predecessor.

    3. Overlap last.
       Each chunk after the first starts up to `overlap` characters before its
       own content, so `chunk.text` is still `raw_text[start_offset:end_offset]`.
       The prefix shrinks when the content alone is longer than the piece
       limit, keeping the chunk within `max_size`. Dropping that prefix from
       every chunk and concatenating reconstructs the original text exactly.

    A token with no separator that fits `max_size` is kept whole. A longer one
    is cut at character boundaries when `hard_split` is enabled. Otherwise it
    is emitted whole as an oversized chunk without any overlap prefix and a
    warning is logged; text is never truncated or dropped.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.max_size <= 0:
            raise ConfigurationError("max_size must be positive")
        if self.config.overlap < 0:
            raise ConfigurationError("overlap must not be negative")
        if self.config.overlap >= self.config.max_size:
            raise ConfigurationError("overlap must be less than max_size")

    @property
    def piece_limit(self) -> int:
        return self.config.max_size - self.config.overlap

    def chunk_document(self, document: Document) -> list[Chunk]:
        """Chunk a loaded document, carrying its metadata onto every chunk."""

        return self.chunk_text(
            document.raw_text,
            document_id=document.id,
            metadata=document.metadata,
        )

    def chunk_text(
        self,
        text: str,
        *,
        document_id: str = "",
        metadata: dict[str, object] | None = None,
    ) -> list[Chunk]:
        if not text:
            return []

        pieces = self._split(text, 0, len(text), tuple(self.config.separators))
        chunks: list[Chunk] = []
        previous_end = 0
        for ordinal, (start, end) in enumerate(self._merge(pieces)):
            chunk_start = start
            if ordinal:
                earliest = max(0, start - self.config.overlap, end - self.config.max_size)
                chunk_start = min(start, earliest)
            chunks.append(
                Chunk(
                    document_id=document_id,
                    ordinal=ordinal,
                    text=text[chunk_start:end],
                    start_offset=chunk_start,
                    end_offset=end,
                    metadata={
                        **(metadata or {}),
                        "chunk_index": ordinal,
                        "overlap": previous_end - chunk_start if ordinal else 0,
                    },
                )
            )
            previous_end = end
        return chunks

    def _split(
        self, text: str, start: int, end: int, separators: tuple[str, ...]
    ) -> list[_Span]:
        if end - start <= self.piece_limit:
            return [(start, end)]

        for index, separator in enumerate(separators):
            if separator == "":
                return [(i, i + 1) for i in range(start, end)]
            if text.find(separator, start, end) == -1:
                continue

            finer = separators[index + 1 :]
            spans: list[_Span] = []
            for piece_start, piece_end in _split_keeping_separator(
                text, start, end, separator
            ):
                body_end = piece_end - len(separator)
                if (
                    piece_end - piece_start > self.piece_limit
                    and body_end > piece_start
                    and text.endswith(separator, piece_start, piece_end)
                ):
                    # an oversized piece gives up its separator so the body is
                    # measured on its own
                    spans.extend(self._split(text, piece_start, body_end, finer))
                    spans.extend(self._split(text, body_end, piece_end, finer))
                else:
                    spans.extend(self._split(text, piece_start, piece_end, finer))
            return spans

        if end - start <= self.config.max_size:
            return [(start, end)]

        if self.config.hard_split:
            return [
                (i, min(i + self.piece_limit, end))
                for i in range(start, end, self.piece_limit)
            ]

        logger.warning(
            "Emitting oversized chunk of %d characters (max_size=%d): token contains no separator",
            end - start,
            self.config.max_size,
        )
        return [(start, end)]

    def _merge(self, pieces: list[_Span]) -> list[_Span]:
        merged: list[_Span] = []
        current: _Span | None = None

        for start, end in pieces:
            if current is None:
                current = (start, end)
                continue
            budget = self.config.max_size if not merged else self.piece_limit
            if end - current[0] <= budget:
                current = (current[0], end)
            else:
                merged.append(current)
                current = (start, end)

        if current is not None:
            merged.append(current)
        return merged


def chunk(
    text: str,
    max_size: int,
    overlap: int,
    *,
    document_id: str = "",
) -> list[Chunk]:
    """Functional entry point: chunk `text` with the default separator set."""

    chunker = RecursiveChunker(ChunkingConfig(max_size=max_size, overlap=overlap))
    return chunker.chunk_text(text, document_id=document_id)


def _split_keeping_separator(
    text: str, start: int, end: int, separator: str
) -> list[_Span]:
    spans: list[_Span] = []
    cursor = start
    while cursor < end:
        hit = text.find(separator, cursor, end)
        if hit == -1:
            spans.append((cursor, end))
            break
        piece_end = hit + len(separator)
        spans.append((cursor, piece_end))
        cursor = piece_end
    return spans

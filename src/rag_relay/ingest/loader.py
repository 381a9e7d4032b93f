"""Document loaders for plain text, markdown and JSON sources."""

from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from rag_relay.types import Document

logger = logging.getLogger(__name__)

_TITLE_PATTERN = re.compile(r"^#\s+(.*)", flags=re.MULTILINE)
_HEADING_PATTERN = re.compile(r"^#{1,6}\s+", flags=re.MULTILINE)
_WORDS_PER_MINUTE = 200


class Loader(ABC):
    """Base loader interface used by the ingest pipeline."""

    extensions: tuple[str, ...] = ()
    format_name: str = "text"

    def load(self, path: Path, *, doc_id: str | None = None) -> Document:
        text = self.read_text(path)
        metadata = {**extract_metadata(text, path), "format": self.format_name}
        return Document(
            id=doc_id or path.stem,
            source_path=str(path),
            raw_text=text,
            metadata=metadata,
        )

    @abstractmethod
    def read_text(self, path: Path) -> str:
        """Read a file into normalized text."""


class TextLoader(Loader):
    extensions = (".txt", ".log")
    format_name = "text"

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")


class MarkdownLoader(Loader):
    extensions = (".md", ".markdown")
    format_name = "markdown"

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")


class JsonLoader(Loader):
    """Loader for JSON documents with deterministic normalization."""

    extensions = (".json",)
    format_name = "json"

    def read_text(self, path: Path) -> str:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, (dict, list)):
            return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
        return str(payload)


class DocumentLoader:
    """Maps file extension to loader implementation."""

    def __init__(self, loaders: list[Loader] | None = None) -> None:
        self._loaders: dict[str, Loader] = {}
        for loader in loaders or [TextLoader(), MarkdownLoader(), JsonLoader()]:
            self.register(loader)

    def register(self, loader: Loader) -> None:
        for extension in loader.extensions:
            self._loaders[extension.lower()] = loader

    def supports(self, path: str | Path) -> bool:
        return Path(path).suffix.lower() in self._loaders

    def load_path(self, path: str | Path, *, doc_id: str | None = None) -> Document:
        file_path = Path(path)
        loader = self._loaders.get(file_path.suffix.lower())
        if loader is None:
            raise ValueError(f"No loader registered for extension: {file_path.suffix}")
        return loader.load(file_path, doc_id=doc_id)

    def load_directory(
        self, directory: str | Path, *, recursive: bool = False
    ) -> list[Document]:
        """Load every supported file under `directory` in sorted path order."""

        root = Path(directory)
        if not root.is_dir():
            raise ValueError(f"Not a directory: {root}")

        candidates = root.rglob("*") if recursive else root.iterdir()
        documents: list[Document] = []
        for path in sorted(p for p in candidates if p.is_file()):
            if not self.supports(path):
                logger.warning("Skipping unsupported file: %s", path)
                continue
            documents.append(self.load_path(path))
        logger.info("Loaded %d documents from %s", len(documents), root)
        return documents


def extract_metadata(text: str, path: str | Path) -> dict[str, Any]:
    """Derive title, section count, word count and reading time from text."""

    file_path = Path(path)
    title_match = _TITLE_PATTERN.search(text)
    word_count = len(text.split())
    return {
        "source": str(file_path),
        "title": title_match.group(1).strip() if title_match else file_path.stem,
        "section_count": len(_HEADING_PATTERN.findall(text)),
        "word_count": word_count,
        "reading_time_minutes": math.ceil(word_count / _WORDS_PER_MINUTE),
    }

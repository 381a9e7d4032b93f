"""Run a batch of questions against an index and write a plain-text report."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rag_relay.errors import RagRelayError
from rag_relay.generation.answerer import QueryAnswerer
from rag_relay.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QueryReport:
    question: str
    answer: str | None = None
    sources: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_queries(
    answerer: QueryAnswerer,
    index: VectorIndex,
    questions: list[str],
    *,
    k: int | None = None,
) -> list[QueryReport]:
    """Answer each question independently.

    A retrieval or generation failure is recorded on that question's report
    and the remaining questions still run against the same index.
    """

    reports: list[QueryReport] = []
    for question in questions:
        try:
            answer = answerer.answer(question, index, k)
        except RagRelayError as exc:
            logger.error("Query failed: %s: %s", question, exc)
            reports.append(QueryReport(question=question, error=str(exc)))
            continue
        reports.append(
            QueryReport(
                question=question,
                answer=answer.text,
                sources=[chunk.chunk_id for chunk in answer.cited_chunks],
            )
        )
    return reports


def format_report(reports: list[QueryReport]) -> str:
    sections: list[str] = []
    for report in reports:
        lines = [f"Question: {report.question}"]
        if report.ok:
            lines.append(f"Answer: {report.answer}")
            for label, source in enumerate(report.sources, start=1):
                lines.append(f"  [{label}] {source}")
        else:
            lines.append(f"Error: {report.error}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections) + "\n"


def write_report(path: str | Path, reports: list[QueryReport]) -> Path:
    output = Path(path)
    output.write_text(format_report(reports), encoding="utf-8")
    logger.info("Wrote %d query results to %s", len(reports), output)
    return output

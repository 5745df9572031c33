from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from ..models.detection import FileSummary, GlobalInferences, ParseResult
from ..tabular.reader import FileKind, TabularData, read_tabular, read_tabular_file
from .classifier import FieldSpec, FIELD_REGISTRY, classify_columns
from .llm_escalation import LLMEscalationFailure, TextGenerator, escalate, should_escalate
from .resolver import resolve_mapping

"""Analysis pipeline: grid -> detected columns -> suggested mapping.

Reader errors propagate to the caller (the wizard keeps the user on the
upload step); escalation failures are logged and the heuristic result wins.
"""

__all__ = [
    "Analyzer",
    "SAMPLE_ROW_COUNT",
    "analyze_grid",
]

logger = logging.getLogger(__name__)

SAMPLE_ROW_COUNT = 5


def analyze_grid(
    grid: list[list[str]],
    delimiter: str | None = None,
    file_name: str = "",
    registry: Sequence[FieldSpec] = FIELD_REGISTRY,
    priority: Sequence[str] | None = None,
) -> ParseResult:
    """Run classifier + resolver on a decoded grid (row 0 = header)."""
    header = [str(h).strip() for h in grid[0]]
    data_rows = [[str(c) for c in row] for row in grid[1:]]

    detected = classify_columns(header, data_rows, registry, priority)
    resolution = resolve_mapping(detected, data_rows)

    return ParseResult(
        file_summary=FileSummary(
            rows=len(data_rows),
            cols=len(header),
            header=header,
            sample_rows=data_rows[:SAMPLE_ROW_COUNT],
            all_rows=data_rows,
        ),
        detected_columns=detected,
        global_inferences=GlobalInferences(delimiter=delimiter),
        overall_confidence=resolution.overall_confidence,
        actions=resolution.actions,
        warnings=resolution.warnings,
        file_name=file_name,
    )


class Analyzer:
    """Reads uploads and analyses them, escalating to the LLM when unsure.

    Args:
        generator: text-generation client; None disables escalation
        priority: tie-break order of field keys for the classifier
    """

    def __init__(self, generator: TextGenerator | None = None, priority: Sequence[str] | None = None) -> None:
        self.generator = generator
        self.priority = priority

    def analyze(self, tabular: TabularData, file_name: str = "") -> ParseResult:
        result = analyze_grid(tabular.grid, tabular.delimiter, file_name, priority=self.priority)
        logger.debug(
            "file=%s cols=%d rows=%d confidence=%.2f",
            file_name,
            result.file_summary.cols,
            result.file_summary.rows,
            result.overall_confidence,
        )
        if self.generator is None or not should_escalate(result):
            return result

        logger.info("low confidence (%.2f) for %s, trying LLM analysis", result.overall_confidence, file_name)
        try:
            return escalate(result, self.generator)
        except LLMEscalationFailure as e:
            logger.warning("LLM analysis skipped, keeping rule-based result: %s", e)
            return result

    def analyze_bytes(self, data: bytes | str, kind: FileKind, file_name: str = "<upload>") -> ParseResult:
        return self.analyze(read_tabular(data, kind, file_name), file_name)

    def analyze_file(self, path: Path, mime_type: str | None = None) -> ParseResult:
        return self.analyze(read_tabular_file(path, mime_type), path.name)

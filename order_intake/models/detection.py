from __future__ import annotations

from dataclasses import dataclass, field

"""Column detection models for the order intake pipeline.

These records describe the outcome of analysing an uploaded grid:
per-column suggestions (DetectedColumn), the suggested mapping actions, row
warnings and the file summary handed to the wizard and the LLM adapter.
"""

__all__ = [
    "APPLY_MAPPING",
    "DetectedColumn",
    "FileSummary",
    "GlobalInferences",
    "MappingAction",
    "ParseResult",
    "RowWarning",
]

APPLY_MAPPING = "apply_mapping"


@dataclass(frozen=True)
class DetectedColumn:
    """Best-guess semantic field for one grid column.

    ``column_index`` is the stable position in the grid; ``suggested_field``
    is one of sku/quantity/description/price or None when nothing scored
    above the suggestion threshold.
    """
    column_index: int
    header: str
    suggested_field: str | None
    confidence: float  # [0, 1]
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MappingAction:
    """Suggested mapping to apply (field key → column index)."""
    mapping: dict[str, int]
    type: str = APPLY_MAPPING


@dataclass(frozen=True)
class RowWarning:
    row: int  # 0-based data row index
    issue: str  # e.g. 'quantity_invalid'
    details: str


@dataclass(frozen=True)
class FileSummary:
    rows: int  # data rows (header excluded)
    cols: int
    header: list[str]
    sample_rows: list[list[str]]  # first few data rows, for previews and the LLM prompt
    all_rows: list[list[str]]  # full data set for the mapping step


@dataclass(frozen=True)
class GlobalInferences:
    delimiter: str | None = None
    decimal_separator: str | None = "."
    currency: str | None = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of reading and analysing one uploaded file."""
    file_summary: FileSummary
    detected_columns: list[DetectedColumn]
    global_inferences: GlobalInferences
    overall_confidence: float
    actions: list[MappingAction] = field(default_factory=list)
    warnings: list[RowWarning] = field(default_factory=list)
    ai_enhanced: bool = False
    file_name: str = ""

    @property
    def suggested_mapping(self) -> dict[str, int]:
        """Field → column mapping of the first apply action ({} when none)."""
        for action in self.actions:
            if action.type == APPLY_MAPPING:
                return dict(action.mapping)
        return {}

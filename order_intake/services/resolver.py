from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models.detection import DetectedColumn, MappingAction, RowWarning
from ..models.intake_field import CRITICAL_FIELD_KEYS
from .parsing import parse_leading_float

"""Mapping resolver: per-column suggestions -> conflict-free field mapping.

Columns are visited from the most to the least confident; each one claims its
suggested field if nobody claimed it before and its confidence clears the
assignment threshold. Claims are never revisited.

Aggregate confidence = mean confidence of the claimed fields multiplied by
the share of critical fields (sku, quantity) found, so it drops to 0 unless
both critical fields are mapped.
"""

__all__ = [
    "ASSIGNMENT_THRESHOLD",
    "APPLY_THRESHOLD",
    "MAX_ROW_WARNINGS",
    "Resolution",
    "aggregate_confidence",
    "assign_fields",
    "mapping_action",
    "quantity_warnings",
    "resolve_mapping",
]

ASSIGNMENT_THRESHOLD = 0.4
APPLY_THRESHOLD = 0.5
MAX_ROW_WARNINGS = 50


@dataclass(frozen=True)
class Resolution:
    mapping: dict[str, int]  # field key -> column index
    overall_confidence: float
    actions: list[MappingAction] = field(default_factory=list)
    warnings: list[RowWarning] = field(default_factory=list)


def assign_fields(columns: Sequence[DetectedColumn]) -> tuple[dict[str, int], dict[str, float]]:
    """Greedy assignment; returns (field -> column index, field -> confidence)."""
    mapping: dict[str, int] = {}
    claimed: dict[str, float] = {}
    # sorted() is stable: equal confidences keep column order
    for col in sorted(columns, key=lambda c: c.confidence, reverse=True):
        if col.suggested_field is None or col.suggested_field in claimed:
            continue
        if col.confidence <= ASSIGNMENT_THRESHOLD:
            continue
        mapping[col.suggested_field] = col.column_index
        claimed[col.suggested_field] = col.confidence
    return mapping, claimed


def aggregate_confidence(claimed: dict[str, float]) -> float:
    if not claimed:
        return 0.0
    mean = sum(claimed.values()) / len(claimed)
    critical_found = sum(1 for key in CRITICAL_FIELD_KEYS if key in claimed)
    # two critical fields: a missing one halves the score, both missing zero it
    score = mean * (critical_found / 2)
    return min(max(score, 0.0), 1.0)


def mapping_action(columns: Sequence[DetectedColumn]) -> MappingAction:
    """Build an apply action from columns as-is (used after LLM escalation).

    Every column above the assignment threshold contributes; a later column
    with the same field overrides an earlier one.
    """
    mapping: dict[str, int] = {}
    for col in columns:
        if col.suggested_field and col.confidence > ASSIGNMENT_THRESHOLD:
            mapping[col.suggested_field] = col.column_index
    return MappingAction(mapping=mapping)


def quantity_warnings(rows: Sequence[Sequence[str]], quantity_column: int | None) -> list[RowWarning]:
    """Advisory warnings for data rows whose quantity cell is not numeric."""
    warnings: list[RowWarning] = []
    if quantity_column is None:
        return warnings
    for idx, row in enumerate(rows):
        value = str(row[quantity_column]) if quantity_column < len(row) else ""
        if not value or parse_leading_float(value) is None:
            warnings.append(
                RowWarning(
                    row=idx,
                    issue="quantity_invalid",
                    details=f"Row {idx + 2}: Invalid quantity '{value}'",
                )
            )
            if len(warnings) >= MAX_ROW_WARNINGS:
                break
    return warnings


def resolve_mapping(columns: Sequence[DetectedColumn], rows: Sequence[Sequence[str]]) -> Resolution:
    """Turn classifier output into a suggested mapping plus aggregate confidence.

    An apply action is only emitted above APPLY_THRESHOLD; below it the wizard
    starts with an empty mapping and the user maps columns by hand.
    """
    mapping, claimed = assign_fields(columns)
    overall = aggregate_confidence(claimed)
    actions = [MappingAction(mapping=dict(mapping))] if overall > APPLY_THRESHOLD else []
    return Resolution(
        mapping=mapping,
        overall_confidence=overall,
        actions=actions,
        warnings=quantity_warnings(rows, mapping.get("quantity")),
    )

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..models.detection import DetectedColumn
from .parsing import clean_numeric_text, parse_leading_float

"""Column classifier: scores grid columns against the known order fields.

Each column is compared with every field of the registry using two signals:

- header keywords (+0.6 for a keyword contained in the normalized header,
  +0.3 for the header contained in a keyword),
- value shape over the sampled cells (+0.3 above 80% matches, +0.1 above 40%).

The strictly highest score wins; equal scores keep the field that comes first
in the priority order. A field is only suggested when its score exceeds 0.3.
Pure function of (header, sampled values).
"""

__all__ = [
    "ANALYSIS_ROW_LIMIT",
    "FIELD_REGISTRY",
    "FieldSpec",
    "classify_column",
    "classify_columns",
    "normalize_header",
]

ANALYSIS_ROW_LIMIT = 200

HEADER_MATCH_SCORE = 0.6
HEADER_PARTIAL_SCORE = 0.3
STRONG_PATTERN_SCORE = 0.3
WEAK_PATTERN_SCORE = 0.1
STRONG_PATTERN_RATIO = 0.8
WEAK_PATTERN_RATIO = 0.4
SUGGESTION_THRESHOLD = 0.3

_SKU_PATTERN = re.compile(r"^[A-Z0-9\-/.]{3,}$", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s")


def _is_non_negative_number(value: str) -> bool:
    parsed = parse_leading_float(clean_numeric_text(value))
    return parsed is not None and parsed >= 0


def _looks_like_sku(value: str) -> bool:
    return _SKU_PATTERN.match(value) is not None


def _looks_like_description(value: str) -> bool:
    return len(value) > 5 and parse_leading_float(value) is None


@dataclass(frozen=True)
class FieldSpec:
    key: str
    keywords: tuple[str, ...]
    matches: Callable[[str], bool]


FIELD_REGISTRY: tuple[FieldSpec, ...] = (
    FieldSpec(
        key="sku",
        keywords=("sku", "item", "item code", "part", "part no", "part number", "code", "product_id"),
        matches=_looks_like_sku,
    ),
    FieldSpec(
        key="quantity",
        keywords=("qty", "quantity", "amount", "q", "count"),
        matches=_is_non_negative_number,
    ),
    FieldSpec(
        key="description",
        keywords=("desc", "description", "name", "job", "product name"),
        matches=_looks_like_description,
    ),
    FieldSpec(
        key="price",
        keywords=("price", "unit price", "amount", "cost", "unit cost"),
        matches=_is_non_negative_number,
    ),
)


def normalize_header(header: str) -> str:
    """Lower-case and strip everything but [a-z0-9] ("Unit Price" -> "unitprice")."""
    return _NON_ALNUM.sub("", header.lower())


def _cell(row: Sequence[str], index: int) -> str:
    return str(row[index]) if index < len(row) else ""


def _score_field(spec: FieldSpec, header: str, norm_header: str, values: list[str]) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []

    if any(_WHITESPACE.sub("", k) in norm_header for k in spec.keywords):
        score += HEADER_MATCH_SCORE
        reasons.append(f"header_match: {header}")
    elif len(norm_header) > 2 and any(norm_header in k for k in spec.keywords):
        score += HEADER_PARTIAL_SCORE
        reasons.append(f"header_partial: {header}")

    if values:
        ratio = sum(1 for v in values if spec.matches(v)) / len(values)
    else:
        ratio = 0.0
    if ratio > STRONG_PATTERN_RATIO:
        score += STRONG_PATTERN_SCORE
        reasons.append(f"value_pattern_{spec.key}: {ratio * 100:.0f}%")
    elif ratio > WEAK_PATTERN_RATIO:
        score += WEAK_PATTERN_SCORE

    return score, reasons


def _ordered_registry(registry: Sequence[FieldSpec], priority: Sequence[str] | None) -> list[FieldSpec]:
    if not priority:
        return list(registry)
    rank = {key: i for i, key in enumerate(priority)}
    # fields missing from the priority list keep registry order after the listed ones
    return sorted(registry, key=lambda s: rank.get(s.key, len(rank)))


def classify_column(
    header: str,
    column_index: int,
    rows: Sequence[Sequence[str]],
    registry: Sequence[FieldSpec] = FIELD_REGISTRY,
    priority: Sequence[str] | None = None,
) -> DetectedColumn:
    """Score one column against every registered field and keep the best."""
    norm_header = normalize_header(header)
    values = [v for v in (_cell(row, column_index).strip() for row in rows) if v]

    best_field: str | None = None
    max_score = 0.0
    best_reasons: list[str] = []
    for spec in _ordered_registry(registry, priority):
        score, reasons = _score_field(spec, header, norm_header, values)
        if score > max_score:
            max_score = score
            best_field = spec.key
            best_reasons = reasons

    return DetectedColumn(
        column_index=column_index,
        header=header,
        suggested_field=best_field if max_score > SUGGESTION_THRESHOLD else None,
        confidence=min(max(max_score, 0.0), 1.0),
        reasons=best_reasons,
    )


def classify_columns(
    header: Sequence[str],
    rows: Sequence[Sequence[str]],
    registry: Sequence[FieldSpec] = FIELD_REGISTRY,
    priority: Sequence[str] | None = None,
) -> list[DetectedColumn]:
    """Produce one DetectedColumn per header cell.

    Args:
        header: header row (row 0 of the grid)
        rows: data rows; only the first ANALYSIS_ROW_LIMIT are scored
        registry: candidate fields
        priority: optional tie-break order of field keys (default: registry order)
    """
    sample = list(rows[:ANALYSIS_ROW_LIMIT])
    return [
        classify_column(str(h).strip(), index, sample, registry, priority)
        for index, h in enumerate(header)
    ]

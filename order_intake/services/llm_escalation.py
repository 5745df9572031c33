from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from typing import Any, Protocol

import jsonschema
from jsonschema.exceptions import ValidationError

from ..models.detection import DetectedColumn, ParseResult
from .resolver import mapping_action

"""LLM escalation adapter for low-confidence column analyses.

When the heuristic aggregate confidence is below ESCALATION_THRESHOLD the
header and the first rows are sent to a text-generation service asking for a
strict JSON column mapping. A valid answer replaces the detected columns and
the overall confidence wholesale; anything else raises LLMEscalationFailure,
which the analysis pipeline logs while keeping the heuristic result.
"""

__all__ = [
    "ESCALATION_THRESHOLD",
    "LLMEscalationFailure",
    "PROMPT_SAMPLE_ROWS",
    "RESPONSE_SCHEMA",
    "TextGenerator",
    "build_prompt",
    "escalate",
    "parse_response",
    "should_escalate",
]

logger = logging.getLogger(__name__)

ESCALATION_THRESHOLD = 0.75
PROMPT_SAMPLE_ROWS = 5

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["detected_columns", "overall_confidence"],
    "properties": {
        "detected_columns": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["column_index", "suggested_field", "confidence"],
                "properties": {
                    "column_index": {"type": "integer", "minimum": 0},
                    "header": {"type": "string"},
                    "suggested_field": {"enum": ["sku", "quantity", "description", "price", None]},
                    "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                    "reason": {"type": ["array", "string"], "items": {"type": "string"}},
                },
            },
        },
        "overall_confidence": {"type": "number", "minimum": 0, "maximum": 1},
    },
}


class LLMEscalationFailure(Exception):
    """Escalation could not produce a usable mapping. Logged, never shown to the user."""


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


def should_escalate(result: ParseResult) -> bool:
    return result.overall_confidence < ESCALATION_THRESHOLD


def build_prompt(result: ParseResult) -> str:
    summary = result.file_summary
    sample = summary.all_rows[:PROMPT_SAMPLE_ROWS]
    return (
        "Analyze this CSV/Excel data snippet and map its columns to: sku, quantity, description, price.\n"
        "Ignore columns that match none of them (suggested_field null).\n\n"
        f"Headers (column_index order):\n{json.dumps(summary.header, ensure_ascii=False)}\n\n"
        f"Data (first {len(sample)} rows):\n{json.dumps(sample, ensure_ascii=False, indent=2)}\n\n"
        "Return JSON only, no markdown:\n"
        "{\n"
        '  "detected_columns": [\n'
        '    { "column_index": number, "header": string, '
        '"suggested_field": "sku"|"quantity"|"description"|"price"|null, '
        '"confidence": number, "reason": string[] }\n'
        "  ],\n"
        '  "overall_confidence": number\n'
        "}\n"
    )


def parse_response(text: str, header: list[str]) -> tuple[list[DetectedColumn], float]:
    """Parse the generated text into detected columns + overall confidence.

    Raises:
        LLMEscalationFailure: invalid JSON, schema mismatch, out-of-range or repeated column
    """
    cleaned = _FENCE.sub("", text).strip()
    try:
        data = json.loads(cleaned)
        jsonschema.validate(data, RESPONSE_SCHEMA)
    except json.JSONDecodeError as e:
        raise LLMEscalationFailure(f"response is not JSON: {e}") from e
    except ValidationError as e:
        raise LLMEscalationFailure(f"response shape mismatch: {e.message}") from e

    columns: list[DetectedColumn] = []
    seen: set[int] = set()
    for raw in data["detected_columns"]:
        index = int(raw["column_index"])
        if index >= len(header):
            raise LLMEscalationFailure(f"column_index {index} out of range ({len(header)} columns)")
        if index in seen:
            raise LLMEscalationFailure(f"column_index {index} listed more than once")
        seen.add(index)
        reason = raw.get("reason", [])
        columns.append(
            DetectedColumn(
                column_index=index,
                header=raw.get("header") or header[index],
                suggested_field=raw["suggested_field"],
                confidence=float(raw["confidence"]),
                reasons=[reason] if isinstance(reason, str) else list(reason),
            )
        )
    return columns, float(data["overall_confidence"])


def escalate(result: ParseResult, generator: TextGenerator) -> ParseResult:
    """Ask the text-generation service for a mapping and return the replaced result.

    Raises:
        LLMEscalationFailure: on any transport, status or parse problem
    """
    try:
        text = generator.generate(build_prompt(result))
    except LLMEscalationFailure:
        raise
    except Exception as e:
        if getattr(e, "rate_limited", False):
            raise LLMEscalationFailure("text generation quota exceeded (rate limited)") from e
        raise LLMEscalationFailure(f"text generation failed: {e}") from e

    columns, overall = parse_response(text, result.file_summary.header)
    logger.debug("llm escalation returned %d columns overall=%.2f", len(columns), overall)
    return replace(
        result,
        detected_columns=columns,
        overall_confidence=overall,
        actions=[mapping_action(columns)],
        ai_enhanced=True,
    )

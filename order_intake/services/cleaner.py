from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import replace

from ..models.order_item import OrderItem
from .parsing import clean_numeric_text, parse_leading_float, parse_leading_int

"""Row cleaner: grid rows + column mapping -> normalized OrderItems.

Cleaning never raises on bad input: an unreadable quantity becomes 0 and an
unreadable price becomes None, leaving the validator to flag the row.
Cleaning an already cleaned item returns an equal item.
"""

__all__ = [
    "CORE_FIELD_KEYS",
    "build_item",
    "clean_item",
    "clean_sku",
    "coerce_price",
    "parse_quantity",
    "transform_rows",
]

CORE_FIELD_KEYS: frozenset[str] = frozenset({"sku", "quantity", "description", "price"})

_WHITESPACE_RUN = re.compile(r"\s+")


def clean_sku(sku: str) -> str:
    """Trim, upper-case and drop all whitespace (" abc 12 " -> "ABC12")."""
    return _WHITESPACE_RUN.sub("", sku.strip().upper())


def parse_quantity(quantity: int | float | str | None) -> int | float:
    """Numbers pass through; text keeps its leading digits ("10ks" -> 10); else 0."""
    if isinstance(quantity, bool):
        return int(quantity)
    if isinstance(quantity, (int, float)):
        return quantity
    if quantity is None:
        return 0
    parsed = parse_leading_int(str(quantity).lower())
    return parsed if parsed is not None else 0


def coerce_price(price: int | float | str | None) -> float | None:
    """Numeric coercion of a price cell; empty, unreadable or non-finite -> None.

    Thousands separators are removed ("1,234.50" and "1 234,50" -> 1234.5).
    """
    if price is None or isinstance(price, bool):
        return None
    if isinstance(price, (int, float)):
        value = float(price)
    else:
        value = parse_leading_float(clean_numeric_text(str(price)))
        if value is None:
            return None
    return value if math.isfinite(value) else None


def _cell(row: Sequence[str], index: int) -> str:
    return str(row[index]) if index < len(row) else ""


def build_item(row: Sequence[str], mapping: Mapping[int, str], row_index: int) -> OrderItem:
    """Pick the mapped cells of one data row into a raw (uncleaned) OrderItem.

    Args:
        row: data row of the grid
        mapping: column index -> field key
        row_index: 0-based data row index
    """
    values = {field: _cell(row, column) for column, field in mapping.items()}
    return OrderItem(
        part_number=values.get("sku", ""),
        quantity=values.get("quantity", ""),  # type: ignore[arg-type]  # cleaned below
        description=values.get("description", ""),
        price=values.get("price"),  # type: ignore[arg-type]
        custom_field_values={k: v for k, v in values.items() if k not in CORE_FIELD_KEYS},
        row_index=row_index,
    )


def clean_item(item: OrderItem) -> OrderItem:
    return replace(
        item,
        part_number=clean_sku(item.part_number or ""),
        quantity=parse_quantity(item.quantity),
        description=(item.description or "").strip(),
        price=coerce_price(item.price),
        custom_field_values=dict(item.custom_field_values),
    )


def transform_rows(rows: Sequence[Sequence[str]], mapping: Mapping[int, str]) -> list[OrderItem]:
    """Build and clean one OrderItem per data row, in grid order."""
    return [clean_item(build_item(row, mapping, index)) for index, row in enumerate(rows)]

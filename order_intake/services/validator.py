from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from ..models.order_item import OrderItem

"""Order item validation (per item and per batch).

All violations of an item are collected, not just the first one. Duplicate
SKUs are reported separately and never make an item invalid on their own.
Messages are the Slovak texts shown by the intake screens.
"""

__all__ = [
    "MAX_QUANTITY",
    "BatchValidationResult",
    "RowValidationError",
    "ValidationResult",
    "apply_validation",
    "find_duplicates",
    "validate_batch",
    "validate_item",
]

MAX_QUANTITY = 10000

SKU_PATTERN = re.compile(r"^[A-Z0-9-]+$")

MSG_SKU_REQUIRED = "SKU je povinné pole"
MSG_SKU_CHARS = "SKU môže obsahovať len písmená, čísla a pomlčky"
MSG_QTY_REQUIRED = "Množstvo je povinné pole"
MSG_QTY_POSITIVE = "Množstvo musí byť väčšie ako 0"
MSG_QTY_TOO_HIGH = f"Množstvo je príliš vysoké (max {MAX_QUANTITY})"
MSG_QTY_INTEGER = "Množstvo musí byť celé číslo"
MSG_PRICE_NEGATIVE = "Cena nemôže byť záporná"
MSG_PRICE_INVALID = "Cena musí byť platné číslo"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RowValidationError:
    """Invalid item of a batch. A record for display, not an exception."""
    index: int
    item: OrderItem
    errors: list[str]


@dataclass(frozen=True)
class BatchValidationResult:
    valid_items: list[OrderItem]
    invalid_items: list[RowValidationError]
    duplicates: list[str]

    @property
    def all_valid(self) -> bool:
        return not self.invalid_items


def validate_item(item: OrderItem) -> ValidationResult:
    errors: list[str] = []

    if not item.part_number or not item.part_number.strip():
        errors.append(MSG_SKU_REQUIRED)
    elif not SKU_PATTERN.match(item.part_number):
        errors.append(MSG_SKU_CHARS)

    quantity = item.quantity
    if quantity is None or isinstance(quantity, (str, bool)):
        errors.append(MSG_QTY_REQUIRED)
    elif quantity <= 0:
        errors.append(MSG_QTY_POSITIVE)
    elif quantity > MAX_QUANTITY:
        errors.append(MSG_QTY_TOO_HIGH)
    elif not float(quantity).is_integer():
        errors.append(MSG_QTY_INTEGER)

    if item.price is not None:
        if not math.isfinite(item.price):
            errors.append(MSG_PRICE_INVALID)
        elif item.price < 0:
            errors.append(MSG_PRICE_NEGATIVE)

    return ValidationResult(is_valid=not errors, errors=errors)


def apply_validation(item: OrderItem) -> OrderItem:
    """Return a copy of ``item`` carrying its validity flag and error list."""
    result = validate_item(item)
    return replace(item, is_valid=result.is_valid, errors=list(result.errors))


def find_duplicates(items: Sequence[OrderItem]) -> list[str]:
    """SKUs (trimmed, upper-cased) occurring more than once, in first-seen order."""
    counts: dict[str, int] = {}
    for item in items:
        sku = (item.part_number or "").strip().upper()
        if sku:
            counts[sku] = counts.get(sku, 0) + 1
    return [sku for sku, count in counts.items() if count > 1]


def validate_batch(items: Sequence[OrderItem]) -> BatchValidationResult:
    valid: list[OrderItem] = []
    invalid: list[RowValidationError] = []
    for index, item in enumerate(items):
        result = validate_item(item)
        if result.is_valid:
            valid.append(item)
        else:
            invalid.append(RowValidationError(index=index, item=item, errors=result.errors))
    return BatchValidationResult(valid_items=valid, invalid_items=invalid, duplicates=find_duplicates(items))

from __future__ import annotations

from dataclasses import dataclass, field

"""OrderItem model for the order intake pipeline.

An OrderItem is built from one data row of the uploaded grid plus the
current column mapping, then cleaned and validated. Instances are frozen:
cleaning, validation and per-row corrections produce new instances through
``dataclasses.replace``.
"""

__all__ = [
    "OrderItem",
]


@dataclass(frozen=True)
class OrderItem:
    """Single order line after mapping (and usually cleaning).

    ``row_index`` is the 0-based position among the data rows (header row
    excluded), used to key per-row validation errors in the wizard.
    """
    part_number: str
    quantity: int | float
    description: str = ""
    price: float | None = None
    custom_field_values: dict[str, str] = field(default_factory=dict)
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    row_index: int = -1  # -1: not tied to a grid row (manually added)

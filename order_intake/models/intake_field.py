from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""IntakeField model: a selectable mapping target.

``sku`` and ``quantity`` are the critical fields understood by the classifier
and validator; every other field is user-defined and carried opaquely into
``OrderItem.custom_field_values``.
"""

__all__ = [
    "CRITICAL_FIELD_KEYS",
    "IntakeField",
]

CRITICAL_FIELD_KEYS: tuple[str, ...] = ("sku", "quantity")


@dataclass(frozen=True)
class IntakeField:
    id: str
    key: str  # unique slug, e.g. "my-color-2"
    label: str
    is_active: bool = True
    is_required: bool = False
    created_at: datetime | None = None

    @property
    def protected(self) -> bool:
        """Critical fields can be neither deactivated nor deleted."""
        return self.key in CRITICAL_FIELD_KEYS

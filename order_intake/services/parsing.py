from __future__ import annotations

import re

"""Lenient numeric parsing shared by the classifier, resolver and cleaner.

Spreadsheet cells arrive as text ("10", "10ks", "5,50 €"); these helpers read
the leading number the way users expect without ever raising.
"""

__all__ = [
    "clean_numeric_text",
    "parse_leading_float",
    "parse_leading_int",
]

_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_DIGITS = re.compile(r"^(\d+)")
_NON_NUMERIC = re.compile(r"[^0-9.,]")


def parse_leading_float(text: str) -> float | None:
    """Parse the numeric prefix of ``text`` ("12.5kg" -> 12.5, "abc" -> None)."""
    m = _LEADING_FLOAT.match(text)
    if m is None:
        return None
    return float(m.group(1))


def parse_leading_int(text: str) -> int | None:
    """Leading digit run of the trimmed text ("10 ks" -> 10, "-5" -> None)."""
    m = _LEADING_DIGITS.match(text.strip())
    return int(m.group(1)) if m else None


def clean_numeric_text(text: str) -> str:
    """Normalize a localized number to ``[-]digits[.digits]``, dropping currency/unit text.

    With both ``,`` and ``.`` present the later one is the decimal mark and
    the other a thousands separator ("1,234.50", "1.234,50"). A lone comma is
    a decimal comma ("5,50 €" -> "5.50"); a repeated mark is a thousands
    separator ("1 234 567", "1,234,567", "1.234.567"). A sign is kept only
    when the text starts with it.
    """
    digits = _NON_NUMERIC.sub("", text)
    if "," in digits and "." in digits:
        decimal = "," if digits.rfind(",") > digits.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        digits = digits.replace(thousands, "").replace(decimal, ".")
    elif digits.count(",") > 1:
        digits = digits.replace(",", "")
    elif "," in digits:
        digits = digits.replace(",", ".")
    elif digits.count(".") > 1:
        digits = digits.replace(".", "")
    if digits and text.strip().startswith("-"):
        return "-" + digits
    return digits

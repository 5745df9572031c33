from __future__ import annotations

import pytest

from order_intake.services.classifier import (
    ANALYSIS_ROW_LIMIT,
    classify_column,
    classify_columns,
    normalize_header,
)
from order_intake.services.parsing import clean_numeric_text, parse_leading_float, parse_leading_int


def test_normalize_header():
    assert normalize_header("Unit Price (€)") == "unitprice"
    assert normalize_header("Part-No.") == "partno"


@pytest.mark.parametrize(
    "text,expected",
    [("12.5kg", 12.5), ("  7", 7.0), (".5", 0.5), ("-3", -3.0), ("abc", None), ("", None)],
)
def test_parse_leading_float(text, expected):
    assert parse_leading_float(text) == expected


def test_parse_leading_int_and_numeric_cleanup():
    assert parse_leading_int(" 10 ks") == 10
    assert parse_leading_int("ks10") is None
    assert clean_numeric_text("5,50 €") == "5.50"
    assert clean_numeric_text("-3") == "-3"
    assert clean_numeric_text("SKU-001") == "001"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1,234.50", "1234.50"),
        ("1.234,50", "1234.50"),
        ("1 234,50 €", "1234.50"),
        ("1,234,567", "1234567"),
        ("1.234.567", "1234567"),
        ("nan", ""),
    ],
)
def test_clean_numeric_text_removes_thousands_separators(text, expected):
    assert clean_numeric_text(text) == expected


def test_thousands_separated_prices_match_value_pattern():
    rows = [["1,234.50"], ["2 500,00"], ["12.000,75"]]
    col = classify_column("Unit Price", 0, rows)
    assert col.suggested_field == "price"
    assert "value_pattern_price: 100%" in col.reasons


def test_negative_numbers_do_not_match_quantity_pattern():
    col = classify_column("Qty", 0, [["-1"], ["-2"], ["-3"]])
    assert col.suggested_field == "quantity"
    assert col.confidence == pytest.approx(0.6)
    assert col.reasons == ["header_match: Qty"]


def test_well_formed_order_columns(order_grid):
    header, rows = order_grid[0], order_grid[1:]
    detected = classify_columns(header, rows)
    assert [c.suggested_field for c in detected] == ["sku", "quantity", "description", "price"]
    assert [c.column_index for c in detected] == [0, 1, 2, 3]
    assert detected[1].confidence == pytest.approx(0.9)
    assert "header_match: Qty" in detected[1].reasons
    assert "value_pattern_quantity: 100%" in detected[1].reasons


def test_header_partial_match():
    # "cod" is contained in the keyword "code"
    col = classify_column("COD", 0, [["x"]])
    assert col.suggested_field is None  # 0.3 alone is not above the threshold
    assert col.confidence == pytest.approx(0.3)
    assert col.reasons == ["header_partial: COD"]


def test_value_pattern_only_column():
    rows = [["AB-100"], ["CD-200"], ["EF-300"]]
    col = classify_column("xx", 0, rows)
    # header gives nothing, sku pattern 100% -> 0.3, not above threshold
    assert col.suggested_field is None
    assert col.reasons == ["value_pattern_sku: 100%"]


def test_weak_ratio_adds_small_bonus():
    rows = [["10"], ["abc"], ["20"], ["xyz"], ["30"]]  # 60% numeric
    col = classify_column("qty", 0, rows)
    assert col.suggested_field == "quantity"
    assert col.confidence == pytest.approx(0.7)
    assert not any(r.startswith("value_pattern") for r in col.reasons)


def test_tie_break_follows_registry_order_by_default():
    # "amount" is a keyword of both quantity and price, values numeric for both
    col = classify_column("Amount", 0, [["5"], ["6"]])
    assert col.suggested_field == "quantity"
    col = classify_column("Amount", 0, [["5"], ["6"]], priority=["price", "quantity"])
    assert col.suggested_field == "price"


def test_missing_cells_count_as_empty():
    header = ["SKU", "Qty"]
    rows = [["A-100"], ["B-200", "2"]]
    detected = classify_columns(header, rows)
    assert detected[1].suggested_field == "quantity"


def test_only_first_rows_are_scored():
    header = ["Qty"]
    good = [["1"]] * ANALYSIS_ROW_LIMIT
    bad = [["not a number"]] * (ANALYSIS_ROW_LIMIT * 2)
    detected = classify_columns(header, good + bad)
    assert "value_pattern_quantity: 100%" in detected[0].reasons


def test_classifier_is_deterministic(order_grid):
    header, rows = order_grid[0], order_grid[1:]
    assert classify_columns(header, rows) == classify_columns(header, rows)


def test_confidence_capped_at_one():
    col = classify_column("Item Code", 0, [["AB-123"], ["CD-456"]])
    assert 0.0 <= col.confidence <= 1.0

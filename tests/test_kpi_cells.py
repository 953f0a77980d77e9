# =============================================================================
# Unit Tests — Cell Parsing and Normalization
# =============================================================================

import math

from app.kpi.cells import MISSING, NumericValue, TextValue, parse_cell
from app.kpi.normalizer import RawDataset, normalize


class TestParseCell:

    def test_int_and_float(self):
        assert parse_cell(1200) == NumericValue(1200.0, "1200")
        assert parse_cell(12.5) == NumericValue(12.5, "12.5")

    def test_integral_float_label_has_no_decimal(self):
        assert parse_cell(2014.0).label == "2014"

    def test_currency_and_thousands(self):
        cell = parse_cell(" $1,234.50 ")
        assert cell.number == 1234.5
        assert cell.label == "$1,234.50"

    def test_accounting_negative(self):
        assert parse_cell("(300.00)").number == -300.0
        assert parse_cell("($1,000)").number == -1000.0

    def test_signed_value_inside_parentheses_is_text(self):
        for raw in ("(-5)", "($-5)", "(+5)"):
            assert isinstance(parse_cell(raw), TextValue), raw

    def test_percent(self):
        assert parse_cell("12%").number == 12.0

    def test_scientific_notation(self):
        assert parse_cell("1.5E+06").number == 1_500_000.0
        assert parse_cell("2e5").number == 200_000.0
        assert parse_cell("-3.2e-2").number == -0.032
        assert parse_cell("1.5E+06").label == "1.5E+06"

    def test_trailing_decimal_point(self):
        assert parse_cell("12.").number == 12.0

    def test_overflowing_exponent_is_text(self):
        assert isinstance(parse_cell("1e999"), TextValue)

    def test_text(self):
        assert parse_cell("Government") == TextValue("Government")
        assert parse_cell("Government").number is None

    def test_missing_values(self):
        for raw in (None, "", "   ", math.nan, math.inf):
            assert parse_cell(raw) is MISSING

    def test_malformed_numbers_are_text(self):
        for raw in ("1,23", "12abc", "$", "1.2.3", "e5", "1e", "."):
            assert isinstance(parse_cell(raw), TextValue), raw

    def test_bool_is_text(self):
        assert parse_cell(True) == TextValue("true")


class TestNormalize:

    def test_empty_input(self):
        rows = normalize([])
        assert len(rows) == 0
        assert rows.columns == ()

    def test_concatenates_in_order_with_first_vocabulary(self):
        rows = normalize([
            RawDataset(columns=["Sales", "Segment"], rows=[{"Sales": "1"}]),
            RawDataset(columns=["Other"], rows=[{"Sales": "2"}, {"Sales": "3"}]),
        ])
        assert rows.columns == ("Sales", "Segment")
        assert [c.number for c in rows.cells("Sales")] == [1.0, 2.0, 3.0]

    def test_absent_column_is_missing(self):
        rows = normalize([RawDataset(columns=["Sales"], rows=[{}])])
        assert list(rows.cells("Sales")) == [MISSING]

    def test_single_mapping_rows(self):
        rows = normalize([RawDataset(columns=["Sales"], rows={"Sales": 5})])
        assert len(rows) == 1

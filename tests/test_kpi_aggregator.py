# =============================================================================
# Unit Tests — Aggregator
# =============================================================================
#
# Covers the null-state contract: unbound roles give None, non-numeric
# cells count as zero, ratios with a zero denominator are unavailable.
# =============================================================================

import pytest

from app.kpi.aggregator import Aggregator, RatioKind, growth, ratio
from app.kpi.normalizer import RawDataset, normalize
from app.kpi.roles import Role, resolve_roles


def _aggregator(columns, rows) -> Aggregator:
    row_set = normalize([RawDataset(columns=columns, rows=rows)])
    return Aggregator(row_set, resolve_roles(row_set.columns))


class TestTotal:

    def test_unbound_role_is_none(self):
        agg = _aggregator(["Country"], [{"Country": "France"}])
        assert agg.total(Role.SALES) is None

    def test_bound_but_non_numeric_is_zero(self):
        agg = _aggregator(["Sales"], [{"Sales": "n/a"}, {"Sales": ""}])
        assert agg.total(Role.SALES) == 0.0

    def test_sums_numeric_cells(self):
        agg = _aggregator(
            ["Sales"],
            [{"Sales": "$1,000.00"}, {"Sales": 250}, {"Sales": "(50)"}],
        )
        assert agg.total(Role.SALES) == pytest.approx(1200.0)

    def test_first_bound_candidate_wins(self):
        agg = _aggregator(["Profit"], [{"Profit": 7}])
        assert agg.total(Role.COGS, Role.PROFIT) == 7.0


class TestAverage:

    def test_skips_non_numeric(self):
        agg = _aggregator(
            ["Sale Price"],
            [{"Sale Price": 10}, {"Sale Price": "x"}, {"Sale Price": 20}],
        )
        assert agg.average(Role.PRICE) == 15.0

    def test_no_numeric_cells_is_none(self):
        agg = _aggregator(["Sale Price"], [{"Sale Price": "x"}])
        assert agg.average(Role.PRICE) is None

    def test_unbound_is_none(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        assert agg.average(Role.PRICE) is None


class TestRatio:

    def test_percent(self):
        assert ratio(25.0, 200.0) == 12.5

    def test_multiple(self):
        assert ratio(3.0, 2.0, RatioKind.MULTIPLE) == 1.5

    @pytest.mark.parametrize("numerator,denominator", [
        (None, 100.0), (5.0, None), (5.0, 0.0), (None, None),
    ])
    def test_unavailable(self, numerator, denominator):
        assert ratio(numerator, denominator) is None

    def test_growth(self):
        assert growth(150.0, 100.0) == 50.0
        assert growth(150.0, 0.0) is None


class TestBreakdown:

    ROWS = [
        {"Segment": "Government", "Sales": 300},
        {"Segment": "Midmarket", "Sales": 100},
        {"Segment": "Government", "Sales": 200},
        {"Segment": "", "Sales": 400},
    ]

    def test_sorted_descending_with_unknown_bucket(self):
        agg = _aggregator(["Segment", "Sales"], self.ROWS)
        entries = agg.breakdown_by(Role.SEGMENT)
        assert [(e.key, e.value) for e in entries] == [
            ("Government", 500.0), ("Unknown", 400.0), ("Midmarket", 100.0),
        ]

    def test_percentages_sum_to_100(self):
        agg = _aggregator(["Segment", "Sales"], self.ROWS)
        entries = agg.breakdown_by(Role.SEGMENT)
        assert sum(e.percentage for e in entries) == pytest.approx(100.0, abs=1e-9)

    def test_ties_keep_first_seen_order(self):
        agg = _aggregator(
            ["Segment", "Sales"],
            [{"Segment": "B", "Sales": 1}, {"Segment": "A", "Sales": 1}],
        )
        assert [e.key for e in agg.breakdown_by(Role.SEGMENT)] == ["B", "A"]

    def test_non_positive_total_gives_zero_percentages(self):
        agg = _aggregator(
            ["Segment", "Sales"],
            [{"Segment": "A", "Sales": -5}, {"Segment": "B", "Sales": 5}],
        )
        assert all(e.percentage == 0.0 for e in agg.breakdown_by(Role.SEGMENT))

    def test_unbound_dimension_is_empty(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        assert agg.breakdown_by(Role.SEGMENT) == []

    def test_unbound_measure_is_empty(self):
        agg = _aggregator(["Segment"], [{"Segment": "A"}])
        assert agg.breakdown_by(Role.SEGMENT) == []

    def test_by_arbitrary_column(self):
        agg = _aggregator(
            ["Region", "Sales"],
            [{"Region": "EU", "Sales": 1}, {"Region": "US", "Sales": 3}],
        )
        assert agg.breakdown_by_column("Region")[0].key == "US"
        assert agg.breakdown_by_column("Missing Column") == []


class TestLabelRange:

    def test_lexicographic_min_max(self):
        agg = _aggregator(
            ["Date"],
            [{"Date": "2014-06-01"}, {"Date": "2013-09-01"}, {"Date": ""}],
        )
        assert agg.label_range(Role.DATE) == ("2013-09-01", "2014-06-01")

    def test_unbound(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        assert agg.label_range(Role.DATE) == (None, None)


class TestGroupTotals:

    def test_composite_keys_and_required_role(self):
        agg = _aggregator(
            ["Year", "Month Name", "Sales"],
            [
                {"Year": 2014, "Month Name": "March", "Sales": 1},
                {"Year": 2014, "Month Name": "March", "Sales": 2},
                {"Year": 2014, "Sales": 4},
                {"Month Name": "May", "Sales": 8},
            ],
        )
        totals = agg.group_totals([Role.YEAR, Role.MONTH], [Role.SALES, Role.UNITS])
        assert totals == {
            "2014-March": (3.0, 0.0),
            "2014-Unknown": (4.0, 0.0),
        }

    def test_unbound_key_is_empty(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        assert agg.group_totals([Role.YEAR], [Role.SALES]) == {}

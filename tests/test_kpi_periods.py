# =============================================================================
# Unit Tests — Period Buckets and Period-over-Period Comparison
# =============================================================================

import pytest

from app.kpi.aggregator import Aggregator
from app.kpi.normalizer import RawDataset, normalize
from app.kpi.periods import (
    ComparisonState,
    ComparisonType,
    UnavailableReason,
    bucket_periods,
    compare_periods,
    sales_trend,
)
from app.kpi.roles import resolve_roles


def _aggregator(columns, rows) -> Aggregator:
    row_set = normalize([RawDataset(columns=columns, rows=rows)])
    return Aggregator(row_set, resolve_roles(row_set.columns))


YEARLY = _aggregator(
    ["Year", "Sales", "Profit", "Units Sold"],
    [
        {"Year": 2023, "Sales": 150, "Profit": 30, "Units Sold": 0},
        {"Year": 2022, "Sales": 100, "Profit": 20, "Units Sold": 0},
    ],
)


class TestBuckets:

    def test_sorted_lexicographically(self):
        agg = _aggregator(
            ["Year", "Sales"],
            [{"Year": 2014, "Sales": 1}, {"Year": 2013, "Sales": 2}],
        )
        assert [b.period for b in bucket_periods(agg)] == ["2013", "2014"]

    def test_month_keys_use_lexicographic_order(self):
        agg = _aggregator(
            ["Year", "Month Number", "Sales"],
            [
                {"Year": 2014, "Month Number": 2, "Sales": 1},
                {"Year": 2014, "Month Number": 10, "Sales": 1},
            ],
        )
        # "2014-10" sorts before "2014-2"
        assert [b.period for b in bucket_periods(agg)] == ["2014-10", "2014-2"]

    def test_rows_without_year_are_excluded(self):
        agg = _aggregator(
            ["Year", "Sales"],
            [{"Year": 2014, "Sales": 1}, {"Sales": 99}],
        )
        buckets = bucket_periods(agg)
        assert len(buckets) == 1
        assert buckets[0].sales == 1.0

    def test_no_year_column_gives_empty_trend(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        assert sales_trend(agg) == []

    def test_trend_units_none_when_unbound(self):
        agg = _aggregator(["Year", "Sales"], [{"Year": 2014, "Sales": 5}])
        entry = sales_trend(agg)[0]
        assert entry.sales == 5.0
        assert entry.units is None
        assert entry.profit is None


class TestComparePeriods:

    def test_none_is_not_applicable(self):
        outcome = compare_periods(YEARLY, ComparisonType.NONE)
        assert outcome.state is ComparisonState.NOT_APPLICABLE

    @pytest.mark.parametrize("comparison_type", [
        ComparisonType.QOQ, ComparisonType.MOM, ComparisonType.CUSTOM,
    ])
    def test_other_types_not_implemented(self, comparison_type):
        outcome = compare_periods(YEARLY, comparison_type)
        assert outcome.state is ComparisonState.UNAVAILABLE
        assert outcome.reason is UnavailableReason.NOT_IMPLEMENTED

    def test_yoy_growth(self):
        outcome = compare_periods(YEARLY, ComparisonType.YOY)
        assert outcome.state is ComparisonState.COMPUTED
        assert outcome.growth.sales == pytest.approx(50.0)
        assert outcome.growth.profit == pytest.approx(50.0)
        # prior units are zero
        assert outcome.growth.units is None
        assert (outcome.previous_period, outcome.current_period) == ("2022", "2023")

    def test_yoy_zero_prior_sales(self):
        agg = _aggregator(
            ["Year", "Sales"],
            [{"Year": 2022, "Sales": 0}, {"Year": 2023, "Sales": 150}],
        )
        outcome = compare_periods(agg, ComparisonType.YOY)
        assert outcome.state is ComparisonState.COMPUTED
        assert outcome.growth.sales is None

    def test_yoy_without_year_column(self):
        agg = _aggregator(["Sales"], [{"Sales": 1}])
        outcome = compare_periods(agg, ComparisonType.YOY)
        assert outcome.reason is UnavailableReason.UNRESOLVED_SCHEMA

    def test_yoy_single_year(self):
        agg = _aggregator(["Year", "Sales"], [{"Year": 2014, "Sales": 1}])
        outcome = compare_periods(agg, ComparisonType.YOY)
        assert outcome.reason is UnavailableReason.INSUFFICIENT_PERIODS

    def test_yoy_ignores_month_column(self):
        agg = _aggregator(
            ["Year", "Month Name", "Sales"],
            [
                {"Year": 2013, "Month Name": "May", "Sales": 100},
                {"Year": 2014, "Month Name": "May", "Sales": 100},
                {"Year": 2014, "Month Name": "June", "Sales": 100},
            ],
        )
        outcome = compare_periods(agg, ComparisonType.YOY)
        assert outcome.growth.sales == pytest.approx(100.0)

    def test_labels(self):
        assert compare_periods(YEARLY, ComparisonType.YOY).label == "Year-over-Year"
        assert compare_periods(YEARLY, ComparisonType.MOM).label == "Month-over-Month"

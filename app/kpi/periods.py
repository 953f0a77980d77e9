# =============================================================================
# Period-Comparison Engine — Period Buckets, Trends, Growth
# =============================================================================
#
# A single pass groups rows into period buckets keyed by a string:
#   "<year>"          when only the Year role is bound (or month is ignored)
#   "<year>-<month>"  when both Year and Month are bound
#
# ORDERING: buckets are ordered LEXICOGRAPHICALLY by key, and "the two most
# recent periods" are the two greatest keys in that order. This is only
# chronological when keys are written consistently (four-digit years,
# zero-padded month numbers). "2014-10" sorts before "2014-9", and month
# names sort alphabetically. Callers that need true chronology must supply
# a sortable period column.
#
# COMPARISON STATES:
#   NOT_APPLICABLE — comparison_type is "none"
#   UNAVAILABLE    — with a reason:
#       NOT_IMPLEMENTED      qoq / mom / custom (recognized, not computed)
#       UNRESOLVED_SCHEMA    Year or Sales role unbound
#       INSUFFICIENT_PERIODS fewer than two periods with data
#   COMPUTED       — growth between the two most recent periods
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass

from app.kpi.aggregator import Aggregator, growth
from app.kpi.roles import Role


class ComparisonType(str, enum.Enum):
    YOY = "yoy"
    QOQ = "qoq"
    MOM = "mom"
    CUSTOM = "custom"
    NONE = "none"


class ComparisonState(str, enum.Enum):
    NOT_APPLICABLE = "not_applicable"
    UNAVAILABLE = "unavailable"
    COMPUTED = "computed"


class UnavailableReason(str, enum.Enum):
    NOT_IMPLEMENTED = "not_implemented"
    UNRESOLVED_SCHEMA = "unresolved_schema"
    INSUFFICIENT_PERIODS = "insufficient_periods"


COMPARISON_LABELS: dict[ComparisonType, str] = {
    ComparisonType.YOY: "Year-over-Year",
    ComparisonType.QOQ: "Quarter-over-Quarter",
    ComparisonType.MOM: "Month-over-Month",
    ComparisonType.CUSTOM: "Custom Period",
    ComparisonType.NONE: "None",
}


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodBucket:
    """Accumulated measures for one reporting interval."""

    period: str
    sales: float = 0.0
    profit: float = 0.0
    units: float = 0.0


@dataclass(frozen=True)
class PeriodTrendEntry:
    """One row of the sales trend. Units/profit are None when unbound."""

    period: str
    sales: float
    units: float | None = None
    profit: float | None = None


@dataclass(frozen=True)
class GrowthComparison:
    """Percent change per measure; None where the prior value is 0 or unbound."""

    sales: float | None
    profit: float | None
    units: float | None


@dataclass(frozen=True)
class ComparisonOutcome:
    comparison_type: ComparisonType
    state: ComparisonState
    reason: UnavailableReason | None = None
    growth: GrowthComparison | None = None
    current_period: str | None = None
    previous_period: str | None = None

    @property
    def label(self) -> str:
        return COMPARISON_LABELS[self.comparison_type]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def bucket_periods(
    aggregator: Aggregator,
    include_month: bool = True,
) -> list[PeriodBucket]:
    """
    Group rows into period buckets, sorted lexicographically by key.

    Returns an empty list when Year or Sales is unbound. Rows without a
    year value are skipped; rows without a month value (when the Month
    role is in use) are keyed "<year>-Unknown".
    """
    binding = aggregator.binding
    if not binding.is_bound(Role.SALES):
        return []

    keys = [Role.YEAR]
    if include_month and binding.is_bound(Role.MONTH):
        keys.append(Role.MONTH)

    totals = aggregator.group_totals(
        keys, [Role.SALES, Role.PROFIT, Role.UNITS],
    )
    return [
        PeriodBucket(period=period, sales=sales, profit=profit, units=units)
        for period, (sales, profit, units) in sorted(totals.items())
    ]


def sales_trend(aggregator: Aggregator) -> list[PeriodTrendEntry]:
    """Sales (and units/profit where bound) per period, oldest key first."""
    has_units = aggregator.binding.is_bound(Role.UNITS)
    has_profit = aggregator.binding.is_bound(Role.PROFIT)
    return [
        PeriodTrendEntry(
            period=bucket.period,
            sales=bucket.sales,
            units=bucket.units if has_units else None,
            profit=bucket.profit if has_profit else None,
        )
        for bucket in bucket_periods(aggregator, include_month=True)
    ]


def compare_periods(
    aggregator: Aggregator,
    comparison_type: ComparisonType,
) -> ComparisonOutcome:
    """Compute the configured period-over-period comparison."""
    if comparison_type is ComparisonType.NONE:
        return ComparisonOutcome(comparison_type, ComparisonState.NOT_APPLICABLE)

    # TODO: quarter and month buckets need a canonical sortable period key
    # before qoq/mom can be computed; until then they stay NOT_IMPLEMENTED.
    if comparison_type is not ComparisonType.YOY:
        return ComparisonOutcome(
            comparison_type,
            ComparisonState.UNAVAILABLE,
            reason=UnavailableReason.NOT_IMPLEMENTED,
        )

    binding = aggregator.binding
    if not (binding.is_bound(Role.YEAR) and binding.is_bound(Role.SALES)):
        return ComparisonOutcome(
            comparison_type,
            ComparisonState.UNAVAILABLE,
            reason=UnavailableReason.UNRESOLVED_SCHEMA,
        )

    buckets = bucket_periods(aggregator, include_month=False)
    if len(buckets) < 2:
        return ComparisonOutcome(
            comparison_type,
            ComparisonState.UNAVAILABLE,
            reason=UnavailableReason.INSUFFICIENT_PERIODS,
        )

    previous, current = buckets[-2], buckets[-1]
    return ComparisonOutcome(
        comparison_type,
        ComparisonState.COMPUTED,
        growth=GrowthComparison(
            sales=growth(current.sales, previous.sales),
            profit=(
                growth(current.profit, previous.profit)
                if binding.is_bound(Role.PROFIT) else None
            ),
            units=(
                growth(current.units, previous.units)
                if binding.is_bound(Role.UNITS) else None
            ),
        ),
        current_period=current.period,
        previous_period=previous.period,
    )


# =============================================================================
# Flexible KPI Engine — Schema-less Financial KPIs
# =============================================================================
#
# Computes a fixed KPI set from arbitrary uploaded CSV data:
#
#   datasets ──▶ normalize ──▶ resolve_roles ──▶ Aggregator ──┬──▶ metrics
#                                                            └──▶ periods
#                                         FlexibleKPISet ──▶ format_kpi_summary
#
# Every metric follows the null-state contract of aggregator.py: a metric
# whose role did not resolve is None, and the formatter renders it "N/A".
# Nothing here raises on sparse or malformed input.
#
# The role binding is resolved once per engine instance and reused by every
# metric; two engines built from the same datasets resolve identically.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from app.kpi.aggregator import Aggregator, BreakdownEntry, ratio
from app.kpi.formatter import (
    BREAKDOWN_TOP_N,
    TREND_WINDOW,
    format_kpi_summary,
)
from app.kpi.normalizer import RawDataset, normalize
from app.kpi.periods import (
    ComparisonOutcome,
    ComparisonState,
    ComparisonType,
    PeriodTrendEntry,
    compare_periods,
    sales_trend,
)
from app.kpi.roles import SYNONYM_TABLE_VERSION, Role, RoleBinding, resolve_roles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisConfig:
    """
    User-selected analysis options.

    `include_forecasting` is accepted and stored with reports but has no
    effect on the computation.
    """

    comparison_type: ComparisonType = ComparisonType.NONE
    group_by: tuple[str, ...] = ()
    focus_metrics: tuple[str, ...] = ()
    include_forecasting: bool = False


@dataclass(frozen=True)
class DateRange:
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True)
class FlexibleKPISet:
    """Result of one flexible KPI computation. None means unavailable."""

    record_count: int
    data_columns: tuple[str, ...]
    date_range: DateRange
    total_sales: float | None
    total_units: float | None
    average_price: float | None
    total_profit: float | None
    profit_margin: float | None
    total_cogs: float | None
    total_discounts: float | None
    discount_rate: float | None
    sales_by_period: tuple[PeriodTrendEntry, ...] = ()
    sales_by_segment: tuple[BreakdownEntry, ...] = ()
    sales_by_product: tuple[BreakdownEntry, ...] = ()
    sales_by_country: tuple[BreakdownEntry, ...] = ()
    sales_by_discount_band: tuple[BreakdownEntry, ...] = ()
    custom_breakdowns: tuple[tuple[str, tuple[BreakdownEntry, ...]], ...] = ()
    comparison: ComparisonOutcome = field(
        default_factory=lambda: ComparisonOutcome(
            ComparisonType.NONE, ComparisonState.NOT_APPLICABLE,
        ),
    )
    focus_metrics: tuple[str, ...] = ()
    role_binding: RoleBinding = field(default_factory=RoleBinding)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable view for API responses and JSONB storage."""
        comparison = self.comparison
        return {
            "record_count": self.record_count,
            "data_columns": list(self.data_columns),
            "date_range": asdict(self.date_range),
            "total_sales": self.total_sales,
            "total_units": self.total_units,
            "average_price": self.average_price,
            "total_profit": self.total_profit,
            "profit_margin": self.profit_margin,
            "total_cogs": self.total_cogs,
            "total_discounts": self.total_discounts,
            "discount_rate": self.discount_rate,
            "sales_by_period": [asdict(p) for p in self.sales_by_period],
            "sales_by_segment": [asdict(b) for b in self.sales_by_segment],
            "sales_by_product": [asdict(b) for b in self.sales_by_product],
            "sales_by_country": [asdict(b) for b in self.sales_by_country],
            "sales_by_discount_band": [
                asdict(b) for b in self.sales_by_discount_band
            ],
            "custom_breakdowns": {
                column: [asdict(b) for b in entries]
                for column, entries in self.custom_breakdowns
            },
            "comparison": {
                "comparison_type": comparison.comparison_type.value,
                "state": comparison.state.value,
                "reason": comparison.reason.value if comparison.reason else None,
                "growth": asdict(comparison.growth) if comparison.growth else None,
                "current_period": comparison.current_period,
                "previous_period": comparison.previous_period,
            },
            "focus_metrics": list(self.focus_metrics),
            "role_binding": self.role_binding.to_dict(),
            "synonym_table_version": SYNONYM_TABLE_VERSION,
        }


class FlexibleKPIEngine:
    """
    KPI engine for schema-less uploaded datasets.

    Usage:
        engine = FlexibleKPIEngine(datasets, AnalysisConfig(ComparisonType.YOY))
        kpis = engine.calculate()
        text = engine.summary()
    """

    def __init__(
        self,
        datasets: Iterable[RawDataset],
        config: AnalysisConfig | None = None,
    ) -> None:
        self.config = config or AnalysisConfig()
        self.rows = normalize(datasets)
        self.binding = resolve_roles(self.rows.columns)
        self.aggregator = Aggregator(self.rows, self.binding)

    def calculate(self) -> FlexibleKPISet:
        """Compute the full KPI set. Pure: repeated calls give equal results."""
        agg = self.aggregator
        logger.info(
            "Calculating KPIs for %d rows, %d columns (comparison=%s)",
            len(self.rows), len(self.rows.columns),
            self.config.comparison_type.value,
        )

        total_sales = agg.total(Role.SALES)
        start, end = agg.label_range(Role.DATE)

        return FlexibleKPISet(
            record_count=len(self.rows),
            data_columns=self.rows.columns,
            date_range=DateRange(start=start, end=end),
            total_sales=total_sales,
            total_units=agg.total(Role.UNITS),
            average_price=agg.average(Role.PRICE),
            total_profit=agg.total(Role.PROFIT),
            profit_margin=ratio(agg.total(Role.PROFIT), total_sales),
            total_cogs=agg.total(Role.COGS),
            total_discounts=agg.total(Role.DISCOUNTS),
            discount_rate=ratio(
                agg.total(Role.DISCOUNTS), agg.total(Role.GROSS_SALES),
            ),
            sales_by_period=tuple(sales_trend(agg)),
            sales_by_segment=tuple(agg.breakdown_by(Role.SEGMENT)),
            sales_by_product=tuple(agg.breakdown_by(Role.PRODUCT)),
            sales_by_country=tuple(agg.breakdown_by(Role.COUNTRY)),
            sales_by_discount_band=tuple(agg.breakdown_by(Role.DISCOUNT_BAND)),
            custom_breakdowns=self._custom_breakdowns(),
            comparison=compare_periods(agg, self.config.comparison_type),
            focus_metrics=self._focus_metrics(),
            role_binding=self.binding,
        )

    def summary(
        self,
        trend_window: int = TREND_WINDOW,
        top_n: int = BREAKDOWN_TOP_N,
    ) -> str:
        """Formatted KPI summary text (LLM context and raw-text panel)."""
        return format_kpi_summary(self.calculate(), trend_window, top_n)

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _custom_breakdowns(
        self,
    ) -> tuple[tuple[str, tuple[BreakdownEntry, ...]], ...]:
        """
        Sales breakdowns for user-chosen group-by columns.

        Columns already covered by a built-in breakdown, and columns not in
        the vocabulary, are skipped.
        """
        built_in = {
            self.binding.get(role)
            for role in (
                Role.SEGMENT, Role.PRODUCT, Role.COUNTRY, Role.DISCOUNT_BAND,
            )
        }
        result: list[tuple[str, tuple[BreakdownEntry, ...]]] = []
        for column in _unique(self.config.group_by):
            if column in built_in or column not in self.rows.columns:
                continue
            entries = self.aggregator.breakdown_by_column(column, Role.SALES)
            if entries:
                result.append((column, tuple(entries)))
        return tuple(result)

    def _focus_metrics(self) -> tuple[str, ...]:
        return tuple(
            column for column in _unique(self.config.focus_metrics)
            if column in self.rows.columns
        )


def _unique(values: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered

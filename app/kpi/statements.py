# =============================================================================
# Statement KPI Engine — Fixed-Schema Financial Statement Records
# =============================================================================
#
# Statement records carry one row per (company, fiscal year, fiscal period)
# with contractual field names, so no synonym resolution is needed. The
# engine binds every StatementField to the column of the same name
# (RoleBinding.identity) and reuses the generic Aggregator.
#
# PERIOD KEYS:
#   revenue by year    — fiscal year, NUMERIC order
#   revenue by period  — "<fiscal_year>-<fiscal_period>", LEXICOGRAPHIC order,
#                        only rows that carry a fiscal period
#
# Ratios: margins, ROE and ROA are percentages; debt-to-equity is a bare
# multiple (liabilities / equity).
# =============================================================================

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from app.kpi.aggregator import (
    Aggregator,
    BreakdownEntry,
    RatioKind,
    growth,
    ratio,
)
from app.kpi.cells import parse_cell
from app.kpi.formatter import format_statement_summary
from app.kpi.normalizer import RawDataset, normalize
from app.kpi.roles import RoleBinding

logger = logging.getLogger(__name__)


class StatementField(str, enum.Enum):
    """Columns of a financial statement record."""

    COMPANY_NAME = "company_name"
    FISCAL_YEAR = "fiscal_year"
    FISCAL_PERIOD = "fiscal_period"
    REVENUE = "revenue"
    COST_OF_REVENUE = "cost_of_revenue"
    GROSS_PROFIT = "gross_profit"
    OPERATING_EXPENSES = "operating_expenses"
    OPERATING_INCOME = "operating_income"
    NET_INCOME = "net_income"
    TOTAL_ASSETS = "total_assets"
    TOTAL_LIABILITIES = "total_liabilities"
    SHAREHOLDERS_EQUITY = "shareholders_equity"
    SEGMENT = "segment"


STATEMENT_COLUMNS: tuple[str, ...] = tuple(f.value for f in StatementField)


@dataclass(frozen=True)
class StatementKPISet:
    """Result of one statement KPI computation. None means unavailable."""

    total_revenue: float
    yoy_revenue_growth: float | None
    qoq_revenue_growth: float | None
    gross_margin: float | None
    operating_margin: float | None
    net_margin: float | None
    debt_to_equity: float | None
    return_on_equity: float | None
    return_on_assets: float | None
    segment_breakdown: tuple[BreakdownEntry, ...] = ()
    revenue_by_year: tuple[tuple[str, float], ...] = ()
    revenue_by_period: tuple[tuple[str, float], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_revenue": self.total_revenue,
            "yoy_revenue_growth": self.yoy_revenue_growth,
            "qoq_revenue_growth": self.qoq_revenue_growth,
            "gross_margin": self.gross_margin,
            "operating_margin": self.operating_margin,
            "net_margin": self.net_margin,
            "debt_to_equity": self.debt_to_equity,
            "return_on_equity": self.return_on_equity,
            "return_on_assets": self.return_on_assets,
            "segment_breakdown": [asdict(b) for b in self.segment_breakdown],
            "revenue_by_year": [
                {"year": year, "revenue": revenue}
                for year, revenue in self.revenue_by_year
            ],
            "revenue_by_period": [
                {"period": period, "revenue": revenue}
                for period, revenue in self.revenue_by_period
            ],
        }


class StatementKPIEngine:
    """
    KPI engine for financial statement records.

    `records` are mappings keyed by StatementField values (ORM rows are
    converted by the caller). Unknown keys are ignored.
    """

    def __init__(self, records: Iterable[Mapping[str, Any]]) -> None:
        self.rows = normalize(
            [RawDataset(columns=STATEMENT_COLUMNS, rows=list(records))]
        )
        self.binding = RoleBinding.identity(StatementField)
        self.aggregator = Aggregator(self.rows, self.binding)

    def calculate(self) -> StatementKPISet:
        agg = self.aggregator
        logger.info("Calculating statement KPIs for %d records", len(self.rows))

        revenue = agg.total(StatementField.REVENUE)
        net_income = agg.total(StatementField.NET_INCOME)
        equity = agg.total(StatementField.SHAREHOLDERS_EQUITY)

        by_year = self._revenue_by_year()
        by_period = self._revenue_by_period()

        return StatementKPISet(
            total_revenue=revenue or 0.0,
            yoy_revenue_growth=_latest_growth(by_year),
            qoq_revenue_growth=_latest_growth(by_period),
            gross_margin=ratio(agg.total(StatementField.GROSS_PROFIT), revenue),
            operating_margin=ratio(
                agg.total(StatementField.OPERATING_INCOME), revenue,
            ),
            net_margin=ratio(net_income, revenue),
            debt_to_equity=ratio(
                agg.total(StatementField.TOTAL_LIABILITIES), equity,
                RatioKind.MULTIPLE,
            ),
            return_on_equity=ratio(net_income, equity),
            return_on_assets=ratio(
                net_income, agg.total(StatementField.TOTAL_ASSETS),
            ),
            segment_breakdown=tuple(
                agg.breakdown_by(
                    StatementField.SEGMENT, StatementField.REVENUE,
                    unknown_label="Other",
                )
            ),
            revenue_by_year=by_year,
            revenue_by_period=by_period,
        )

    def summary(self) -> str:
        return format_statement_summary(self.calculate())

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _revenue_by_year(self) -> tuple[tuple[str, float], ...]:
        totals = self.aggregator.group_totals(
            [StatementField.FISCAL_YEAR], [StatementField.REVENUE],
        )
        ordered = sorted(totals.items(), key=lambda item: _year_sort_key(item[0]))
        return tuple((year, acc[0]) for year, acc in ordered)

    def _revenue_by_period(self) -> tuple[tuple[str, float], ...]:
        totals = self.aggregator.group_totals(
            [StatementField.FISCAL_YEAR, StatementField.FISCAL_PERIOD],
            [StatementField.REVENUE],
            required=[StatementField.FISCAL_PERIOD],
        )
        return tuple((period, acc[0]) for period, acc in sorted(totals.items()))


def _year_sort_key(label: str) -> tuple[bool, float, str]:
    # Numeric years first in numeric order, then any free-text labels
    number = parse_cell(label).number
    return (number is None, number or 0.0, label)


def _latest_growth(series: tuple[tuple[str, float], ...]) -> float | None:
    if len(series) < 2:
        return None
    return growth(series[-1][1], series[-2][1])

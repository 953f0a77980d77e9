# =============================================================================
# KPI Summary Formatter — KPI Set → Markdown Text Block
# =============================================================================
#
# The summary is the contract between the KPI engines and everything
# downstream: it is fed verbatim into LLM prompts, stored with each report,
# and shown as the raw-text panel in the UI. It must therefore be
# deterministic: the same KPI set always renders to the same bytes.
#
# NUMBER FORMATS:
#   currency   $1,234,567.89        (statement summary: $12.35M)
#   count      1,235
#   rate       12.34%
#   growth     +50.00% / -3.10%     (explicit sign)
#   multiple   1.50                 (debt-to-equity)
#   unavailable N/A
# =============================================================================

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from app.kpi.aggregator import BreakdownEntry
from app.kpi.periods import ComparisonType

if TYPE_CHECKING:
    from app.kpi.engine import FlexibleKPISet
    from app.kpi.statements import StatementKPISet

NOT_AVAILABLE = "N/A"

# Display windows for the flexible summary
TREND_WINDOW = 12
BREAKDOWN_TOP_N = 5


# ---------------------------------------------------------------------------
# Number Formatting
# ---------------------------------------------------------------------------


def format_currency(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    if value < 0:
        return f"-${-value:,.2f}"
    return f"${value:,.2f}"


def format_millions(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"${value / 1_000_000:.2f}M"


def format_count(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:,.0f}"


def format_percent(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.2f}%"


def format_growth(value: float | None) -> str:
    """Percentage with an explicit sign: '+50.00%', '-3.10%'."""
    if value is None:
        return NOT_AVAILABLE
    return f"{value:+.2f}%"


def format_multiple(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:,.2f}"


# ---------------------------------------------------------------------------
# Flexible Summary
# ---------------------------------------------------------------------------


def format_kpi_summary(
    kpis: FlexibleKPISet,
    trend_window: int = TREND_WINDOW,
    top_n: int = BREAKDOWN_TOP_N,
) -> str:
    """
    Render a flexible KPI set as the "Financial Data Analysis Summary".

    Section order is fixed. Breakdown and trend sections are omitted when
    empty; the growth section is present whenever a comparison other than
    "none" was requested, with N/A lines when it could not be computed.
    """
    lines = ["# Financial Data Analysis Summary", ""]

    # --- Dataset Overview ---
    lines.append("## Dataset Overview")
    lines.append(f"- Total Records: {format_count(kpis.record_count)}")
    lines.append(f"- Data Columns: {', '.join(kpis.data_columns)}")
    if kpis.date_range.start and kpis.date_range.end:
        lines.append(
            f"- Date Range: {kpis.date_range.start} to {kpis.date_range.end}"
        )
    comparison = kpis.comparison
    if comparison.comparison_type is not ComparisonType.NONE:
        lines.append(
            f"- Analysis Type: {comparison.comparison_type.value.upper()}"
        )
    if kpis.focus_metrics:
        lines.append(f"- Focus Metrics: {', '.join(kpis.focus_metrics)}")
    lines.append("")

    # --- Sales & Revenue ---
    lines.append("## Sales & Revenue Metrics")
    lines.append(f"- Total Sales: {format_currency(kpis.total_sales)}")
    lines.append(f"- Total Units Sold: {format_count(kpis.total_units)}")
    lines.append(f"- Average Price: {format_currency(kpis.average_price)}")
    lines.append(f"- Total Discounts: {format_currency(kpis.total_discounts)}")
    lines.append(f"- Discount Rate: {format_percent(kpis.discount_rate)}")
    lines.append("")

    # --- Period Comparison ---
    if comparison.comparison_type is not ComparisonType.NONE:
        growth = comparison.growth
        lines.append(f"## {comparison.label} Growth")
        lines.append(
            f"- Sales Growth: {format_growth(growth.sales if growth else None)}"
        )
        lines.append(
            f"- Profit Growth: {format_growth(growth.profit if growth else None)}"
        )
        lines.append(
            f"- Units Growth: {format_growth(growth.units if growth else None)}"
        )
        if comparison.current_period and comparison.previous_period:
            lines.append(
                f"- Compared Periods: {comparison.previous_period} to "
                f"{comparison.current_period}"
            )
        lines.append("")

    # --- Profitability ---
    lines.append("## Profitability Metrics")
    lines.append(f"- Total Profit: {format_currency(kpis.total_profit)}")
    lines.append(f"- Profit Margin: {format_percent(kpis.profit_margin)}")
    lines.append(f"- Total COGS: {format_currency(kpis.total_cogs)}")
    lines.append("")

    # --- Trends ---
    if kpis.sales_by_period:
        lines.append("## Sales Trends Over Time")
        for entry in kpis.sales_by_period[-trend_window:]:
            line = f"- {entry.period}: {format_currency(entry.sales)}"
            if entry.units:
                line += f" ({format_count(entry.units)} units)"
            lines.append(line)
        lines.append("")

    # --- Breakdowns ---
    _append_breakdown(lines, "Segment", kpis.sales_by_segment, top_n)
    _append_breakdown(lines, "Product", kpis.sales_by_product, top_n)
    _append_breakdown(lines, "Country", kpis.sales_by_country, top_n)
    _append_breakdown(lines, "Discount Band", kpis.sales_by_discount_band)
    for column, entries in kpis.custom_breakdowns:
        _append_breakdown(lines, column, entries, top_n)

    return "\n".join(lines)


def _append_breakdown(
    lines: list[str],
    title: str,
    entries: Sequence[BreakdownEntry],
    limit: int | None = None,
) -> None:
    if not entries:
        return
    lines.append(f"## Sales by {title}")
    shown = entries if limit is None else entries[:limit]
    for entry in shown:
        lines.append(
            f"- {entry.key}: {format_currency(entry.value)} "
            f"({format_percent(entry.percentage)})"
        )
    lines.append("")


# ---------------------------------------------------------------------------
# Statement Summary
# ---------------------------------------------------------------------------


def format_statement_summary(kpis: StatementKPISet) -> str:
    """Render a statement KPI set as the "Financial KPI Summary"."""
    lines = ["# Financial KPI Summary", ""]

    lines.append("## Revenue Metrics")
    lines.append(f"- Total Revenue: {format_millions(kpis.total_revenue)}")
    lines.append(f"- Year-over-Year Growth: {format_growth(kpis.yoy_revenue_growth)}")
    lines.append(
        f"- Quarter-over-Quarter Growth: {format_growth(kpis.qoq_revenue_growth)}"
    )
    lines.append("")

    lines.append("## Profitability Metrics")
    lines.append(f"- Gross Margin: {format_growth(kpis.gross_margin)}")
    lines.append(f"- Operating Margin: {format_growth(kpis.operating_margin)}")
    lines.append(f"- Net Margin: {format_growth(kpis.net_margin)}")
    lines.append("")

    lines.append("## Balance Sheet Metrics")
    lines.append(
        f"- Debt-to-Equity Ratio: {format_multiple(kpis.debt_to_equity)}"
    )
    lines.append(
        f"- Return on Equity (ROE): {format_growth(kpis.return_on_equity)}"
    )
    lines.append(
        f"- Return on Assets (ROA): {format_growth(kpis.return_on_assets)}"
    )
    lines.append("")

    lines.append("## Segment Performance")
    for entry in kpis.segment_breakdown:
        lines.append(
            f"- {entry.key}: {format_millions(entry.value)} "
            f"({entry.percentage:,.2f}% of total)"
        )
    lines.append("")

    lines.append("## Revenue Trends by Year")
    for year, revenue in kpis.revenue_by_year:
        lines.append(f"- {year}: {format_millions(revenue)}")

    return "\n".join(lines)

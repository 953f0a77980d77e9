# =============================================================================
# Section Writers — KPI Set → MD&A Report Sections
# =============================================================================
#
# Two writers behind one interface (SectionWriter.write):
#
#   TemplateWriter — deterministic prose for six sections, filled with
#                    values read straight from the FlexibleKPISet. No LLM,
#                    no network, same input → same text.
#   LLMWriter      — seven sections, one completion each, all requested
#                    concurrently. Every prompt carries the KPI summary,
#                    the retrieved historical context and the focus metrics.
#
# DESIGN DECISION: The template writer reads typed KPI fields, never the
# summary text. Unavailable metrics (None) read as "N/A" in the prose and
# select neutral wording instead of being treated as zero.
#
# DESIGN DECISION: LLM sections are independent of one another, so they are
# generated concurrently in an asyncio.TaskGroup. The first failed section
# cancels the others and fails the report; partial reports are never stored.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from app.kpi import FlexibleKPISet
from app.kpi.aggregator import BreakdownEntry
from app.kpi.formatter import (
    format_count,
    format_currency,
    format_growth,
    format_percent,
)
from app.kpi.periods import ComparisonState
from app.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)

TEMPLATE_WRITER = "template"
LLM_WRITER = "llm"


@dataclass
class ReportSection:
    title: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "content": self.content}


class SectionWriter(Protocol):
    name: str

    async def write(
        self,
        kpis: FlexibleKPISet,
        kpi_summary: str,
        context: str,
    ) -> list[ReportSection]:
        ...


# ---------------------------------------------------------------------------
# Template Writer
# ---------------------------------------------------------------------------


class TemplateWriter:
    """Deterministic MD&A prose. Ignores the retrieved context."""

    name = TEMPLATE_WRITER

    async def write(
        self,
        kpis: FlexibleKPISet,
        kpi_summary: str,
        context: str,
    ) -> list[ReportSection]:
        return self.render(kpis)

    def render(self, kpis: FlexibleKPISet) -> list[ReportSection]:
        return [
            ReportSection("Executive Summary", _executive_summary(kpis)),
            ReportSection("Sales Performance Analysis", _sales_analysis(kpis)),
            ReportSection("Product & Segment Analysis", _product_analysis(kpis)),
            ReportSection("Profitability Analysis", _profitability_analysis(kpis)),
            ReportSection("Discount & Pricing Strategy", _discount_analysis(kpis)),
            ReportSection("Key Insights & Recommendations", _insights(kpis)),
        ]


def _pick(value: float | None, threshold: float, above: str, below: str, unknown: str) -> str:
    """Wording keyed on a metric; `unknown` when the metric is unavailable."""
    if value is None:
        return unknown
    return above if value > threshold else below


def _leader(entries: tuple[BreakdownEntry, ...]) -> str | None:
    if not entries:
        return None
    top = entries[0]
    return f"{top.key} ({format_currency(top.value)}, {top.percentage:.2f}% of sales)"


def _executive_summary(kpis: FlexibleKPISet) -> str:
    margin = kpis.profit_margin
    profit = kpis.total_profit
    paragraphs = [
        "This Management Discussion and Analysis (MD&A) presents a "
        "comprehensive review of the company's financial performance based on "
        f"{format_count(kpis.record_count)} analyzed records.",

        f"**Overall Performance:** The company generated total sales of "
        f"{format_currency(kpis.total_sales)} with a profit of "
        f"{format_currency(profit)}, resulting in a profit margin of "
        f"{format_percent(margin)}. Total units sold reached "
        f"{format_count(kpis.total_units)}.",

        f"**Key Highlights:** The cost of goods sold (COGS) amounted to "
        f"{format_currency(kpis.total_cogs)}, the direct cost of revenue "
        f"generation. The relationship between revenue, costs and "
        f"profitability suggests "
        f"{_pick(margin, 20, 'healthy', 'moderate', 'undetermined')} "
        f"operational efficiency.",

        f"**Strategic Position:** The financial metrics indicate a "
        f"{_pick(profit, 0, 'profitable', 'challenging', 'not yet measurable')} "
        f"operating environment, with opportunities for optimization in "
        f"pricing, cost management and market positioning.",
    ]

    comparison = kpis.comparison
    if comparison.state is ComparisonState.COMPUTED and comparison.growth:
        paragraphs.append(
            f"**{comparison.label} Change:** Between "
            f"{comparison.previous_period} and {comparison.current_period}, "
            f"sales changed by {format_growth(comparison.growth.sales)} and "
            f"profit by {format_growth(comparison.growth.profit)}."
        )
    return "\n\n".join(paragraphs)


def _sales_analysis(kpis: FlexibleKPISet) -> str:
    sales = kpis.total_sales
    units = kpis.total_units
    paragraphs = [
        f"**Revenue Overview:** Total sales reached {format_currency(sales)}, "
        f"driven by {format_count(units)} units sold. The average selling "
        f"price stands at {format_currency(kpis.average_price)}, reflecting "
        f"the company's pricing strategy and product mix.",

        f"**Sales Composition:** The revenue base demonstrates "
        f"{_pick(sales, 1_000_000, 'substantial', 'significant', 'an unmeasured')} "
        f"market presence, and sales volume indicates "
        f"{_pick(units, 10_000, 'high-volume', 'focused', 'unmeasured')} "
        f"distribution capabilities.",
    ]

    if kpis.sales_by_period:
        first, last = kpis.sales_by_period[0], kpis.sales_by_period[-1]
        paragraphs.append(
            f"**Growth Trajectory:** Sales moved from "
            f"{format_currency(first.sales)} in {first.period} to "
            f"{format_currency(last.sales)} in {last.period} across "
            f"{len(kpis.sales_by_period)} reported periods."
        )
    else:
        paragraphs.append(
            "**Growth Trajectory:** The data carries no period columns, so "
            "sales trends over time could not be assessed."
        )
    return "\n\n".join(paragraphs)


def _product_analysis(kpis: FlexibleKPISet) -> str:
    paragraphs = []
    for label, entries in (
        ("Product", kpis.sales_by_product),
        ("Segment", kpis.sales_by_segment),
        ("Geographic", kpis.sales_by_country),
    ):
        leader = _leader(entries)
        if leader is None:
            paragraphs.append(
                f"**{label} Performance:** No {label.lower()} breakdown is "
                f"available in the analyzed data."
            )
        else:
            paragraphs.append(
                f"**{label} Performance:** {len(entries)} "
                f"{label.lower()} groups contribute to sales; the largest is "
                f"{leader}."
            )
    for column, entries in kpis.custom_breakdowns:
        paragraphs.append(
            f"**By {column}:** The largest {column} group is {_leader(entries)}."
        )
    paragraphs.append(
        "**Strategic Implications:** Resource allocation should prioritize "
        "the groups with the strongest contribution and return potential, "
        "with selective investment in emerging ones."
    )
    return "\n\n".join(paragraphs)


def _profitability_analysis(kpis: FlexibleKPISet) -> str:
    margin = kpis.profit_margin
    cogs_share = (
        100.0 * kpis.total_cogs / kpis.total_sales
        if kpis.total_cogs is not None and kpis.total_sales
        else None
    )
    return "\n\n".join([
        f"**Margin Analysis:** The company achieved a profit margin of "
        f"{format_percent(margin)}, with total profit of "
        f"{format_currency(kpis.total_profit)} on sales of "
        f"{format_currency(kpis.total_sales)}.",

        f"**Cost Structure:** Cost of goods sold represents "
        f"{format_percent(cogs_share)} of total sales, amounting to "
        f"{format_currency(kpis.total_cogs)}. This cost ratio indicates "
        f"{_pick(cogs_share, 70, 'moderate', 'efficient', 'unmeasured')} "
        f"operational leverage.",

        f"**Financial Health:** With a profit margin of "
        f"{format_percent(margin)}, the company demonstrates "
        f"{_pick(margin, 20, 'robust', 'stable', 'undetermined')} financial "
        f"health, requiring "
        f"{_pick(kpis.total_profit, 0, 'continued optimization', 'strategic intervention', 'further data')}.",
    ])


def _discount_analysis(kpis: FlexibleKPISet) -> str:
    paragraphs = [
        f"**Pricing Strategy Overview:** Total discounts granted were "
        f"{format_currency(kpis.total_discounts)}, a discount rate of "
        f"{format_percent(kpis.discount_rate)} on gross sales, at an average "
        f"selling price of {format_currency(kpis.average_price)}.",
    ]
    if kpis.sales_by_discount_band:
        bands = ", ".join(
            f"{entry.key} {entry.percentage:.2f}%"
            for entry in kpis.sales_by_discount_band
        )
        paragraphs.append(
            f"**Discount Impact:** Sales by discount band: {bands}."
        )
    else:
        paragraphs.append(
            "**Discount Impact:** No discount band breakdown is available."
        )
    paragraphs.append(
        "**Recommendations:** Discount policy should balance volume "
        "objectives with margin preservation, targeting programs at "
        "high-value segments while keeping premium pricing on "
        "differentiated products."
    )
    return "\n\n".join(paragraphs)


def _insights(kpis: FlexibleKPISet) -> str:
    margin = kpis.profit_margin
    lines = [
        f"**Key Financial Insights:** The analysis covers "
        f"{format_currency(kpis.total_sales)} in sales at a "
        f"{format_percent(margin)} profit margin.",
        "",
        f"**Risk Considerations:** The profit margin provides "
        f"{_pick(margin, 20, 'adequate', 'limited', 'an unknown')} cushion "
        f"for market volatility.",
    ]
    if kpis.focus_metrics:
        lines += [
            "",
            f"**Focus Metrics:** {', '.join(kpis.focus_metrics)} warrant "
            f"continued monitoring in subsequent periods.",
        ]
    lines += [
        "",
        "**Management Recommendations:**",
        "1. Focus on high-margin product segments and customer channels",
        "2. Implement cost optimization initiatives to improve COGS efficiency",
        "3. Refine pricing and discount strategies for optimal profitability",
        "4. Invest in market expansion with favorable return profiles",
        "5. Enhance operational capabilities to support sustainable growth",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# LLM Writer
# ---------------------------------------------------------------------------
# (title, role line, instructions, max_tokens). Each prompt is:
#   role line, KPI summary, historical context, [focus metrics], instructions
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a financial analyst writing sections of a Management "
    "Discussion & Analysis (MD&A) report. Use ONLY the figures in the "
    "provided KPI summary and context. Be specific with numbers and "
    "percentages. Do not use placeholder text. Where a metric is N/A, say "
    "the data is unavailable rather than estimating it."
)

LLM_SECTIONS: tuple[tuple[str, str, str, int], ...] = (
    (
        "Executive Summary",
        "Write the Executive Summary of the MD&A report.",
        "Write a concise executive summary (2-3 paragraphs) that:\n"
        "1. Highlights the most important financial metrics and overall performance\n"
        "2. Mentions key period-over-period changes\n"
        "3. Provides a high-level view of the company's financial health",
        1000,
    ),
    (
        "Financial Performance Overview",
        "Write the Financial Performance Overview section of the MD&A report.",
        "Write a detailed performance overview (3-4 paragraphs) that:\n"
        "1. Discusses total revenue and its trends\n"
        "2. Analyzes growth rates\n"
        "3. Examines profitability metrics\n"
        "4. Compares current performance to historical data\n"
        "5. Explains what drove the performance",
        1500,
    ),
    (
        "Revenue Analysis",
        "Write the Revenue Analysis section of the MD&A report.",
        "Write a comprehensive revenue analysis (3-4 paragraphs) that:\n"
        "1. Breaks down revenue by period\n"
        "2. Identifies growth trends and patterns\n"
        "3. Analyzes what drove revenue growth or decline\n"
        "4. Discusses revenue quality and sustainability",
        1500,
    ),
    (
        "Profitability Analysis",
        "Write the Profitability Analysis section of the MD&A report.",
        "Write a detailed profitability analysis (3-4 paragraphs) that:\n"
        "1. Examines margins and cost structure\n"
        "2. Identifies trends in profitability metrics\n"
        "3. Analyzes what impacted margins\n"
        "4. Discusses the sustainability of profitability",
        1500,
    ),
    (
        "Segment Performance",
        "Write the Segment Performance section of the MD&A report.",
        "Write a segment performance analysis (2-3 paragraphs) that:\n"
        "1. Breaks down sales by segment, product and country\n"
        "2. Identifies which groups are driving growth\n"
        "3. Discusses their contribution and strategic importance\n"
        "If no segment data is available, say so and focus on overall performance.",
        1200,
    ),
    (
        "Key Trends & Drivers",
        "Write the Key Trends & Drivers section of the MD&A report.",
        "Write an analysis of key trends and drivers (3-4 paragraphs) that:\n"
        "1. Identifies major trends in the financial data\n"
        "2. Discusses key revenue and profitability drivers\n"
        "3. Provides forward-looking insights based on the trends",
        1500,
    ),
    (
        "Risk Factors & Outlook",
        "Write the Risk Factors & Outlook section of the MD&A report.",
        "Write a risk analysis and outlook (3-4 paragraphs) that:\n"
        "1. Identifies financial risks evident in the data (e.g. thin margins, heavy discounting)\n"
        "2. Discusses vulnerability to market conditions\n"
        "3. Provides a balanced forward-looking outlook\n"
        "4. Names areas requiring management attention",
        1500,
    ),
)


def build_section_prompt(
    role_line: str,
    instructions: str,
    kpi_summary: str,
    context: str,
    focus_metrics: tuple[str, ...] = (),
) -> str:
    parts = [role_line, kpi_summary, context]
    if focus_metrics:
        parts.append(
            "Pay particular attention to these metrics: "
            + ", ".join(focus_metrics)
        )
    parts.append(instructions)
    return "\n\n".join(parts)


class LLMWriter:
    """Generates each MD&A section with one LLM completion."""

    name = LLM_WRITER

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def write(
        self,
        kpis: FlexibleKPISet,
        kpi_summary: str,
        context: str,
    ) -> list[ReportSection]:
        async def _section(title: str, role_line: str, instructions: str, max_tokens: int) -> ReportSection:
            prompt = build_section_prompt(
                role_line, instructions, kpi_summary, context, kpis.focus_metrics,
            )
            response = await self.llm.complete(
                messages=[{"role": "user", "content": prompt}],
                system=SYSTEM_PROMPT,
                max_tokens=max_tokens,
            )
            logger.debug(
                "Section '%s' generated by %s (%d output tokens)",
                title, response.model, response.output_tokens,
            )
            return ReportSection(title, response.content.strip())

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(_section(*section))
                    for section in LLM_SECTIONS
                ]
        except ExceptionGroup as failed:
            # callers map provider errors by type
            raise failed.exceptions[0] from None

        sections = [task.result() for task in tasks]
        logger.info("Generated %d report sections with the LLM", len(sections))
        return sections


def get_writer(name: str, llm: LLMProvider | None = None) -> SectionWriter:
    """
    Return the writer called `name`.

    The LLM writer needs a provider; `llm` overrides the configured one.
    """
    if name == LLM_WRITER:
        return LLMWriter(llm or get_llm_provider())
    if name == TEMPLATE_WRITER:
        return TemplateWriter()
    raise ValueError(f"Unknown report writer: {name!r}")

# =============================================================================
# LangGraph Report Graph — MD&A Generation Pipeline
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ kpis ──▶ context ──▶ write ──▶ assemble ──▶ END
#
#   kpis     — FlexibleKPIEngine over the selected datasets → KPI set + summary
#   context  — optional RAG: similar historical record chunks for the prompts
#   write    — template or LLM section writer
#   assemble — Markdown document: title, date, sections separated by rules
#
# DESIGN DECISION: Linear graph, plain TypedDict state, compiled once at
# module level. Every report runs every node; "no context" is a value
# (NO_CONTEXT_MESSAGE), not a branch.
#
# DESIGN DECISION: Collaborators travel in the state (llm, vector_store).
# Tests and alternative providers inject them per run; when absent the
# configured singletons are used. No checkpointer is configured, so the
# state never needs to be serialisable.
# =============================================================================

from __future__ import annotations

import logging
from datetime import UTC, datetime

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from app.agents.writers import ReportSection, get_writer
from app.config import settings
from app.kpi import AnalysisConfig, FlexibleKPIEngine, FlexibleKPISet, RawDataset
from app.kpi.formatter import format_kpi_summary
from app.services.context import NO_CONTEXT_MESSAGE, build_context_prompt
from app.services.llm import LLMProvider
from app.services.vectorstore import VectorStore, get_vector_store

logger = logging.getLogger(__name__)


class ReportState(TypedDict, total=False):
    """State flowing through the report graph (total=False: partial updates)."""

    # --- Input ---
    title: str
    datasets: list[RawDataset]
    analysis_config: AnalysisConfig
    writer: str
    use_context: bool
    owner_id: int | None

    # --- Injected collaborators ---
    llm: LLMProvider | None
    vector_store: VectorStore | None

    # --- Intermediate ---
    kpis: FlexibleKPISet
    kpi_summary: str
    context: str

    # --- Output ---
    sections: list[ReportSection]
    content: str
    generated_at: datetime


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def kpis_node(state: ReportState) -> dict:
    engine = FlexibleKPIEngine(
        state["datasets"], state.get("analysis_config") or AnalysisConfig(),
    )
    kpis = engine.calculate()
    summary = format_kpi_summary(
        kpis,
        trend_window=settings.report_trend_window,
        top_n=settings.report_breakdown_top_n,
    )
    return {"kpis": kpis, "kpi_summary": summary}


async def context_node(state: ReportState) -> dict:
    if not state.get("use_context"):
        return {"context": NO_CONTEXT_MESSAGE}

    store = state.get("vector_store") or get_vector_store()
    context = await build_context_prompt(
        store,
        context_query(state["title"]),
        owner_id=state.get("owner_id"),
    )
    return {"context": context}


async def write_node(state: ReportState) -> dict:
    writer = get_writer(
        state.get("writer") or settings.report_default_writer,
        llm=state.get("llm"),
    )
    sections = await writer.write(
        state["kpis"], state["kpi_summary"], state["context"],
    )
    logger.info("Writer '%s' produced %d sections", writer.name, len(sections))
    return {"sections": sections}


async def assemble_node(state: ReportState) -> dict:
    generated_at = datetime.now(UTC)
    return {
        "content": assemble_report(state["title"], state["sections"], generated_at),
        "generated_at": generated_at,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def context_query(title: str) -> str:
    return (
        f"Financial analysis for {title} with focus on trends, "
        f"revenue drivers, and risks"
    )


def assemble_report(
    title: str,
    sections: list[ReportSection],
    generated_at: datetime,
) -> str:
    """
    Markdown document:

        # <title>

        *Generated on October 18, 2026*

        ---

        ## <section>

        <content>

        ---
    """
    parts = [
        f"# {title}",
        f"*Generated on {generated_at.strftime('%B')} {generated_at.day}, {generated_at.year}*",
        "---",
    ]
    for section in sections:
        parts.append(f"## {section.title}")
        parts.append(section.content)
        parts.append("---")
    return "\n\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(ReportState)
_builder.add_node("kpis", kpis_node)
_builder.add_node("context", context_node)
_builder.add_node("write", write_node)
_builder.add_node("assemble", assemble_node)

_builder.add_edge(START, "kpis")
_builder.add_edge("kpis", "context")
_builder.add_edge("context", "write")
_builder.add_edge("write", "assemble")
_builder.add_edge("assemble", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def generate_report(
    title: str,
    datasets: list[RawDataset],
    analysis_config: AnalysisConfig | None = None,
    writer: str | None = None,
    use_context: bool = False,
    owner_id: int | None = None,
    llm: LLMProvider | None = None,
    vector_store: VectorStore | None = None,
) -> ReportState:
    """Run the report graph and return the final state."""
    initial_state: ReportState = {
        "title": title,
        "datasets": datasets,
        "analysis_config": analysis_config or AnalysisConfig(),
        "writer": writer or settings.report_default_writer,
        "use_context": use_context,
        "owner_id": owner_id,
        "llm": llm,
        "vector_store": vector_store,
    }
    logger.info(
        "Generating report '%s' from %d datasets (writer=%s, context=%s)",
        title, len(datasets), initial_state["writer"], use_context,
    )
    return await graph.ainvoke(initial_state)

# =============================================================================
# Reports API — MD&A Generation and Retrieval
# =============================================================================
#
# ENDPOINTS:
#   POST /reports       — Generate an MD&A report from datasets, store it
#   GET  /reports       — List the caller's reports (newest first)
#   GET  /reports/{id}  — Full stored report
#
# Generation runs the report graph (app/agents/report_graph.py) inline:
# KPIs → optional historical context → section writer → assembly.
#
# ERROR MAPPING (same scheme as the rest of the API):
#   404 — none of the dataset ids belong to the caller
#   503 — LLM or embedding provider not configured
#   502 — provider call failed
#
# DESIGN DECISION: Reports freeze their inputs. The stored row keeps the
# KPI set, the summary text and the analysis config next to the narrative,
# so re-reading a report never recomputes anything.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.report_graph import generate_report
from app.api.deps import check_scope, get_current_api_key
from app.config import settings
from app.db.engine import get_async_session
from app.db.models import ApiKey, GeneratedReport
from app.db.queries import load_datasets, owned_by, to_raw_dataset
from app.models.requests import GenerateReportRequest
from app.models.responses import (
    GenerateReportResponse,
    ReportListItem,
    ReportListResponse,
    ReportResponse,
)
from app.services.auth import owner_id_of
from app.services.embedder import EmbeddingConfigurationError
from app.services.llm import LLMConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])


# ---------------------------------------------------------------------------
# POST /reports — Generate a report
# ---------------------------------------------------------------------------


@router.post(
    "/reports",
    response_model=GenerateReportResponse,
    status_code=201,
    summary="Generate an MD&A report",
    description=(
        "Computes KPIs over the selected datasets and writes a Management "
        "Discussion & Analysis report, either from deterministic templates "
        "or section by section with the configured LLM."
    ),
)
async def create_report(
    request: GenerateReportRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> GenerateReportResponse:
    check_scope(api_key, "reports")
    owner_id = owner_id_of(api_key)

    datasets = await load_datasets(session, owner_id, request.dataset_ids)
    if not datasets:
        raise HTTPException(
            status_code=404,
            detail="No financial records found for the given dataset ids.",
        )

    writer = request.writer or settings.report_default_writer

    try:
        result = await generate_report(
            title=request.title,
            datasets=[to_raw_dataset(d) for d in datasets],
            analysis_config=request.analysis_config.to_config(),
            writer=writer,
            use_context=request.use_context,
            owner_id=owner_id,
        )
    except (LLMConfigurationError, EmbeddingConfigurationError) as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Report generation failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Report generation failed: {e}",
        ) from e

    report = GeneratedReport(
        owner_id=owner_id,
        title=request.title,
        content=result["content"],
        sections=[s.to_dict() for s in result["sections"]],
        kpi_summary=result["kpi_summary"],
        kpis=result["kpis"].to_dict(),
        analysis_config=request.analysis_config.model_dump(mode="json"),
        writer=writer,
        dataset_ids=[d.id for d in datasets],
    )
    session.add(report)
    await session.commit()
    await session.refresh(report)

    logger.info(
        "Stored report id=%d '%s' (%d sections, writer=%s)",
        report.id, report.title, len(report.sections), writer,
    )
    return GenerateReportResponse(report_id=report.id)


# ---------------------------------------------------------------------------
# GET /reports — List reports
# ---------------------------------------------------------------------------


@router.get(
    "/reports",
    response_model=ReportListResponse,
    summary="List generated reports",
)
async def list_reports(
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ReportListResponse:
    check_scope(api_key, "reports")

    stmt = (
        select(GeneratedReport)
        .where(owned_by(GeneratedReport, owner_id_of(api_key)))
        .order_by(GeneratedReport.created_at.desc())
    )
    reports = list((await session.execute(stmt)).scalars().all())
    return ReportListResponse(
        reports=[ReportListItem.model_validate(r) for r in reports],
        total=len(reports),
    )


# ---------------------------------------------------------------------------
# GET /reports/{report_id} — Full report
# ---------------------------------------------------------------------------


@router.get(
    "/reports/{report_id}",
    response_model=ReportResponse,
    summary="Get a generated report",
)
async def get_report(
    report_id: int,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ReportResponse:
    check_scope(api_key, "reports")

    stmt = (
        select(GeneratedReport)
        .where(GeneratedReport.id == report_id)
        .where(owned_by(GeneratedReport, owner_id_of(api_key)))
    )
    report = (await session.execute(stmt)).scalar_one_or_none()
    if report is None:
        raise HTTPException(
            status_code=404, detail=f"Report {report_id} not found.",
        )
    return ReportResponse.model_validate(report)

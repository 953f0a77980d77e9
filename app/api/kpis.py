# =============================================================================
# KPI API — Flexible and Financial-Statement KPI Computation
# =============================================================================
#
# ENDPOINTS:
#   POST /kpis             — KPIs over uploaded CSV datasets (schema-less)
#   POST /statements       — Store financial statement records
#   POST /kpis/statements  — KPIs over statement records (fixed schema)
#
# Both KPI endpoints return the structured KPI set (null = unavailable)
# plus the formatted summary text that the report writers consume.
#
# DESIGN DECISION: KPI computation runs inline in the request. The engine
# is a pure single pass over rows already in memory; there is nothing to
# wait on that would justify a background task.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import check_scope, get_current_api_key
from app.config import settings
from app.db.engine import get_async_session
from app.db.models import ApiKey, StatementRecord
from app.db.queries import load_datasets, load_statement_records, to_raw_dataset
from app.kpi import FlexibleKPIEngine, StatementKPIEngine
from app.kpi.formatter import format_kpi_summary, format_statement_summary
from app.models.requests import (
    CreateStatementsRequest,
    KPIRequest,
    StatementKPIRequest,
)
from app.models.responses import (
    CreateStatementsResponse,
    KPIResponse,
    StatementKPIResponse,
    StatementRecordResponse,
)
from app.services.auth import owner_id_of

logger = logging.getLogger(__name__)

router = APIRouter(tags=["KPIs"])


# ---------------------------------------------------------------------------
# POST /kpis — Flexible KPIs over uploaded datasets
# ---------------------------------------------------------------------------


@router.post(
    "/kpis",
    response_model=KPIResponse,
    summary="Calculate KPIs over uploaded datasets",
    description=(
        "Resolves the datasets' columns to financial roles (sales, units, "
        "profit, segment, year, ...) and computes totals, margins, "
        "breakdowns, trends and the configured period comparison. Metrics "
        "whose columns cannot be found are null."
    ),
)
async def calculate_kpis(
    request: KPIRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> KPIResponse:
    check_scope(api_key, "kpis")

    datasets = await load_datasets(session, owner_id_of(api_key), request.dataset_ids)
    if not datasets:
        raise HTTPException(
            status_code=404,
            detail="No datasets found for the given ids.",
        )

    engine = FlexibleKPIEngine(
        [to_raw_dataset(d) for d in datasets],
        request.analysis_config.to_config(),
    )
    kpis = engine.calculate()
    summary = format_kpi_summary(
        kpis,
        trend_window=settings.report_trend_window,
        top_n=settings.report_breakdown_top_n,
    )

    return KPIResponse(
        kpis=kpis.to_dict(),
        summary=summary,
        dataset_ids=[d.id for d in datasets],
    )


# ---------------------------------------------------------------------------
# POST /statements — Store statement records
# ---------------------------------------------------------------------------


@router.post(
    "/statements",
    response_model=CreateStatementsResponse,
    status_code=201,
    summary="Store financial statement records",
)
async def create_statements(
    request: CreateStatementsRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> CreateStatementsResponse:
    check_scope(api_key, "statements")

    owner_id = owner_id_of(api_key)
    records = [
        StatementRecord(owner_id=owner_id, **item.model_dump())
        for item in request.records
    ]
    session.add_all(records)
    await session.commit()
    for record in records:
        await session.refresh(record)

    logger.info("Stored %d statement records (owner=%s)", len(records), owner_id)
    return CreateStatementsResponse(
        records=[StatementRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )


# ---------------------------------------------------------------------------
# POST /kpis/statements — Statement KPIs
# ---------------------------------------------------------------------------


@router.post(
    "/kpis/statements",
    response_model=StatementKPIResponse,
    summary="Calculate KPIs over financial statement records",
)
async def calculate_statement_kpis(
    request: StatementKPIRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> StatementKPIResponse:
    check_scope(api_key, "kpis")

    records = await load_statement_records(
        session, owner_id_of(api_key), request.record_ids,
    )
    if not records:
        raise HTTPException(
            status_code=404,
            detail="No statement records found.",
        )

    kpis = StatementKPIEngine(r.to_record() for r in records).calculate()
    return StatementKPIResponse(
        kpis=kpis.to_dict(),
        summary=format_statement_summary(kpis),
        record_count=len(records),
    )

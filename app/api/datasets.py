# =============================================================================
# Datasets API — CSV Upload and Column Discovery
# =============================================================================
#
# ENDPOINTS:
#   POST /datasets          — Upload a CSV, store header + rows as one dataset
#   GET  /datasets          — List the caller's datasets (newest first)
#   GET  /datasets/columns  — Column vocabulary for the analysis-config form
#
# DESIGN DECISION: Parse synchronously, no Celery task. A CSV within the
# upload limits parses in well under a second, and the dashboard needs the
# column vocabulary back immediately to build the analysis-config form.
#
# DESIGN DECISION: The whole file becomes ONE dataset row (columns + rows
# JSONB). The KPI engine always consumes whole datasets, so storing them
# whole avoids reassembling thousands of single-row records per request.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import check_scope, get_current_api_key
from app.config import settings
from app.db.engine import get_async_session
from app.db.models import ApiKey, FinancialDataset
from app.db.queries import load_datasets, owned_by
from app.models.responses import (
    ColumnsResponse,
    DatasetListResponse,
    DatasetResponse,
    DatasetUploadResponse,
)
from app.services.auth import owner_id_of
from app.services.csv_ingest import CsvIngestError, parse_csv

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Datasets"])


# ---------------------------------------------------------------------------
# POST /datasets — Upload a CSV file
# ---------------------------------------------------------------------------


@router.post(
    "/datasets",
    response_model=DatasetUploadResponse,
    status_code=201,
    summary="Upload a CSV dataset",
    description=(
        "Upload tabular financial data as CSV. The header row becomes the "
        "dataset's column vocabulary; cells are stored as text and typed "
        "later by the KPI engine."
    ),
)
async def upload_dataset(
    file: UploadFile = File(..., description="CSV file with a header row"),
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> DatasetUploadResponse:
    check_scope(api_key, "datasets")

    # --- Validate file type ---
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=400,
            detail="Only CSV files are accepted. Please upload a .csv file.",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=(
                f"File is {len(content)} bytes; the limit is "
                f"{settings.max_upload_bytes} bytes."
            ),
        )

    # --- Parse ---
    try:
        parsed = parse_csv(content, max_rows=settings.max_upload_rows)
    except CsvIngestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    # --- Store ---
    dataset = FinancialDataset(
        owner_id=owner_id_of(api_key),
        file_name=file.filename,
        columns=parsed.columns,
        rows=parsed.rows,
        row_count=len(parsed.rows),
    )
    session.add(dataset)
    await session.commit()
    await session.refresh(dataset)

    logger.info(
        "Stored dataset id=%d from '%s': %d rows, %d columns",
        dataset.id, dataset.file_name, dataset.row_count, len(parsed.columns),
    )

    return DatasetUploadResponse(
        dataset=DatasetResponse.model_validate(dataset),
        message=f"Successfully uploaded {dataset.row_count} records",
    )


# ---------------------------------------------------------------------------
# GET /datasets — List datasets
# ---------------------------------------------------------------------------


@router.get(
    "/datasets",
    response_model=DatasetListResponse,
    summary="List uploaded datasets",
)
async def list_datasets(
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> DatasetListResponse:
    check_scope(api_key, "datasets")

    stmt = (
        select(FinancialDataset)
        .where(owned_by(FinancialDataset, owner_id_of(api_key)))
        .order_by(FinancialDataset.created_at.desc())
    )
    datasets = list((await session.execute(stmt)).scalars().all())
    return DatasetListResponse(
        datasets=[DatasetResponse.model_validate(d) for d in datasets],
        total=len(datasets),
    )


# ---------------------------------------------------------------------------
# GET /datasets/columns — Column vocabulary
# ---------------------------------------------------------------------------


@router.get(
    "/datasets/columns",
    response_model=ColumnsResponse,
    summary="Get the column vocabulary of selected datasets",
    description=(
        "Returns the columns of the first matching dataset (datasets in one "
        "analysis are assumed to share a schema). Empty when none match."
    ),
)
async def get_dataset_columns(
    ids: list[int] = Query(..., min_length=1, description="Dataset ids"),
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ColumnsResponse:
    check_scope(api_key, "datasets")

    datasets = await load_datasets(session, owner_id_of(api_key), ids)
    if not datasets:
        return ColumnsResponse(columns=[])
    return ColumnsResponse(columns=list(datasets[0].columns or []))

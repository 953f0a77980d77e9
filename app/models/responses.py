# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API: the contract with the dashboard.
#
# DESIGN DECISION: Separate response models from DB models. The database
# keeps embedding vectors and full JSONB row payloads; response models
# control exactly which of those are sent over the wire.
#
# KPI payloads are passed through as dicts (FlexibleKPISet.to_dict()),
# where null means "unavailable" and the formatted summary renders it N/A.
# =============================================================================

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    service: str


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


class DatasetResponse(BaseModel):
    """Uploaded dataset metadata (rows are never echoed back)."""

    id: int
    file_name: str
    columns: list[str]
    row_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DatasetUploadResponse(BaseModel):
    dataset: DatasetResponse
    message: str


class DatasetListResponse(BaseModel):
    datasets: list[DatasetResponse]
    total: int


class ColumnsResponse(BaseModel):
    columns: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


class KPIResponse(BaseModel):
    """Response for POST /kpis."""

    kpis: dict[str, Any]
    summary: str
    dataset_ids: list[int]


class StatementRecordResponse(BaseModel):
    id: int
    company_name: str | None = None
    fiscal_year: int | None = None
    fiscal_period: str | None = None
    revenue: float | None = None
    net_income: float | None = None
    segment: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateStatementsResponse(BaseModel):
    records: list[StatementRecordResponse]
    total: int


class StatementKPIResponse(BaseModel):
    """Response for POST /kpis/statements."""

    kpis: dict[str, Any]
    summary: str
    record_count: int


# ---------------------------------------------------------------------------
# Embeddings & Search
# ---------------------------------------------------------------------------


class EmbedRecordsResponse(BaseModel):
    """
    Response for POST /embeddings.

    task_id is set for background jobs; the counts are set for inline runs.
    """

    status: str
    task_id: str | None = None
    record_count: int
    embedding_count: int | None = None


class EmbedTaskStatusResponse(BaseModel):
    task_id: str
    status: str = Field(description="Celery state: PENDING, STARTED, SUCCESS, FAILURE, RETRY")
    result: dict[str, Any] | None = None
    error: str | None = None


class SearchHit(BaseModel):
    content: str
    similarity: float
    source_type: str
    source_id: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    results: list[SearchHit]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class ReportSection(BaseModel):
    title: str
    content: str


class ReportResponse(BaseModel):
    """A stored MD&A report in full."""

    id: int
    title: str
    content: str
    sections: list[ReportSection]
    kpi_summary: str
    kpis: dict[str, Any]
    analysis_config: dict[str, Any]
    writer: str
    dataset_ids: list[int]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportListItem(BaseModel):
    id: int
    title: str
    writer: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportListResponse(BaseModel):
    reports: list[ReportListItem]
    total: int


class GenerateReportResponse(BaseModel):
    report_id: int
    message: str = "Report generated successfully"


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class ApiKeyResponse(BaseModel):
    """API key details. Never includes the raw key or its hash."""

    id: int
    name: str
    key_prefix: str
    scopes: list[str] | None = None
    is_active: bool
    created_at: datetime
    expires_at: datetime | None = None
    last_used_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once by POST /admin/keys; raw_key is never shown again."""

    raw_key: str


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeyResponse]
    total: int


class ApiKeyUsageResponse(BaseModel):
    """Rows owned by one API key, per table."""

    key_id: int
    datasets: int
    statement_records: int
    embedding_chunks: int
    reports: int

# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI uses them for request body
# validation (automatic 422 errors), OpenAPI docs at /docs, and handler
# type hints.
#
# AnalysisConfigRequest is the wire form of app.kpi.AnalysisConfig; its
# to_config() is the only place the API layer builds engine configuration.
# =============================================================================

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.kpi import AnalysisConfig, ComparisonType


class AnalysisConfigRequest(BaseModel):
    """
    User-selected analysis options.

    - comparison_type: "yoy" is computed; "qoq", "mom" and "custom" are
      accepted and reported as not yet available; "none" skips comparison.
    - group_by: extra columns to break sales down by.
    - focus_metrics: columns the narrative should emphasise.
    - include_forecasting: stored with the report; has no effect.
    """

    comparison_type: ComparisonType = ComparisonType.NONE
    group_by: list[str] = Field(default_factory=list, max_length=20)
    focus_metrics: list[str] = Field(default_factory=list, max_length=20)
    include_forecasting: bool = False

    def to_config(self) -> AnalysisConfig:
        return AnalysisConfig(
            comparison_type=self.comparison_type,
            group_by=tuple(self.group_by),
            focus_metrics=tuple(self.focus_metrics),
            include_forecasting=self.include_forecasting,
        )


class KPIRequest(BaseModel):
    """
    Request body for POST /kpis — compute KPIs over uploaded datasets.

    Example:
        {"dataset_ids": [1, 2], "analysis_config": {"comparison_type": "yoy"}}
    """

    dataset_ids: list[int] = Field(..., min_length=1, max_length=1000)
    analysis_config: AnalysisConfigRequest = Field(
        default_factory=AnalysisConfigRequest,
    )


class StatementRecordRequest(BaseModel):
    """One financial statement record. Every figure is optional."""

    company_name: str | None = Field(default=None, max_length=300)
    fiscal_year: int | None = Field(default=None, ge=1900, le=2200)
    fiscal_period: str | None = Field(
        default=None, max_length=20, examples=["Q1"],
    )
    revenue: float | None = None
    cost_of_revenue: float | None = None
    gross_profit: float | None = None
    operating_expenses: float | None = None
    operating_income: float | None = None
    net_income: float | None = None
    total_assets: float | None = None
    total_liabilities: float | None = None
    shareholders_equity: float | None = None
    segment: str | None = Field(default=None, max_length=200)


class CreateStatementsRequest(BaseModel):
    """Request body for POST /statements."""

    records: list[StatementRecordRequest] = Field(
        ..., min_length=1, max_length=5000,
    )


class StatementKPIRequest(BaseModel):
    """
    Request body for POST /kpis/statements.

    Omit record_ids to compute over all of the caller's records.
    """

    record_ids: list[int] | None = Field(default=None, max_length=5000)


class EmbedRecordsRequest(BaseModel):
    """
    Request body for POST /embeddings.

    background=True dispatches a Celery task and returns its id;
    background=False embeds inline and returns the counts.
    """

    record_ids: list[int] = Field(..., min_length=1, max_length=1000)
    background: bool = True


class SearchRequest(BaseModel):
    """Request body for POST /search — similarity search over stored chunks."""

    query: str = Field(..., min_length=1, max_length=2000)
    limit: int = Field(default=5, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class GenerateReportRequest(BaseModel):
    """
    Request body for POST /reports — generate an MD&A report.

    Example:
        {
            "title": "FY2014 Sales MD&A",
            "dataset_ids": [3],
            "analysis_config": {"comparison_type": "yoy", "group_by": ["Region"]},
            "writer": "llm",
            "use_context": true
        }
    """

    title: str = Field(..., min_length=1, max_length=500)
    dataset_ids: list[int] = Field(..., min_length=1, max_length=1000)
    analysis_config: AnalysisConfigRequest = Field(
        default_factory=AnalysisConfigRequest,
    )
    writer: Literal["template", "llm"] | None = Field(
        default=None,
        description="Section writer. Defaults to settings.report_default_writer.",
    )
    use_context: bool = Field(
        default=False,
        description="Retrieve similar historical record text as extra LLM context.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "title": "FY2014 Sales MD&A",
                    "dataset_ids": [3],
                    "analysis_config": {"comparison_type": "yoy"},
                    "writer": "template",
                },
            ],
        },
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class CreateApiKeyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    scopes: list[str] = Field(
        default_factory=list,
        description="Empty grants every scope.",
        examples=[["datasets", "kpis", "reports"]],
    )
    expires_at: datetime | None = None


class UpdateApiKeyRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    scopes: list[str] | None = None
    is_active: bool | None = None
    expires_at: datetime | None = None

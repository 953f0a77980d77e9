# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌────────────────────┐   ┌────────────────────┐   ┌──────────────────────┐
# │ financial_datasets │   │ statement_records  │   │ embedding_chunks     │
# ├────────────────────┤   ├────────────────────┤   ├──────────────────────┤
# │ id (PK)            │   │ id (PK)            │──▶│ source_id            │
# │ owner_id           │   │ owner_id           │   │ source_type          │
# │ file_name          │   │ company_name       │   │ owner_id             │
# │ columns (jsonb)    │   │ fiscal_year/period │   │ content              │
# │ rows (jsonb)       │   │ revenue … equity   │   │ embedding (vector)   │
# │ row_count          │   │ segment            │   │ metadata_ (jsonb)    │
# └────────────────────┘   └────────────────────┘   └──────────────────────┘
#
# ┌────────────────────┐   ┌────────────────────┐
# │ generated_reports  │   │ api_keys           │
# ├────────────────────┤   ├────────────────────┤
# │ id (PK)            │   │ id (PK)            │
# │ owner_id           │   │ name, key_prefix   │
# │ title, content     │   │ key_hash           │
# │ sections (jsonb)   │   │ scopes (jsonb)     │
# │ kpi_summary        │   │ is_active          │
# │ kpis (jsonb)       │   │ expires_at         │
# │ analysis_config    │   └────────────────────┘
# └────────────────────┘
#
# OWNERSHIP: every data row carries `owner_id`, the id of the API key that
# created it (NULL when auth is disabled). All reads filter on it, so one
# caller never sees another caller's datasets, records, chunks or reports.
#
# DESIGN DECISION: An uploaded CSV is stored as ONE dataset row with the
# column vocabulary and all data rows in JSONB. Uploaded data has no
# schema, so there is nothing to normalise into columns; the KPI engine
# reads the rows back verbatim.
#
# DESIGN DECISION: `metadata_` (trailing underscore) avoids colliding with
# SQLAlchemy's declarative `.metadata` attribute.
# =============================================================================

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class for all ORM models."""

    pass


# =============================================================================
# Uploaded Tabular Data
# =============================================================================


class FinancialDataset(Base):
    """
    One uploaded CSV file.

    `columns` is the header row in file order; `rows` is a list of
    {column: value} objects. Values are stored as parsed by the CSV reader
    (strings, numbers or null) and typed later by the KPI engine.
    """

    __tablename__ = "financial_datasets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=True,
    )

    # Original filename as uploaded (e.g., "financial_sample.csv")
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)

    columns: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    rows: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<FinancialDataset(id={self.id}, file='{self.file_name}', "
            f"rows={self.row_count})>"
        )


# =============================================================================
# Financial Statement Records (fixed schema)
# =============================================================================


class StatementRecord(Base):
    """
    One reporting period of one company's financial statements.

    Every monetary field is nullable: partially filled statements are
    common, and the KPI engine treats a missing value as unavailable.
    """

    __tablename__ = "statement_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=True,
    )

    company_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    fiscal_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Free text: "Q1", "Q2", "H1", "FY" ...
    fiscal_period: Mapped[str | None] = mapped_column(String(20), nullable=True)

    revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    cost_of_revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    gross_profit: Mapped[float | None] = mapped_column(Float, nullable=True)
    operating_expenses: Mapped[float | None] = mapped_column(Float, nullable=True)
    operating_income: Mapped[float | None] = mapped_column(Float, nullable=True)
    net_income: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_assets: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_liabilities: Mapped[float | None] = mapped_column(Float, nullable=True)
    shareholders_equity: Mapped[float | None] = mapped_column(Float, nullable=True)

    segment: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def to_record(self) -> dict:
        """Plain mapping keyed by statement field name (KPI engine input)."""
        return {
            "company_name": self.company_name,
            "fiscal_year": self.fiscal_year,
            "fiscal_period": self.fiscal_period,
            "revenue": self.revenue,
            "cost_of_revenue": self.cost_of_revenue,
            "gross_profit": self.gross_profit,
            "operating_expenses": self.operating_expenses,
            "operating_income": self.operating_income,
            "net_income": self.net_income,
            "total_assets": self.total_assets,
            "total_liabilities": self.total_liabilities,
            "shareholders_equity": self.shareholders_equity,
            "segment": self.segment,
        }

    def __repr__(self) -> str:
        return (
            f"<StatementRecord(id={self.id}, company='{self.company_name}', "
            f"fy={self.fiscal_year}, period={self.fiscal_period})>"
        )


# =============================================================================
# Embedding Chunks — Vector Search Over Record Text
# =============================================================================
#
# Each statement record is rendered to a text block (services/record_text.py),
# chunked, embedded, and stored here. `source_type` + `source_id` identify
# the record a chunk came from so that re-embedding a record can replace
# its old chunks.
# =============================================================================


class EmbeddingChunk(Base):
    """A chunk of record text plus its embedding vector."""

    __tablename__ = "embedding_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=True,
    )

    # "statement_record" today; kept generic for other embeddable sources
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[int] = mapped_column(Integer, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=True,
    )

    metadata_: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<EmbeddingChunk(id={self.id}, source={self.source_type}:"
            f"{self.source_id}, index={self.chunk_index})>"
        )


# HNSW index for cosine similarity search
embedding_chunk_hnsw_idx = Index(
    "idx_embedding_chunk_hnsw",
    EmbeddingChunk.embedding,
    postgresql_using="hnsw",
    postgresql_with={"m": 16, "ef_construction": 64},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)

embedding_chunk_source_idx = Index(
    "idx_embedding_chunk_source",
    EmbeddingChunk.source_type,
    EmbeddingChunk.source_id,
)

embedding_chunk_owner_idx = Index(
    "idx_embedding_chunk_owner",
    EmbeddingChunk.owner_id,
)


# =============================================================================
# Generated MD&A Reports
# =============================================================================


class GeneratedReport(Base):
    """
    A generated MD&A report.

    `content` is the assembled Markdown document. `sections` keeps each
    section separately ({"title", "content"} objects) for the viewer, and
    `kpis` / `kpi_summary` freeze the numbers the narrative was written
    from, so a stored report never changes when its datasets do.
    """

    __tablename__ = "generated_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sections: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    kpi_summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kpis: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    analysis_config: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict,
    )

    # Which writer produced the narrative: "template" or "llm"
    writer: Mapped[str] = mapped_column(String(20), nullable=False)
    dataset_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<GeneratedReport(id={self.id}, title='{self.title}')>"


generated_report_owner_idx = Index(
    "idx_generated_report_owner_created",
    GeneratedReport.owner_id,
    GeneratedReport.created_at,
)


# =============================================================================
# API Keys
# =============================================================================
#
# DESIGN DECISION: SHA-256 for key hashing (not bcrypt). API keys are
# 32-byte random tokens, so their entropy already rules out guessing;
# per-request validation stays cheap.
# =============================================================================


class ApiKey(Base):
    """
    An API key for authenticating requests.

    The key id doubles as the owner id of everything created with it.
    The raw key is only returned once at creation time.
    """

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True,
    )

    # Human-readable label (e.g., "finance-team", "dashboard")
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # First 8 chars of the key for identification in logs
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False)

    # SHA-256 hash of the full key
    key_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )

    # Allowed scopes: ["datasets", "kpis", "reports", ...]; empty = all
    scopes: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, default=list,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ApiKey(id={self.id}, name='{self.name}', "
            f"prefix='{self.key_prefix}', active={self.is_active})>"
        )


api_key_prefix_idx = Index(
    "idx_api_key_prefix",
    ApiKey.key_prefix,
)

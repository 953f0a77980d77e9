# =============================================================================
# Owner-Scoped Queries — Shared Loaders for API Handlers and Workers
# =============================================================================
#
# Every data row carries an owner_id (the id of the API key that created it,
# NULL when auth is disabled). All reads go through owned_by() so a caller
# can only ever see its own datasets, statement records and reports.
# =============================================================================

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.db.models import FinancialDataset, StatementRecord
from app.kpi import RawDataset


def owned_by(model, owner_id: int | None):
    """WHERE clause restricting `model` rows to one owner."""
    if owner_id is None:
        return model.owner_id.is_(None)
    return model.owner_id == owner_id


async def load_datasets(
    session: AsyncSession,
    owner_id: int | None,
    dataset_ids: Sequence[int],
) -> list[FinancialDataset]:
    """Fetch the caller's datasets among `dataset_ids`, oldest first."""
    stmt = (
        select(FinancialDataset)
        .where(owned_by(FinancialDataset, owner_id))
        .where(FinancialDataset.id.in_(list(dataset_ids)))
        .order_by(FinancialDataset.id)
    )
    return list((await session.execute(stmt)).scalars().all())


def to_raw_dataset(dataset: FinancialDataset) -> RawDataset:
    return RawDataset(columns=tuple(dataset.columns or ()), rows=dataset.rows or ())


def _statement_query(owner_id: int | None, record_ids: Sequence[int] | None):
    stmt = select(StatementRecord).where(owned_by(StatementRecord, owner_id))
    if record_ids is not None:
        stmt = stmt.where(StatementRecord.id.in_(list(record_ids)))
    return stmt.order_by(StatementRecord.id)


async def load_statement_records(
    session: AsyncSession,
    owner_id: int | None,
    record_ids: Sequence[int] | None = None,
) -> list[StatementRecord]:
    """Fetch the caller's statement records; all of them when ids is None."""
    result = await session.execute(_statement_query(owner_id, record_ids))
    return list(result.scalars().all())


def load_statement_records_sync(
    session: Session,
    owner_id: int | None,
    record_ids: Sequence[int] | None = None,
) -> list[StatementRecord]:
    """Sync variant for Celery workers."""
    result = session.execute(_statement_query(owner_id, record_ids))
    return list(result.scalars().all())

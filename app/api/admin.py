# =============================================================================
# Admin API — API Key Management
# =============================================================================
#
# Every API key is also a data OWNER: datasets, statement records, embedded
# chunks and reports carry the id of the key that created them, and every
# read filters on it. These endpoints manage keys and show what each owns.
#
#   POST   /admin/keys              — create (raw key returned once)
#   GET    /admin/keys              — list, optionally active keys only
#   GET    /admin/keys/{id}         — details
#   GET    /admin/keys/{id}/usage   — owned row counts per table
#   PATCH  /admin/keys/{id}         — rename, rescope, (de)activate, expiry
#   DELETE /admin/keys/{id}         — remove key and cascade its data
#
# All require the "admin" scope.
#
# DESIGN DECISION: Deactivating (PATCH is_active=false) keeps the key's data;
# re-activating makes it reachable again. DELETE is the only way to drop
# data, through the owner_id ON DELETE CASCADE foreign keys.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import check_scope, get_current_api_key
from app.db.engine import get_async_session
from app.db.models import (
    ApiKey,
    EmbeddingChunk,
    FinancialDataset,
    GeneratedReport,
    StatementRecord,
)
from app.models.requests import CreateApiKeyRequest, UpdateApiKeyRequest
from app.models.responses import (
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    ApiKeyUsageResponse,
)
from app.services.auth import SCOPES, generate_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/keys", tags=["Admin"])


@router.post(
    "",
    response_model=ApiKeyCreatedResponse,
    status_code=201,
    summary="Create an API key",
    description=(
        "Issue a key with optional scopes and expiry. The raw key appears "
        "in this response only."
    ),
)
async def create_api_key(
    request: CreateApiKeyRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyCreatedResponse:
    check_scope(api_key, "admin")
    _validate_scopes(request.scopes)

    raw_key, key_prefix, key_hash = generate_api_key()
    issued = ApiKey(
        name=request.name,
        key_prefix=key_prefix,
        key_hash=key_hash,
        scopes=request.scopes,
        expires_at=request.expires_at,
    )
    session.add(issued)
    await session.commit()
    await session.refresh(issued)

    logger.info("Issued API key id=%d (%s)", issued.id, issued.key_prefix)
    return ApiKeyCreatedResponse(
        **ApiKeyResponse.model_validate(issued).model_dump(),
        raw_key=raw_key,
    )


@router.get("", response_model=ApiKeyListResponse, summary="List API keys")
async def list_api_keys(
    active_only: bool = Query(default=False),
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyListResponse:
    check_scope(api_key, "admin")

    stmt = select(ApiKey).order_by(ApiKey.created_at.desc())
    if active_only:
        stmt = stmt.where(ApiKey.is_active.is_(True))
    keys = (await session.execute(stmt)).scalars().all()
    return ApiKeyListResponse(
        keys=[ApiKeyResponse.model_validate(k) for k in keys],
        total=len(keys),
    )


@router.get(
    "/{key_id}",
    response_model=ApiKeyResponse,
    summary="Get API key details",
)
async def get_api_key(
    key_id: int,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyResponse:
    check_scope(api_key, "admin")
    return ApiKeyResponse.model_validate(await _load_key(session, key_id))


@router.get(
    "/{key_id}/usage",
    response_model=ApiKeyUsageResponse,
    summary="Count the rows an API key owns",
)
async def get_api_key_usage(
    key_id: int,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyUsageResponse:
    check_scope(api_key, "admin")
    await _load_key(session, key_id)

    counts = {}
    for field_name, model in (
        ("datasets", FinancialDataset),
        ("statement_records", StatementRecord),
        ("embedding_chunks", EmbeddingChunk),
        ("reports", GeneratedReport),
    ):
        stmt = select(func.count(model.id)).where(model.owner_id == key_id)
        counts[field_name] = (await session.execute(stmt)).scalar() or 0

    return ApiKeyUsageResponse(key_id=key_id, **counts)


@router.patch(
    "/{key_id}",
    response_model=ApiKeyResponse,
    summary="Update an API key",
)
async def update_api_key(
    key_id: int,
    request: UpdateApiKeyRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyResponse:
    """Apply the fields that are set; unset fields keep their values."""
    check_scope(api_key, "admin")
    target = await _load_key(session, key_id)

    changes = request.model_dump(exclude_none=True)
    if "scopes" in changes:
        _validate_scopes(changes["scopes"])
    for field_name, value in changes.items():
        setattr(target, field_name, value)

    await session.commit()
    await session.refresh(target)

    logger.info("Updated API key id=%d: %s", target.id, sorted(changes))
    return ApiKeyResponse.model_validate(target)


@router.delete(
    "/{key_id}",
    status_code=204,
    summary="Delete an API key and its data",
)
async def delete_api_key(
    key_id: int,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    check_scope(api_key, "admin")

    target = await _load_key(session, key_id)
    await session.delete(target)
    await session.commit()

    logger.info("Deleted API key id=%d and its owned rows", key_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _load_key(session: AsyncSession, key_id: int) -> ApiKey:
    target = await session.get(ApiKey, key_id)
    if target is None:
        raise HTTPException(status_code=404, detail=f"API key {key_id} not found.")
    return target


def _validate_scopes(scopes: list[str]) -> None:
    unknown = sorted(set(scopes) - set(SCOPES))
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown scopes {unknown}. Valid scopes: {list(SCOPES)}",
        )

# =============================================================================
# Embeddings API — Record Embedding and Similarity Search
# =============================================================================
#
# ENDPOINTS:
#   POST /embeddings            — Embed statement records (Celery or inline)
#   GET  /embeddings/{task_id}  — Poll a background embedding task
#   POST /search                — Similarity search over the caller's chunks
#
# DESIGN DECISION: Two execution modes for POST /embeddings.
#   background=true  (default) → Celery task, 202 + task_id. Batched
#                                 embedding calls, retries with backoff.
#   background=false           → inline: one embedding request per chunk,
#                                 issued concurrently. Any failure fails the
#                                 whole request (502); nothing is stored.
# The inline mode suits a handful of records where the caller wants the
# chunks searchable as soon as the response arrives.
# =============================================================================

import asyncio
import logging

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from openai import OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import check_scope, get_current_api_key
from app.db.engine import get_async_session
from app.db.models import ApiKey
from app.db.queries import load_statement_records
from app.models.requests import EmbedRecordsRequest, SearchRequest
from app.models.responses import (
    EmbedRecordsResponse,
    EmbedTaskStatusResponse,
    SearchHit,
    SearchResponse,
)
from app.services.auth import owner_id_of
from app.services.embedder import (
    EmbeddingConfigurationError,
    embed_text,
    embed_texts_concurrently,
)
from app.services.record_embedding import (
    prepare_record_chunks,
    store_record_chunks,
)
from app.services.vectorstore import get_vector_store
from app.workers.tasks import embed_statement_records

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Embeddings"])


# ---------------------------------------------------------------------------
# POST /embeddings — Embed statement records
# ---------------------------------------------------------------------------


@router.post(
    "/embeddings",
    response_model=EmbedRecordsResponse,
    responses={202: {"model": EmbedRecordsResponse}},
    summary="Embed financial statement records for similarity search",
)
async def embed_records(
    request: EmbedRecordsRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
    session: AsyncSession = Depends(get_async_session),
):
    check_scope(api_key, "embeddings")
    owner_id = owner_id_of(api_key)

    records = await load_statement_records(session, owner_id, request.record_ids)
    if not records:
        raise HTTPException(
            status_code=404,
            detail="No statement records found for the given ids.",
        )
    record_ids = [r.id for r in records]

    if request.background:
        task = embed_statement_records.delay(record_ids=record_ids, owner_id=owner_id)
        logger.info(
            "Dispatched embedding task %s for %d records", task.id, len(record_ids),
        )
        response = EmbedRecordsResponse(
            status="processing",
            task_id=task.id,
            record_count=len(record_ids),
        )
        return JSONResponse(status_code=202, content=response.model_dump())

    # --- Inline: render → chunk → embed concurrently → store ---
    prepared = [prepare_record_chunks(r.id, r.to_record()) for r in records]
    texts = [content for p in prepared for content in p.contents]

    try:
        embeddings = await embed_texts_concurrently(texts)
    except EmbeddingConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except OpenAIError as exc:
        logger.exception("Inline embedding failed: %s", exc)
        raise HTTPException(
            status_code=502,
            detail=f"Embedding provider error: {exc}",
        ) from exc

    store = get_vector_store()
    stored = 0
    offset = 0
    for p in prepared:
        count = len(p.contents)
        stored += await asyncio.to_thread(
            store_record_chunks, store, owner_id, p,
            embeddings[offset : offset + count],
        )
        offset += count

    logger.info("Embedded %d records inline (%d chunks)", len(prepared), stored)
    return EmbedRecordsResponse(
        status="completed",
        record_count=len(prepared),
        embedding_count=stored,
    )


# ---------------------------------------------------------------------------
# GET /embeddings/{task_id} — Poll task status
# ---------------------------------------------------------------------------


@router.get(
    "/embeddings/{task_id}",
    response_model=EmbedTaskStatusResponse,
    summary="Check embedding task status",
)
async def get_embedding_status(
    task_id: str,
    api_key: ApiKey | None = Depends(get_current_api_key),
) -> EmbedTaskStatusResponse:
    check_scope(api_key, "embeddings")

    result = AsyncResult(task_id, app=embed_statement_records.app)
    status = result.status

    task_result: dict | None = None
    error: str | None = None
    if status == "SUCCESS":
        task_result = result.result or {}
    elif status == "FAILURE":
        error = str(result.result) if result.result else "Unknown error"

    return EmbedTaskStatusResponse(
        task_id=task_id,
        status=status,
        result=task_result,
        error=error,
    )


# ---------------------------------------------------------------------------
# POST /search — Similarity search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search embedded records by similarity",
    description=(
        "Embeds the query and returns the caller's most similar record "
        "chunks whose cosine similarity is at least `threshold`."
    ),
)
async def search_records(
    request: SearchRequest,
    api_key: ApiKey | None = Depends(get_current_api_key),
) -> SearchResponse:
    check_scope(api_key, "embeddings")

    try:
        query_embedding = await embed_text(request.query)
    except EmbeddingConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except OpenAIError as exc:
        logger.exception("Query embedding failed: %s", exc)
        raise HTTPException(
            status_code=502,
            detail=f"Embedding provider error: {exc}",
        ) from exc

    results = await get_vector_store().search(
        query_embedding,
        owner_id=owner_id_of(api_key),
        top_k=request.limit,
        threshold=request.threshold,
    )
    return SearchResponse(
        results=[
            SearchHit(
                content=r.content,
                similarity=r.similarity,
                source_type=r.source_type,
                source_id=r.source_id,
                metadata=r.metadata,
            )
            for r in results
        ],
    )

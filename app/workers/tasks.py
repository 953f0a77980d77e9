# =============================================================================
# Celery Task Definitions — Statement Record Embedding
# =============================================================================
#
# `embed_statement_records` turns statement records into searchable chunks:
#
#   1. Load the caller's records (sync session)
#   2. Render each record as its "Label: value" text block
#   3. Chunk with tiktoken
#   4. Embed all chunks in batched OpenAI calls
#   5. Replace each record's chunks in the vector store
#
# IMPORTANT: Celery workers are SYNCHRONOUS. No async/await here, and only
# the sync SQLAlchemy engine.
#
# RETRY STRATEGY: max_retries=3 with exponential backoff (60s, 120s, 240s)
# for transient failures (embedding rate limits, DB connection drops).
# A missing API key is not transient and fails immediately.
# =============================================================================

import logging

from app.config import settings
from app.db.engine import get_sync_session
from app.db.queries import load_statement_records_sync
from app.services.embedder import EmbeddingConfigurationError, embed_batch
from app.services.record_embedding import (
    prepare_record_chunks,
    store_record_chunks,
)
from app.services.vectorstore import get_vector_store
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="embed_statement_records",
    max_retries=3,
    default_retry_delay=60,
)
def embed_statement_records(
    self,
    record_ids: list[int],
    owner_id: int | None = None,
) -> dict:
    """
    Embed the given statement records of one owner.

    Returns:
        dict summary: record_count, embedding_count, vectorstore.
    """
    task_id = self.request.id
    logger.info(
        "[%s] Embedding %d statement records (owner=%s, vectorstore=%s)",
        task_id, len(record_ids), owner_id, settings.vectorstore_type,
    )

    try:
        with get_sync_session() as session:
            records = load_statement_records_sync(session, owner_id, record_ids)
            prepared = [
                prepare_record_chunks(record.id, record.to_record())
                for record in records
            ]

        texts = [content for p in prepared for content in p.contents]
        embeddings = embed_batch(texts, batch_size=settings.embedding_batch_size)

        store = get_vector_store()
        stored = 0
        offset = 0
        for p in prepared:
            count = len(p.contents)
            stored += store_record_chunks(
                store, owner_id, p, embeddings[offset : offset + count],
            )
            offset += count

        summary = {
            "status": "completed",
            "record_count": len(prepared),
            "embedding_count": stored,
            "vectorstore": settings.vectorstore_type,
        }
        logger.info("[%s] Embedding complete: %s", task_id, summary)
        return summary

    except EmbeddingConfigurationError:
        logger.error("[%s] Embedding provider is not configured", task_id)
        raise

    except Exception as exc:
        logger.exception("[%s] Embedding failed: %s", task_id, exc)
        raise self.retry(
            exc=exc, countdown=60 * (2 ** self.request.retries),
        )

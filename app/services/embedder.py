# =============================================================================
# Embedding Service — Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates embeddings through any OpenAI-compatible embeddings endpoint
# (OpenAI by default; embedding_base_url selects another provider).
#
# Two call paths:
#   embed_batch()               sync, batched — Celery worker (record text)
#   embed_texts_concurrently()  async, one request per text issued together
#                               and awaited with asyncio.gather — API paths
#                               (report context query, /search)
#
# FAILURE POLICY: no retries here. The worker task retries with backoff;
# on the async path the first failed request fails the whole batch and the
# caller maps it to 502. Partial results are never returned.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from openai import AsyncOpenAI, OpenAI

from app.config import settings

logger = logging.getLogger(__name__)


class EmbeddingConfigurationError(RuntimeError):
    """No API key configured for the embedding provider."""


# ---------------------------------------------------------------------------
# Clients — Lazy Singletons
# ---------------------------------------------------------------------------
# API key resolution order: OPENAI_API_KEY, then LLM_API_KEY (one key for an
# OpenAI-compatible provider that serves both).
# ---------------------------------------------------------------------------

_client: OpenAI | None = None
_async_client: AsyncOpenAI | None = None


def _client_kwargs() -> dict:
    resolved_key = settings.openai_api_key or settings.llm_api_key
    if not resolved_key:
        raise EmbeddingConfigurationError(
            "No API key configured for embeddings. "
            "Set OPENAI_API_KEY or LLM_API_KEY in .env"
        )
    kwargs: dict = {"api_key": resolved_key}
    if settings.embedding_base_url:
        kwargs["base_url"] = settings.embedding_base_url
    return kwargs


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(**_client_kwargs())
        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


def _get_async_client() -> AsyncOpenAI:
    global _async_client
    if _async_client is None:
        _async_client = AsyncOpenAI(**_client_kwargs())
    return _async_client


def _create_kwargs(texts: list[str]) -> dict:
    kwargs: dict = {"model": settings.embedding_model, "input": texts}
    if settings.embedding_dimensions:
        kwargs["dimensions"] = settings.embedding_dimensions
    return kwargs


# ---------------------------------------------------------------------------
# Sync Path — Celery Worker
# ---------------------------------------------------------------------------


def embed_batch(
    texts: Sequence[str],
    batch_size: int | None = None,
) -> list[list[float]]:
    """
    Embed texts in sub-batches. Output order matches input order.

    Raises:
        EmbeddingConfigurationError: If no API key is configured.
        openai.APIError: If an API call fails.
    """
    if not texts:
        return []

    client = _get_client()
    size = batch_size or settings.embedding_batch_size
    embeddings: list[list[float]] = [[] for _ in texts]

    for offset in range(0, len(texts), size):
        batch = list(texts[offset : offset + size])
        response = client.embeddings.create(**_create_kwargs(batch))

        # Place by response index, not arrival order
        for item in response.data:
            embeddings[offset + item.index] = item.embedding

        logger.debug(
            "Embedded batch %d-%d of %d texts",
            offset + 1, offset + len(batch), len(texts),
        )

    logger.info(
        "Generated %d embeddings (model=%s)", len(texts), settings.embedding_model,
    )
    return embeddings


# ---------------------------------------------------------------------------
# Async Path — Concurrent Fan-Out
# ---------------------------------------------------------------------------


async def embed_text(text: str) -> list[float]:
    """Embed a single text with one async request."""
    client = _get_async_client()
    response = await client.embeddings.create(**_create_kwargs([text]))
    return response.data[0].embedding


async def embed_texts_concurrently(texts: Sequence[str]) -> list[list[float]]:
    """
    Issue one embedding request per text concurrently and await them all.

    Results are in input order. Any failed request fails the whole call.
    """
    if not texts:
        return []
    results = await asyncio.gather(*(embed_text(text) for text in texts))
    logger.info("Generated %d embeddings concurrently", len(results))
    return list(results)

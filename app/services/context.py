# =============================================================================
# Historical Context Retrieval — RAG Context for Report Writing
# =============================================================================
#
# Embeds a query, pulls the caller's most similar record chunks from the
# vector store, and renders them as one prompt block:
#
#   # Relevant Historical Financial Context
#
#   ## Context 1 (Similarity: 91.2%)
#   <chunk text>
#
#   Metadata: {...}
#
#   ---
#
# When nothing clears the threshold the block is NO_CONTEXT_MESSAGE, so
# prompts always receive a non-empty context section.
# =============================================================================

from __future__ import annotations

import json
import logging

from app.config import settings
from app.services.embedder import embed_text
from app.services.vectorstore import VectorSearchResult, VectorStore

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "No relevant historical context found."


async def retrieve_context(
    store: VectorStore,
    query: str,
    owner_id: int | None,
    top_k: int | None = None,
    threshold: float | None = None,
) -> list[VectorSearchResult]:
    """Embed `query` and return the caller's top matching chunks."""
    query_embedding = await embed_text(query)
    results = await store.search(
        query_embedding,
        owner_id=owner_id,
        top_k=top_k or settings.retrieval_top_k,
        threshold=(
            settings.retrieval_similarity_threshold
            if threshold is None else threshold
        ),
    )
    logger.info("Retrieved %d context chunks for report query", len(results))
    return results


def render_context(results: list[VectorSearchResult]) -> str:
    if not results:
        return NO_CONTEXT_MESSAGE

    parts = ["# Relevant Historical Financial Context", ""]
    for index, result in enumerate(results, start=1):
        parts.append(
            f"## Context {index} (Similarity: {result.similarity * 100:.1f}%)"
        )
        parts.append(result.content)
        parts.append("")
        if result.metadata:
            parts.append(
                f"Metadata: {json.dumps(result.metadata, indent=2, sort_keys=True)}"
            )
            parts.append("")
        parts.append("---")
        parts.append("")
    return "\n".join(parts)


async def build_context_prompt(
    store: VectorStore,
    query: str,
    owner_id: int | None,
) -> str:
    return render_context(await retrieve_context(store, query, owner_id))

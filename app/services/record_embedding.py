# =============================================================================
# Record Embedding — Statement Record → Chunks → Vector Store
# =============================================================================
#
# The steps shared by the Celery task (sync, batched embeddings) and the
# inline POST /embeddings path (async, concurrent embeddings):
#
#   prepare_record_chunks()  render text block → token chunks + metadata
#   store_record_chunks()    replace the record's chunks in the store
#
# Re-embedding a record replaces its chunks in one step (replace_chunks),
# so search never returns two generations of the same record, and a failed
# store keeps the previous generation.
# =============================================================================

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from app.config import settings
from app.services.chunker import chunk_text
from app.services.record_text import record_metadata, render_record_text
from app.services.vectorstore import VectorStore

SOURCE_TYPE = "statement_record"


@dataclass
class PreparedChunks:
    record_id: int
    contents: list[str] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)


def prepare_record_chunks(
    record_id: int,
    record: Mapping[str, Any],
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> PreparedChunks:
    text = render_record_text(record)
    chunks = chunk_text(
        text,
        chunk_size=chunk_size or settings.chunk_size,
        chunk_overlap=(
            settings.chunk_overlap if chunk_overlap is None else chunk_overlap
        ),
    )
    base_meta = record_metadata(record)
    return PreparedChunks(
        record_id=record_id,
        contents=[c.content for c in chunks],
        metadatas=[
            {
                **base_meta,
                "chunk_index": c.chunk_index,
                "token_count": c.token_count,
            }
            for c in chunks
        ],
    )


def store_record_chunks(
    store: VectorStore,
    owner_id: int | None,
    prepared: PreparedChunks,
    embeddings: list[list[float]],
) -> int:
    """Replace the record's stored chunks. Returns the number stored."""
    return store.replace_chunks(
        owner_id=owner_id,
        source_type=SOURCE_TYPE,
        source_id=prepared.record_id,
        contents=prepared.contents,
        embeddings=embeddings,
        metadatas=prepared.metadatas,
    )

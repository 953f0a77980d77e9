# =============================================================================
# Vector Store Abstraction — Pluggable Backend Protocol
# =============================================================================
#
# Similarity search over embedded record text, with concrete backends for
# pgvector (PostgreSQL) and ChromaDB.
#
# DESIGN DECISION: Protocol (structural typing) over ABC. Tests and callers
# depend on the method shapes only; a fake needs no base class.
#
# DESIGN DECISION: Mixed sync/async interface.
# - add_chunks() / delete_by_source() / replace_chunks() are sync → called
#   by the Celery worker
# - search() is async → called by FastAPI handlers and the report graph
#
# SCOPING: every chunk carries its owner id and its source (type + id).
# search() only ever returns the caller's chunks, and drops results whose
# cosine similarity is below `threshold`.
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── PgVectorStore     — PostgreSQL + pgvector extension
#   └── ChromaVectorStore — ChromaDB (in-process or client/server)
#   get_vector_store()    — factory keyed on settings.vectorstore_type
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.config import settings
from app.db.engine import async_session_factory, get_sync_session
from app.db.models import EmbeddingChunk
from app.db.queries import owned_by

logger = logging.getLogger(__name__)

# Chroma metadata cannot hold None; anonymous owner is stored as 0
_ANONYMOUS_OWNER = 0


@dataclass
class VectorSearchResult:
    """One similarity hit, highest similarity first in result lists."""

    content: str
    similarity: float  # cosine similarity, 1.0 = identical direction
    source_type: str
    source_id: int
    metadata: dict = field(default_factory=dict)


class VectorStore(Protocol):
    def add_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        """Store chunks for one source. Sync (Celery). Returns count stored."""
        ...

    def delete_by_source(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
    ) -> None:
        """Remove every chunk of one source. Sync (Celery)."""
        ...

    def replace_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        """
        Swap a source's chunks for new ones. Sync (Celery).

        When storing the new chunks fails, the old ones are kept.
        """
        ...

    async def search(
        self,
        query_embedding: list[float],
        owner_id: int | None,
        top_k: int = 5,
        threshold: float = 0.0,
    ) -> list[VectorSearchResult]:
        """Top-k chunks of `owner_id` with similarity >= threshold. Async."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed store.

    pgvector's cosine_distance() is in [0, 2]; similarity = 1 - distance.
    The threshold is applied in SQL as distance <= 1 - threshold so that
    top_k counts only qualifying chunks.
    """

    def add_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        with get_sync_session() as session:
            self._insert(
                session, owner_id, source_type, source_id,
                contents, embeddings, metadatas,
            )

        logger.info(
            "Stored %d chunks for %s:%d in pgvector",
            len(contents), source_type, source_id,
        )
        return len(contents)

    def delete_by_source(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
    ) -> None:
        with get_sync_session() as session:
            self._delete(session, owner_id, source_type, source_id)

    def replace_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        # one transaction: a failed insert rolls the delete back
        with get_sync_session() as session:
            self._delete(session, owner_id, source_type, source_id)
            self._insert(
                session, owner_id, source_type, source_id,
                contents, embeddings, metadatas,
            )

        logger.info(
            "Replaced chunks for %s:%d in pgvector (%d stored)",
            source_type, source_id, len(contents),
        )
        return len(contents)

    @staticmethod
    def _insert(
        session: Session,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> None:
        for i, (content, embedding, meta) in enumerate(
            zip(contents, embeddings, metadatas, strict=True)
        ):
            session.add(EmbeddingChunk(
                owner_id=owner_id,
                source_type=source_type,
                source_id=source_id,
                content=content,
                chunk_index=meta.get("chunk_index", i),
                token_count=meta.get("token_count", 0),
                embedding=embedding,
                metadata_=meta,
            ))

    @staticmethod
    def _delete(
        session: Session,
        owner_id: int | None,
        source_type: str,
        source_id: int,
    ) -> None:
        session.execute(
            delete(EmbeddingChunk).where(
                owned_by(EmbeddingChunk, owner_id),
                EmbeddingChunk.source_type == source_type,
                EmbeddingChunk.source_id == source_id,
            )
        )

    async def search(
        self,
        query_embedding: list[float],
        owner_id: int | None,
        top_k: int = 5,
        threshold: float = 0.0,
    ) -> list[VectorSearchResult]:
        distance = EmbeddingChunk.embedding.cosine_distance(query_embedding)

        async with async_session_factory() as session:
            stmt = (
                select(EmbeddingChunk, distance.label("distance"))
                .where(EmbeddingChunk.embedding.is_not(None))
                .where(owned_by(EmbeddingChunk, owner_id))
                .where(distance <= 1.0 - threshold)
                .order_by(distance)
                .limit(top_k)
            )
            rows = (await session.execute(stmt)).all()

        logger.debug(
            "Vector search returned %d rows (top_k=%d, threshold=%.2f)",
            len(rows), top_k, threshold,
        )
        return [
            VectorSearchResult(
                content=chunk.content,
                similarity=round(1.0 - chunk_distance, 4),
                source_type=chunk.source_type,
                source_id=chunk.source_id,
                metadata=chunk.metadata_ or {},
            )
            for chunk, chunk_distance in rows
        ]


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed store.

    One collection ("mdna_record_chunks", cosine space). Owner and source
    are kept in chunk metadata and used as `where` filters. The Chroma
    client is synchronous; search() runs it in a worker thread.
    """

    collection_name = "mdna_record_chunks"

    def __init__(self, client: chromadb.ClientAPI | None = None) -> None:
        if client is not None:
            self._client = client
        elif settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.Client()

        self._collection = self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        if not contents:
            return 0

        owner = _chroma_owner(owner_id)
        ids = self._chunk_ids(owner_id, source_type, source_id, metadatas)
        enriched = [
            _sanitise_chroma_metadata({
                **meta,
                "owner_id": owner,
                "source_type": source_type,
                "source_id": source_id,
            })
            for meta in metadatas
        ]

        # upsert so that re-embedding a source replaces its chunks
        self._collection.upsert(
            ids=ids,
            documents=contents,
            embeddings=embeddings,
            metadatas=enriched,
        )
        logger.info(
            "Stored %d chunks for %s:%d in ChromaDB",
            len(ids), source_type, source_id,
        )
        return len(ids)

    def delete_by_source(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
    ) -> None:
        self._collection.delete(
            where=_chroma_source_filter(owner_id, source_type, source_id),
        )

    def replace_chunks(
        self,
        owner_id: int | None,
        source_type: str,
        source_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> int:
        # Chroma has no transactions: upsert the new chunks first, then drop
        # the ids this generation no longer uses
        if len(embeddings) != len(contents) or len(metadatas) != len(contents):
            raise ValueError(
                f"{len(contents)} chunks, {len(embeddings)} embeddings, "
                f"{len(metadatas)} metadatas"
            )
        stored = self.add_chunks(
            owner_id, source_type, source_id, contents, embeddings, metadatas,
        )
        kept = set(self._chunk_ids(owner_id, source_type, source_id, metadatas))
        existing = self._collection.get(
            where=_chroma_source_filter(owner_id, source_type, source_id),
            include=[],
        )
        stale = [chunk_id for chunk_id in existing["ids"] if chunk_id not in kept]
        if stale:
            self._collection.delete(ids=stale)
        return stored

    @staticmethod
    def _chunk_ids(
        owner_id: int | None,
        source_type: str,
        source_id: int,
        metadatas: list[dict],
    ) -> list[str]:
        owner = _chroma_owner(owner_id)
        return [
            f"o{owner}_{source_type}{source_id}_c{meta.get('chunk_index', i)}"
            for i, meta in enumerate(metadatas)
        ]

    async def search(
        self,
        query_embedding: list[float],
        owner_id: int | None,
        top_k: int = 5,
        threshold: float = 0.0,
    ) -> list[VectorSearchResult]:
        def _sync_search() -> list[VectorSearchResult]:
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=top_k,
                where={"owner_id": _chroma_owner(owner_id)},
                include=["documents", "metadatas", "distances"],
            )

            hits: list[VectorSearchResult] = []
            if not (results and results["ids"] and results["ids"][0]):
                return hits

            for i in range(len(results["ids"][0])):
                similarity = round(1.0 - results["distances"][0][i], 4)
                if similarity < threshold:
                    continue
                metadata = dict(results["metadatas"][0][i] or {})
                hits.append(VectorSearchResult(
                    content=results["documents"][0][i],
                    similarity=similarity,
                    source_type=str(metadata.pop("source_type", "")),
                    source_id=int(metadata.pop("source_id", 0)),
                    metadata={k: v for k, v in metadata.items() if k != "owner_id"},
                ))
            return hits

        return await asyncio.to_thread(_sync_search)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_vector_store(
    override_type: str | None = None,
) -> PgVectorStore | ChromaVectorStore:
    """
    Return the configured backend:
    - "pgvector" → PgVectorStore (default, no extra infra)
    - "chroma"   → ChromaVectorStore
    """
    store_type = override_type or settings.vectorstore_type
    if store_type == "chroma":
        return ChromaVectorStore()
    return PgVectorStore()


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _chroma_owner(owner_id: int | None) -> int:
    return _ANONYMOUS_OWNER if owner_id is None else owner_id


def _chroma_source_filter(
    owner_id: int | None, source_type: str, source_id: int,
) -> dict:
    return {"$and": [
        {"owner_id": _chroma_owner(owner_id)},
        {"source_type": source_type},
        {"source_id": source_id},
    ]}


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Chroma metadata values must be str, int, float or bool.

    - None → ""
    - list → comma-separated string
    - anything else → str()
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised

# =============================================================================
# Unit Tests — Vector Store (ChromaDB backend)
# =============================================================================
#
# Tests ChromaDB vector store operations: add, search, owner filtering,
# replacement. Uses ChromaDB's in-process mode (no external services needed).
# pgvector is covered only for its transaction shape, with a mocked session.
# =============================================================================

import asyncio
import itertools
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import chromadb
import pytest

from app.services.vectorstore import (
    ChromaVectorStore,
    PgVectorStore,
    VectorSearchResult,
    get_vector_store,
)

_collection_ids = itertools.count(1)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _make_store() -> ChromaVectorStore:
    """Fresh store with a unique collection per test."""
    store = ChromaVectorStore(client=chromadb.EphemeralClient())
    store._collection = store._client.get_or_create_collection(
        name=f"test_collection_{next(_collection_ids)}",
        metadata={"hnsw:space": "cosine"},
    )
    return store


def _add(store, owner_id, source_id, contents, embeddings):
    return store.add_chunks(
        owner_id=owner_id,
        source_type="statement_record",
        source_id=source_id,
        contents=contents,
        embeddings=embeddings,
        metadatas=[
            {"chunk_index": i, "company_name": "Acme", "fiscal_period": None}
            for i in range(len(contents))
        ],
    )


class TestChromaVectorStore:
    """Tests for ChromaVectorStore (in-process mode)."""

    def test_add_chunks_returns_count(self):
        store = _make_store()
        assert _add(store, 1, 10, ["a", "b"], [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]) == 2

    def test_add_nothing(self):
        assert _add(_make_store(), 1, 10, [], []) == 0

    def test_search_orders_by_similarity(self):
        store = _make_store()
        _add(
            store, 1, 10,
            ["Revenue: $1,000", "Net Income: $50"],
            [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        )
        results = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=2))

        assert len(results) == 2
        assert all(isinstance(r, VectorSearchResult) for r in results)
        assert results[0].similarity >= results[1].similarity
        assert results[0].content == "Revenue: $1,000"
        assert results[0].source_type == "statement_record"
        assert results[0].source_id == 10

    def test_metadata_is_sanitised_and_owner_hidden(self):
        store = _make_store()
        _add(store, 1, 10, ["text"], [[1.0, 0.0, 0.0]])
        hit = _run(store.search([1.0, 0.0, 0.0], owner_id=1))[0]
        assert hit.metadata["company_name"] == "Acme"
        assert hit.metadata["fiscal_period"] == ""
        assert "owner_id" not in hit.metadata

    def test_search_is_scoped_to_owner(self):
        store = _make_store()
        _add(store, 1, 10, ["mine"], [[1.0, 0.0, 0.0]])
        _add(store, 2, 11, ["theirs"], [[1.0, 0.0, 0.0]])
        _add(store, None, 12, ["anonymous"], [[1.0, 0.0, 0.0]])

        mine = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5))
        anonymous = _run(store.search([1.0, 0.0, 0.0], owner_id=None, top_k=5))

        assert [r.content for r in mine] == ["mine"]
        assert [r.content for r in anonymous] == ["anonymous"]

    def test_threshold_filters_weak_matches(self):
        store = _make_store()
        _add(
            store, 1, 10,
            ["close", "orthogonal"],
            [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        )
        results = _run(
            store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5, threshold=0.5)
        )
        assert [r.content for r in results] == ["close"]

    def test_delete_by_source(self):
        store = _make_store()
        _add(store, 1, 10, ["first"], [[1.0, 0.0, 0.0]])
        _add(store, 1, 11, ["second"], [[1.0, 0.0, 0.0]])

        store.delete_by_source(1, "statement_record", 10)

        results = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5))
        assert [r.source_id for r in results] == [11]

    def test_re_adding_replaces_chunks(self):
        store = _make_store()
        _add(store, 1, 10, ["old"], [[1.0, 0.0, 0.0]])
        _add(store, 1, 10, ["new"], [[1.0, 0.0, 0.0]])
        results = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5))
        assert [r.content for r in results] == ["new"]

    def test_replace_drops_stale_chunks(self):
        store = _make_store()
        _add(store, 1, 10, ["a", "b", "c"], [[1.0, 0.0, 0.0]] * 3)

        stored = store.replace_chunks(
            1, "statement_record", 10,
            ["fresh"], [[1.0, 0.0, 0.0]], [{"chunk_index": 0}],
        )

        results = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5))
        assert stored == 1
        assert [r.content for r in results] == ["fresh"]

    def test_failed_replace_keeps_previous_chunks(self):
        store = _make_store()
        _add(store, 1, 10, ["old"], [[1.0, 0.0, 0.0]])

        with pytest.raises(ValueError):
            store.replace_chunks(
                1, "statement_record", 10,
                ["new", "newer"], [[1.0, 0.0, 0.0]],
                [{"chunk_index": 0}, {"chunk_index": 1}],
            )

        results = _run(store.search([1.0, 0.0, 0.0], owner_id=1, top_k=5))
        assert [r.content for r in results] == ["old"]

    def test_replace_with_nothing_clears_source(self):
        store = _make_store()
        _add(store, 1, 10, ["old"], [[1.0, 0.0, 0.0]])
        assert store.replace_chunks(1, "statement_record", 10, [], [], []) == 0
        assert _run(store.search([1.0, 0.0, 0.0], owner_id=1)) == []

    def test_empty_collection_returns_nothing(self):
        store = _make_store()
        assert _run(store.search([1.0, 0.0, 0.0], owner_id=1)) == []


class TestFactory:

    def test_chroma_override(self):
        assert isinstance(get_vector_store("chroma"), ChromaVectorStore)


class TestPgVectorReplace:
    """replace_chunks() transaction shape, with the sync session mocked."""

    def _session_factory(self, session):
        entered = []

        @contextmanager
        def _get_sync_session():
            entered.append(session)
            yield session

        return _get_sync_session, entered

    def test_delete_and_insert_share_one_session(self):
        session = MagicMock()
        factory, entered = self._session_factory(session)

        with patch("app.services.vectorstore.get_sync_session", factory):
            stored = PgVectorStore().replace_chunks(
                1, "statement_record", 10,
                ["a", "b"], [[1.0, 0.0], [0.0, 1.0]],
                [{"chunk_index": 0}, {"chunk_index": 1}],
            )

        assert stored == 2
        assert len(entered) == 1
        session.execute.assert_called_once()
        assert session.add.call_count == 2

    def test_insert_failure_propagates_from_the_transaction(self):
        session = MagicMock()
        factory, _ = self._session_factory(session)

        with patch("app.services.vectorstore.get_sync_session", factory):
            with pytest.raises(ValueError):
                PgVectorStore().replace_chunks(
                    1, "statement_record", 10,
                    ["a", "b"], [[1.0, 0.0]],
                    [{"chunk_index": 0}, {"chunk_index": 1}],
                )

        session.execute.assert_called_once()

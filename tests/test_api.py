# =============================================================================
# Unit Tests — HTTP Endpoints
# =============================================================================
#
# Exercises the routers through FastAPI's TestClient without a database:
# auth is overridden to anonymous and the session is a mock. The lifespan
# (table creation) is not run because the client is not used as a context
# manager.
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_current_api_key
from app.db.engine import get_async_session
from app.db.models import FinancialDataset
from app.main import app

CSV_BYTES = (
    b"Segment,Units Sold,Sales,Profit,Year\n"
    b"Government,100,\"$2,000.00\",800,2013\n"
    b"Enterprise,50,3000,500,2014\n"
)


def _fake_session() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()

    async def _refresh(obj):
        obj.id = 1
        obj.created_at = datetime(2026, 1, 1, tzinfo=UTC)

    session.refresh = AsyncMock(side_effect=_refresh)
    return session


@pytest.fixture
def session():
    return _fake_session()


@pytest.fixture
def client(session):
    async def _session_override():
        yield session

    app.dependency_overrides[get_current_api_key] = lambda: None
    app.dependency_overrides[get_async_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def _dataset() -> FinancialDataset:
    return FinancialDataset(
        id=1,
        owner_id=None,
        file_name="sample.csv",
        columns=["Segment", "Units Sold", "Sales", "Profit", "Year"],
        rows=[
            {"Segment": "Government", "Units Sold": "100", "Sales": "$2,000.00",
             "Profit": "800", "Year": "2013"},
            {"Segment": "Enterprise", "Units Sold": "50", "Sales": "3000",
             "Profit": "500", "Year": "2014"},
        ],
        row_count=2,
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestUploadDataset:

    def test_upload_csv(self, client):
        response = client.post(
            "/datasets",
            files={"file": ("sample.csv", CSV_BYTES, "text/csv")},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Successfully uploaded 2 records"
        assert body["dataset"]["columns"] == [
            "Segment", "Units Sold", "Sales", "Profit", "Year",
        ]
        assert body["dataset"]["row_count"] == 2

    def test_rejects_non_csv(self, client):
        response = client.post(
            "/datasets",
            files={"file": ("report.pdf", b"%PDF", "application/pdf")},
        )
        assert response.status_code == 400

    def test_rejects_empty_file(self, client):
        response = client.post(
            "/datasets",
            files={"file": ("empty.csv", b"", "text/csv")},
        )
        assert response.status_code == 400

    def test_rejects_header_only(self, client):
        response = client.post(
            "/datasets",
            files={"file": ("header.csv", b"A,B\n", "text/csv")},
        )
        assert response.status_code == 400
        assert "No valid records" in response.json()["detail"]


class TestCalculateKPIs:

    def test_kpis_over_stored_dataset(self, client):
        with patch(
            "app.api.kpis.load_datasets",
            new=AsyncMock(return_value=[_dataset()]),
        ):
            response = client.post(
                "/kpis",
                json={"dataset_ids": [1], "analysis_config": {"comparison_type": "yoy"}},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["kpis"]["total_sales"] == 5000.0
        assert body["kpis"]["comparison"]["state"] == "computed"
        assert body["kpis"]["total_cogs"] is None
        assert "- Total COGS: N/A" in body["summary"]
        assert body["dataset_ids"] == [1]

    def test_unknown_datasets_404(self, client):
        with patch("app.api.kpis.load_datasets", new=AsyncMock(return_value=[])):
            response = client.post("/kpis", json={"dataset_ids": [99]})
        assert response.status_code == 404

    def test_empty_id_list_is_invalid(self, client):
        response = client.post("/kpis", json={"dataset_ids": []})
        assert response.status_code == 422


class TestAdminUsage:

    def test_counts_owned_rows(self, client, session):
        session.get = AsyncMock(return_value=MagicMock(id=7))
        result = MagicMock()
        result.scalar.return_value = 3
        session.execute = AsyncMock(return_value=result)

        response = client.get("/admin/keys/7/usage")

        assert response.status_code == 200
        assert response.json() == {
            "key_id": 7,
            "datasets": 3,
            "statement_records": 3,
            "embedding_chunks": 3,
            "reports": 3,
        }
        assert session.execute.await_count == 4

    def test_unknown_key_404(self, client, session):
        session.get = AsyncMock(return_value=None)
        response = client.get("/admin/keys/99/usage")
        assert response.status_code == 404

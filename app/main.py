# =============================================================================
# FastAPI Application — Entry Point
# =============================================================================
#
# Run with:  uvicorn app.main:app --reload
# Worker:    celery -A app.workers.celery_app worker --loglevel=info
#
# Startup creates the pgvector extension and any missing tables. There is no
# migration tool; schema changes to existing tables are applied by hand.
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from app.api import admin, datasets, embeddings, kpis, reports
from app.config import settings
from app.db.engine import async_engine
from app.db.models import Base
from app.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with async_engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.app_name, settings.app_version)
    yield
    await async_engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Upload tabular financial data, compute KPIs, search embedded "
        "statement records and generate MD&A reports."
    ),
    lifespan=lifespan,
)

app.include_router(datasets.router)
app.include_router(kpis.router)
app.include_router(embeddings.router)
app.include_router(reports.router)
app.include_router(admin.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(
        version=settings.app_version,
        service=settings.app_name,
    )

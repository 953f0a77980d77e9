# =============================================================================
# Database Engines & Sessions
# =============================================================================
#
#   async_engine (asyncpg)  — FastAPI handlers, pgvector search
#   sync engine  (psycopg2) — Celery embedding worker, built on first use
#
# SESSION LIFECYCLE (both flavours): open → yield → commit → close, with a
# rollback instead of the commit when the body raises.
#
# Handlers receive their session through Depends(get_async_session) and
# never commit partially; PgVectorStore opens its own sessions from
# async_session_factory / get_sync_session because it runs outside the
# request dependency graph (worker task, report graph).
# =============================================================================

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings

POOL_SIZE = 5
MAX_OVERFLOW = 10

async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=POOL_SIZE,
    max_overflow=MAX_OVERFLOW,
)

# expire_on_commit=False: async sessions cannot lazy-load expired attributes
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@lru_cache
def _sync_session_factory() -> sessionmaker[Session]:
    # psycopg2 is only imported by the worker process
    engine = create_engine(
        settings.database_url_sync,
        echo=settings.debug,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
    )
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    Sync session for the Celery worker.

        with get_sync_session() as session:
            records = load_statement_records_sync(session, owner_id, ids)
    """
    session = _sync_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

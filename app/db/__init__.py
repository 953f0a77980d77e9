# =============================================================================
# Database Package
# =============================================================================
# Async/sync SQLAlchemy engines, session helpers, and ORM models.
#
# Key exports:
#   - get_async_session: FastAPI dependency for database sessions
#   - get_sync_session:  context manager for Celery workers
#   - FinancialDataset, StatementRecord, EmbeddingChunk, GeneratedReport,
#     ApiKey: ORM models (see models.py)
# =============================================================================

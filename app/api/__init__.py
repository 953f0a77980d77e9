# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for one feature:
#   - datasets.py: CSV upload, dataset listing, column vocabulary
#   - kpis.py: flexible KPIs, statement records and statement KPIs
#   - embeddings.py: record embedding (Celery or inline) and similarity search
#   - reports.py: MD&A report generation and retrieval
#   - admin.py: API key management
#   - deps.py: shared dependencies (API key auth, scope checks)
# =============================================================================

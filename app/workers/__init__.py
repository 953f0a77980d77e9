# =============================================================================
# Workers Package — Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: embed_statement_records (render → chunk → embed → store)
# =============================================================================

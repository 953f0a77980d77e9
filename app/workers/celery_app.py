# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Celery runs the record-embedding pipeline in the background:
#   Statement records → Render text → Chunk → Embed → Store
#
# ARCHITECTURE:
#   FastAPI (producer) → Redis db 0 (broker) → Celery worker → Redis db 1 (results)
#
# The API returns a task id immediately; GET /embeddings/{task_id} reads
# the task state from the result backend.
# =============================================================================

from celery import Celery

from app.config import settings

celery_app = Celery(
    "app.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # JSON only: pickle can execute code on deserialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Acknowledge after completion; a crashed worker's task is re-queued
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # SIGTERM after 5 minutes, SIGKILL after 10
    task_soft_time_limit=300,
    task_time_limit=600,

    result_expires=3600,

    include=["app.workers.tasks"],
)

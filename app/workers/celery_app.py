"""
Celery Application Configuration

Only the outcome-event relay runs here; order events themselves are handled
synchronously by the push endpoint.
"""
from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "customer_service",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.workers.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue="customer-service",
    task_routes={"app.workers.tasks.publish_outcome_events": {"queue": "customer-service-relay"}},
    task_soft_time_limit=60,
    task_time_limit=90,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
)

celery_app.conf.beat_schedule = {
    "publish-outcome-events": {
        "task": "app.workers.tasks.publish_outcome_events",
        "schedule": settings.OUTCOME_PUBLISH_INTERVAL_SECONDS,
    },
}

"""
Celery application: broker and result backend from settings.
Tasks are in app.workers.tasks; beat runs the orphaned blob sweep.
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.runtime",
        "app.workers.tasks.reconcile_blobs",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "reconcile-orphaned-blobs": {
            "task": "app.workers.tasks.reconcile_blobs.reconcile_orphaned_blobs",
            "schedule": crontab(minute=f"*/{settings.cleanup_interval_minutes}"),
        },
    },
)

celery_app.conf.task_routes = {
    "app.workers.tasks.reconcile_blobs.reconcile_orphaned_blobs": {"queue": "maintenance"},
}

celery_app.autodiscover_tasks(["app.workers.tasks"])

"""
Celery application: broker and result backend from settings.
Tasks are in app.workers.tasks (expiry sweep, audit events).
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.sweep_expired",
        "app.workers.tasks.audit",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=300,
    result_expires=86400,
    beat_schedule={
        "sweep-expired-purchases": {
            "task": "app.workers.tasks.sweep_expired.sweep_expired_purchases",
            "schedule": crontab(minute=f"*/{settings.expiry_sweep_minutes}"),
        },
    },
)

celery_app.conf.task_routes = {
    "app.workers.tasks.audit.record_audit_event": {"queue": "audit"},
}

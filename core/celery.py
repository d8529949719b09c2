from celery import Celery
from celery.schedules import crontab

from core.config import settings

broker_url = settings.REDIS_URL
backend_url = settings.REDIS_URL

celery_app = Celery(
    "storefront_payments",
    broker=broker_url,
    backend=backend_url,
    include=["tasks.reconciliation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_always_eager=settings.TESTING,
    task_eager_propagates=settings.TESTING,
    beat_schedule={
        "reconcile-previous-day": {
            "task": "tasks.reconciliation_tasks.reconcile_previous_day",
            "schedule": crontab(hour=settings.RECONCILIATION_HOUR, minute=0),
        },
    },
)

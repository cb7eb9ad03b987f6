"""
Celery application configuration.
"""

from celery import Celery
from celery.schedules import crontab

from prosets.config import settings

celery_app = Celery(
    "prosets",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "prosets.workers.download_counters",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

celery_app.conf.beat_schedule = {
    # Recompute assets.downloads from the downloads log
    "hourly-download-counter-reconciliation": {
        "task": "prosets.workers.download_counters.reconcile_download_counters",
        "schedule": crontab(minute=15, hour="*"),
    },
}

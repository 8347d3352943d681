# rental_lifecycle/workers/celery_app.py
from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from ..config import settings

BROKER = settings.celery_broker_url or os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
BACKEND = settings.celery_result_backend or os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

celery_app = Celery(
    "rental_lifecycle",
    broker=BROKER,
    backend=BACKEND,
    include=["rental_lifecycle.workers.tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

# notifications are chatty and cheap; keep them off the scheduled-jobs queue
celery_app.conf.task_routes = {
    "rental_lifecycle.workers.tasks.send_notification": {"queue": "notifications"},
    "rental_lifecycle.workers.tasks.expire_contracts": {"queue": "maintenance"},
}

celery_app.conf.beat_schedule = {
    "expire-contracts-daily": {
        "task": "rental_lifecycle.workers.tasks.expire_contracts",
        "schedule": crontab(hour=int(settings.contract_expiry_hour_utc), minute=0),
    },
}

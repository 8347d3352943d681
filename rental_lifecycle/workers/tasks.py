# rental_lifecycle/workers/tasks.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from ..db import SessionLocal
from ..services.lifecycle_service import LifecycleService
from ..services.notifications import PendingNotification, store_notification
from .celery_app import celery_app

log = logging.getLogger("rental_lifecycle.workers")


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,
    name="rental_lifecycle.workers.tasks.send_notification",
)
def send_notification(self, recipient_id: int, event: str, payload: Optional[dict[str, Any]] = None) -> dict:
    """Persist one in-app notification. Retries on storage errors; the lifecycle op has already committed."""
    db = SessionLocal()
    try:
        row = store_notification(db, PendingNotification(int(recipient_id), str(event), dict(payload or {})))
        db.commit()
        return {"ok": True, "notification_id": int(row.id)}
    except Exception as e:
        db.rollback()
        log.warning("notification_store_failed", exc_info=True, extra={"user_id": recipient_id, "event": event})
        raise self.retry(exc=e)
    finally:
        db.close()


@celery_app.task(name="rental_lifecycle.workers.tasks.expire_contracts")
def expire_contracts(as_of: Optional[str] = None) -> dict:
    """Daily sweep: ACTIVE contracts whose end_date has passed become EXPIRED."""
    cutoff = date.fromisoformat(as_of) if as_of else None
    db = SessionLocal()
    try:
        expired = LifecycleService(db).expire_contracts(as_of=cutoff)
        log.info("contracts_expired", extra={"count": expired})
        return {"ok": True, "expired": expired}
    finally:
        db.close()

# rental_lifecycle/services/notifications.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..enums import ContractStatus, EntityType
from ..models import Notification

log = logging.getLogger("rental_lifecycle.notifications")


BOOKING_CREATED = "booking_created"
CONTRACT_CREATED = "contract_created"
PAYMENTS_GENERATED = "payments_generated"

# transitions whose event name differs from "<entity>_<status>"
_TRANSITION_EVENT_OVERRIDES: dict[tuple[EntityType, str], str] = {
    (EntityType.CONTRACT, ContractStatus.ACTIVE.value): "contract_signed",
}


def transition_event(entity_type: EntityType, status: str) -> str:
    key = (EntityType(entity_type), str(status).upper())
    return _TRANSITION_EVENT_OVERRIDES.get(key, f"{key[0].value}_{key[1].lower()}")


@dataclass(frozen=True)
class PendingNotification:
    recipient_id: int
    event: str
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher:
    """Delivers one notification. Implementations may raise; the outbox absorbs it."""

    def notify(self, recipient_id: int, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class NullDispatcher(NotificationDispatcher):
    def notify(self, recipient_id: int, event: str, payload: dict[str, Any]) -> None:
        return None


class InlineDispatcher(NotificationDispatcher):
    """Writes the Notification row in its own short session (never the caller's)."""

    def __init__(self, session_factory=None) -> None:
        if session_factory is None:
            from ..db import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def notify(self, recipient_id: int, event: str, payload: dict[str, Any]) -> None:
        db: Session = self._session_factory()
        try:
            store_notification(db, PendingNotification(recipient_id, event, dict(payload or {})))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class CeleryDispatcher(NotificationDispatcher):
    def notify(self, recipient_id: int, event: str, payload: dict[str, Any]) -> None:
        from ..workers.tasks import send_notification

        send_notification.delay(int(recipient_id), str(event), dict(payload or {}))


def store_notification(db: Session, note: PendingNotification) -> Notification:
    row = Notification(
        recipient_id=int(note.recipient_id),
        event=str(note.event),
        payload_json=json.dumps(note.payload or {}, sort_keys=True, default=str),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def dispatcher_from_settings() -> NotificationDispatcher:
    if not settings.notifications_enabled:
        return NullDispatcher()
    if (settings.notification_backend or "").strip().lower() == "celery":
        return CeleryDispatcher()
    return InlineDispatcher()


class Outbox:
    """
    Notifications collected during a transaction and released after it commits.

    Nothing is sent for a rolled-back operation: callers only call flush()
    once the unit of work has committed, and discard() otherwise.
    """

    def __init__(self) -> None:
        self._items: list[PendingNotification] = []

    def add(self, recipient_ids: Iterable[Optional[int]], event: str, payload: dict[str, Any]) -> None:
        seen: set[int] = set()
        for rid in recipient_ids:
            if rid is None or int(rid) in seen:
                continue
            seen.add(int(rid))
            self._items.append(PendingNotification(recipient_id=int(rid), event=event, payload=dict(payload)))

    def discard(self) -> None:
        self._items.clear()

    def flush(self, dispatcher: NotificationDispatcher) -> int:
        delivered = 0
        items, self._items = self._items, []
        for note in items:
            try:
                dispatcher.notify(note.recipient_id, note.event, dict(note.payload))
                delivered += 1
            except Exception:
                log.warning(
                    "notification_dispatch_failed",
                    exc_info=True,
                    extra={"user_id": note.recipient_id, "event": note.event},
                )
        return delivered

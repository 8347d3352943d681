from __future__ import annotations

import json
from datetime import date

from sqlalchemy import select

from conftest import RecordingDispatcher
from rental_lifecycle import db as db_module
from rental_lifecycle.config import settings
from rental_lifecycle.enums import EntityType
from rental_lifecycle.models import Notification
from rental_lifecycle.services import notifications
from rental_lifecycle.services.lifecycle_service import LifecycleService
from rental_lifecycle.services.notifications import (
    CeleryDispatcher,
    InlineDispatcher,
    NullDispatcher,
    Outbox,
    dispatcher_from_settings,
    transition_event,
)
from rental_lifecycle.workers import tasks


def _stored(session_factory) -> list[Notification]:
    db = session_factory()
    try:
        return list(db.scalars(select(Notification).order_by(Notification.id.asc())).all())
    finally:
        db.close()


def test_transition_event_names():
    assert transition_event(EntityType.BOOKING, "CONFIRMED") == "booking_confirmed"
    assert transition_event(EntityType.CONTRACT, "ACTIVE") == "contract_signed"
    assert transition_event(EntityType.PAYMENT, "paid") == "payment_paid"


def test_inline_dispatcher_persists_a_notification_row(session_factory, make):
    tenant = make.user("tenant")

    InlineDispatcher(session_factory).notify(tenant.id, "booking_confirmed", {"booking_id": 7})

    rows = _stored(session_factory)
    assert [(r.recipient_id, r.event) for r in rows] == [(tenant.id, "booking_confirmed")]
    assert json.loads(rows[0].payload_json) == {"booking_id": 7}
    assert rows[0].read_at is None


def test_inline_dispatcher_is_the_default_for_the_service(session_factory, make, monkeypatch):
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)
    monkeypatch.setattr(settings, "notifications_enabled", True)
    monkeypatch.setattr(settings, "notification_backend", "inline")

    landlord = make.user("landlord")
    tenant = make.user("tenant")
    prop = make.property(landlord)

    db = session_factory()
    try:
        svc = LifecycleService(db, today=lambda: date(2025, 1, 1))
        svc.create_booking(property_id=prop.id, tenant_id=tenant.id, start_date="2025-03-01", end_date="2025-03-10")
    finally:
        db.close()

    assert [(r.recipient_id, r.event) for r in _stored(session_factory)] == [(landlord.id, "booking_created")]


def test_dispatcher_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", False)
    assert isinstance(dispatcher_from_settings(), NullDispatcher)

    monkeypatch.setattr(settings, "notifications_enabled", True)
    monkeypatch.setattr(settings, "notification_backend", "celery")
    assert isinstance(dispatcher_from_settings(), CeleryDispatcher)

    monkeypatch.setattr(settings, "notification_backend", "inline")
    assert isinstance(dispatcher_from_settings(), InlineDispatcher)


def test_celery_dispatcher_enqueues_send_notification(monkeypatch):
    calls = []
    monkeypatch.setattr(tasks.send_notification, "delay", lambda *args: calls.append(args))

    CeleryDispatcher().notify(3, "payments_generated", {"count": 5})

    assert calls == [(3, "payments_generated", {"count": 5})]


def test_send_notification_task_runs_eagerly(session_factory, make, monkeypatch):
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)
    landlord = make.user("landlord")

    result = tasks.send_notification.apply(args=(landlord.id, "contract_signed", {"contract_id": 4})).get()

    assert result["ok"] is True
    rows = _stored(session_factory)
    assert [r.id for r in rows] == [result["notification_id"]]
    assert rows[0].event == "contract_signed"


def test_outbox_dedupes_recipients_and_skips_missing():
    sent = RecordingDispatcher()
    box = Outbox()
    box.add([1, None, 1, 2], "booking_cancelled", {"booking_id": 9})

    assert box.flush(sent) == 2
    assert [(rid, e) for rid, e, _ in sent.sent] == [(1, "booking_cancelled"), (2, "booking_cancelled")]
    assert box.flush(sent) == 0


def test_discarded_outbox_delivers_nothing():
    sent = RecordingDispatcher()
    box = Outbox()
    box.add([1], "booking_created", {})
    box.discard()

    assert box.flush(sent) == 0
    assert sent.sent == []


def test_failing_dispatcher_is_logged_not_raised(caplog):
    box = Outbox()
    box.add([1, 2], "deal_new", {})

    with caplog.at_level("WARNING", logger=notifications.log.name):
        assert box.flush(RecordingDispatcher(fail=True)) == 0
    assert [r.getMessage() for r in caplog.records] == ["notification_dispatch_failed"] * 2

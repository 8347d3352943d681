# tests/conftest.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy.orm import sessionmaker

from rental_lifecycle import models  # noqa: F401
from rental_lifecycle.db import Base, build_engine
from rental_lifecycle.enums import ContractStatus, DealStatus, PaymentStatus, PaymentType, PropertyStatus
from rental_lifecycle.models import AppUser, Booking, Client, Contract, Deal, Payment, Property
from rental_lifecycle.services.lifecycle_service import LifecycleService
from rental_lifecycle.services.notifications import NotificationDispatcher

TODAY = date(2025, 1, 1)
NOW = datetime(2025, 1, 1, 9, 30)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[int, str, dict]] = []
        self.fail = fail

    def notify(self, recipient_id, event, payload) -> None:
        if self.fail:
            raise RuntimeError("dispatcher down")
        self.sent.append((int(recipient_id), event, dict(payload)))

    def events(self) -> list[str]:
        return [e for _, e, _ in self.sent]


class Factory:
    """Rows committed straight away, the way a CRUD layer would have left them."""

    def __init__(self, db) -> None:
        self.db = db
        self._n = 0

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def user(self, name: str = "user"):
        self._n += 1
        return self._save(AppUser(email=f"{name}{self._n}@example.test", display_name=name))

    def property(self, owner, **kw):
        kw.setdefault("title", "2BR flat")
        kw.setdefault("monthly_rent", 3000.0)
        kw.setdefault("deposit", 3000.0)
        kw.setdefault("status", PropertyStatus.AVAILABLE.value)
        return self._save(Property(owner_id=owner.id, **kw))

    def client(self, owner, **kw):
        kw.setdefault("first_name", "Ada")
        kw.setdefault("last_name", "Lovelace")
        return self._save(Client(owner_id=owner.id, **kw))

    def booking(self, prop, tenant, start: date, end: date, status: str = "PENDING"):
        return self._save(
            Booking(
                owner_id=prop.owner_id,
                property_id=prop.id,
                tenant_id=tenant.id,
                start_date=start,
                end_date=end,
                status=status,
            )
        )

    def deal(self, prop, **kw):
        kw.setdefault("title", "Lease deal")
        kw.setdefault("status", DealStatus.DRAFT.value)
        return self._save(Deal(owner_id=prop.owner_id, property_id=prop.id, **kw))

    def contract(self, prop, **kw):
        kw.setdefault("start_date", date(2025, 2, 1))
        kw.setdefault("end_date", date(2026, 2, 1))
        kw.setdefault("monthly_rent", float(prop.monthly_rent))
        kw.setdefault("deposit", float(prop.deposit or 0.0))
        kw.setdefault("status", ContractStatus.DRAFT.value)
        return self._save(Contract(owner_id=prop.owner_id, property_id=prop.id, **kw))

    def payment(self, owner_id: int, **kw):
        kw.setdefault("type", PaymentType.RENT.value)
        kw.setdefault("status", PaymentStatus.PENDING.value)
        kw.setdefault("amount", 1000.0)
        return self._save(Payment(owner_id=owner_id, **kw))


@pytest.fixture()
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def make(db):
    return Factory(db)


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def service(db, dispatcher):
    return LifecycleService(db, dispatcher=dispatcher, today=lambda: TODAY, now=lambda: NOW)

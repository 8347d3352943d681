# rental_lifecycle/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..enums import PropertyStatus
from ..models import AppUser, Property


@dataclass(frozen=True)
class SeedResult:
    landlord_id: int
    tenant_id: int
    property_id: Optional[int]


def _get_or_create_user(db: Session, email: str, display_name: str) -> AppUser:
    row = db.scalar(select(AppUser).where(AppUser.email == email))
    if row:
        return row
    row = AppUser(email=email, display_name=display_name)
    db.add(row)
    db.flush()
    return row


def _get_or_create_property(db: Session, *, owner_id: int, title: str, monthly_rent: float) -> Property:
    row = db.scalar(select(Property).where(Property.owner_id == int(owner_id), Property.title == title))
    if row:
        return row
    row = Property(
        owner_id=int(owner_id),
        title=title,
        city="Lisbon",
        monthly_rent=float(monthly_rent),
        deposit=float(monthly_rent),
        status=PropertyStatus.AVAILABLE.value,
    )
    db.add(row)
    db.flush()
    return row


def seed_demo(
    *,
    landlord_email: str = "landlord@demo.local",
    tenant_email: str = "tenant@demo.local",
    monthly_rent: float = 1500.0,
    create_sample_property: bool = True,
    db: Optional[Session] = None,
) -> SeedResult:
    """Idempotent: re-running returns the same ids."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        landlord = _get_or_create_user(db, landlord_email, "Demo Landlord")
        tenant = _get_or_create_user(db, tenant_email, "Demo Tenant")
        prop_id: Optional[int] = None
        if create_sample_property:
            prop = _get_or_create_property(db, owner_id=landlord.id, title="Demo flat", monthly_rent=monthly_rent)
            prop_id = int(prop.id)
        db.commit()
        return SeedResult(landlord_id=int(landlord.id), tenant_id=int(tenant.id), property_id=prop_id)
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()

# rental_lifecycle/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import EntityType, RemovalAction


# -------------------- Bookings --------------------

class BookingCreate(BaseModel):
    property_id: int
    start_date: date
    end_date: date
    message: Optional[str] = Field(default=None, max_length=2000)


class BookingOut(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    start_date: date
    end_date: date
    total_price: float
    message: Optional[str] = None
    status: str
    model_config = ConfigDict(from_attributes=True)


# -------------------- Transitions --------------------

class TransitionIn(BaseModel):
    status: str = Field(min_length=1, max_length=20)
    # optimistic-concurrency guard: the status the client last saw
    expected_status: Optional[str] = Field(default=None, max_length=20)


class EntityStatusOut(BaseModel):
    entity_type: EntityType
    id: int
    status: str
    signed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -------------------- Payments --------------------

class GeneratePaymentsIn(BaseModel):
    deal_id: Optional[int] = None
    contract_id: Optional[int] = None
    months: Optional[int] = Field(default=None, ge=1, le=120)
    start_date: Optional[date] = None


class PaymentOut(BaseModel):
    id: int
    type: str
    status: str
    amount: float
    due_date: Optional[date] = None
    description: Optional[str] = None
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    contract_id: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Removals --------------------

class RemovalIn(BaseModel):
    entity_type: EntityType
    entity_id: int
    action: RemovalAction


class CascadeSummaryOut(BaseModel):
    action: RemovalAction
    root_type: EntityType
    root_id: int
    counts: dict[str, int]
    total: int


# -------------------- Contracts --------------------

class ContractTermsIn(BaseModel):
    monthly_rent: Optional[float] = None
    deposit: Optional[float] = None
    terms: Optional[str] = None


class ContractOut(BaseModel):
    id: int
    property_id: int
    booking_id: Optional[int] = None
    deal_id: Optional[int] = None
    tenant_id: Optional[int] = None
    start_date: date
    end_date: date
    monthly_rent: float
    deposit: float
    terms: Optional[str] = None
    status: str
    signed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

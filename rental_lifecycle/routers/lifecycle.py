# rental_lifecycle/routers/lifecycle.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..enums import EntityType
from ..schemas import (
    BookingCreate,
    BookingOut,
    CascadeSummaryOut,
    ContractOut,
    ContractTermsIn,
    EntityStatusOut,
    GeneratePaymentsIn,
    PaymentOut,
    RemovalIn,
    TransitionIn,
)
from ..services.lifecycle_service import LifecycleService
from ..services.notifications import NotificationDispatcher, dispatcher_from_settings

router = APIRouter(tags=["lifecycle"])


def get_dispatcher() -> NotificationDispatcher:
    return dispatcher_from_settings()


def get_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LifecycleService:
    return LifecycleService(db, dispatcher=dispatcher)


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create_booking(
    payload: BookingCreate,
    svc: LifecycleService = Depends(get_service),
    p: Principal = Depends(get_principal),
):
    return svc.create_booking(
        property_id=payload.property_id,
        tenant_id=p.user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        message=payload.message,
    )


@router.post("/transitions/{entity_type}/{entity_id}", response_model=EntityStatusOut)
def transition_status(
    entity_type: EntityType,
    entity_id: int,
    payload: TransitionIn,
    svc: LifecycleService = Depends(get_service),
    p: Principal = Depends(get_principal),
):
    row = svc.transition_status(
        entity_type=entity_type,
        entity_id=entity_id,
        requested_status=payload.status,
        actor_id=p.user_id,
        expected_status=payload.expected_status,
    )
    return EntityStatusOut(
        entity_type=entity_type,
        id=int(row.id),
        status=row.status,
        signed_at=getattr(row, "signed_at", None),
        paid_at=getattr(row, "paid_at", None),
        updated_at=getattr(row, "updated_at", None),
    )


@router.post("/payments/generate", response_model=list[PaymentOut], status_code=201)
def generate_payments(
    payload: GeneratePaymentsIn,
    svc: LifecycleService = Depends(get_service),
    p: Principal = Depends(get_principal),
):
    return svc.generate_payments(
        owner_id=p.user_id,
        months=payload.months or settings.default_schedule_months,
        deal_id=payload.deal_id,
        contract_id=payload.contract_id,
        start_date=payload.start_date,
    )


@router.post("/removals", response_model=CascadeSummaryOut)
def remove_entity(
    payload: RemovalIn,
    svc: LifecycleService = Depends(get_service),
    p: Principal = Depends(get_principal),
):
    summary = svc.remove_entity(
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        action=payload.action,
        actor_id=p.user_id,
    )
    return summary.as_dict()


@router.patch("/contracts/{contract_id}/terms", response_model=ContractOut)
def update_contract_terms(
    contract_id: int,
    payload: ContractTermsIn,
    svc: LifecycleService = Depends(get_service),
    p: Principal = Depends(get_principal),
):
    return svc.update_contract_terms(
        contract_id=contract_id,
        actor_id=p.user_id,
        monthly_rent=payload.monthly_rent,
        deposit=payload.deposit,
        terms=payload.terms,
    )

# rental_lifecycle/services/lifecycle_service.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..domain import cascade
from ..domain.audit import audit_write
from ..domain.booking_conflicts import find_conflicts, validate_range
from ..domain.payment_schedule import CommercialTerms, generate_schedule
from ..domain.transitions import Effect, TransitionDecision, check_contract_terms_editable, decide_transition
from ..enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    ContractStatus,
    EntityType,
    PropertyStatus,
    RemovalAction,
)
from ..errors import (
    ConflictingUpdate,
    DateConflict,
    IllegalTransition,
    InvalidRange,
    InvalidTerms,
    PropertyUnavailable,
    SelfBooking,
)
from ..models import Booking, Contract, Payment, Property
from .notifications import (
    BOOKING_CREATED,
    CONTRACT_CREATED,
    PAYMENTS_GENERATED,
    NotificationDispatcher,
    Outbox,
    dispatcher_from_settings,
    transition_event,
)
from .ownership import (
    must_get_entity,
    must_get_owned_contract,
    must_get_owned_deal,
    must_get_user,
    resolve_role,
)

log = logging.getLogger("rental_lifecycle.lifecycle")

TRANSITIONABLE = frozenset({EntityType.BOOKING, EntityType.CONTRACT, EntityType.PAYMENT, EntityType.DEAL})


def _snapshot(row: Any, *fields: str) -> dict[str, Any]:
    return {f: getattr(row, f, None) for f in fields}


class LifecycleService:
    """
    The four produced operations (plus contract term edits) over one Session.

    Every public method is one transaction: it commits on success, rolls back
    on any error, and only then releases the notifications it queued.
    Errors are the typed LifecycleError family; nothing is retried here.
    """

    def __init__(
        self,
        db: Session,
        *,
        dispatcher: Optional[NotificationDispatcher] = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher if dispatcher is not None else dispatcher_from_settings()
        self._today = today
        self._now = now

    @contextmanager
    def _operation(self) -> Iterator[Outbox]:
        outbox = Outbox()
        try:
            with unit_of_work(self.db):
                yield outbox
        except Exception:
            outbox.discard()
            raise
        outbox.flush(self.dispatcher)

    # -------------------------------------------------------------------------
    # createBooking
    # -------------------------------------------------------------------------
    def create_booking(
        self,
        *,
        property_id: int,
        tenant_id: int,
        start_date: Any,
        end_date: Any,
        message: Optional[str] = None,
    ) -> Booking:
        rng = validate_range(start_date, end_date)
        if settings.reject_past_bookings and rng.start < self._today():
            raise InvalidRange("start_date cannot be in the past", start=rng.start.isoformat())

        with self._operation() as outbox:
            db = self.db
            # the property row lock serialises every booking insert for this property
            prop: Property = must_get_entity(db, EntityType.PROPERTY, property_id, for_update=True)
            must_get_user(db, user_id=tenant_id)

            if prop.status != PropertyStatus.AVAILABLE.value:
                raise PropertyUnavailable(
                    "property is not available for booking",
                    property_id=int(prop.id),
                    status=prop.status,
                )
            if int(prop.owner_id) == int(tenant_id):
                raise SelfBooking("you cannot book your own property", property_id=int(prop.id))

            candidates = db.scalars(
                select(Booking).where(
                    Booking.property_id == prop.id,
                    Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
                    Booking.start_date < rng.end,
                    Booking.end_date > rng.start,
                )
            ).all()
            conflicts = find_conflicts(rng, candidates)
            if conflicts:
                raise DateConflict(
                    "property is already booked for these dates",
                    property_id=int(prop.id),
                    conflicting_booking_ids=sorted(int(b.id) for b in conflicts),
                )

            total = round(float(prop.monthly_rent or 0.0) * rng.nights / int(settings.booking_days_per_month), 2)
            booking = Booking(
                owner_id=prop.owner_id,
                property_id=prop.id,
                tenant_id=int(tenant_id),
                start_date=rng.start,
                end_date=rng.end,
                total_price=total,
                message=message,
                status=BookingStatus.PENDING.value,
                created_at=self._now(),
            )
            db.add(booking)
            db.flush()

            audit_write(
                db,
                owner_id=int(prop.owner_id),
                actor_user_id=int(tenant_id),
                action="booking_created",
                entity_type=EntityType.BOOKING.value,
                entity_id=booking.id,
                after=_snapshot(booking, "property_id", "tenant_id", "start_date", "end_date", "total_price", "status"),
            )
            outbox.add(
                [prop.owner_id],
                BOOKING_CREATED,
                {
                    "booking_id": int(booking.id),
                    "property_id": int(prop.id),
                    "tenant_id": int(tenant_id),
                    "start_date": rng.start.isoformat(),
                    "end_date": rng.end.isoformat(),
                },
            )

        log.info(
            "booking_created",
            extra={"actor_id": int(tenant_id), "entity_type": "booking", "entity_id": int(booking.id)},
        )
        return booking

    # -------------------------------------------------------------------------
    # transitionStatus
    # -------------------------------------------------------------------------
    def transition_status(
        self,
        *,
        entity_type: EntityType | str,
        entity_id: int,
        requested_status: str,
        actor_id: int,
        expected_status: Optional[str] = None,
    ) -> Any:
        try:
            et = EntityType(entity_type)
        except ValueError:
            raise IllegalTransition(
                str(entity_type), "-", str(requested_status), message=f"unknown entity type {entity_type!r}"
            )
        if et not in TRANSITIONABLE:
            raise IllegalTransition(et.value, "-", str(requested_status), message=f"{et.value} has no status state machine")

        with self._operation() as outbox:
            db = self.db
            entity = must_get_entity(db, et, entity_id, for_update=True)

            if expected_status is not None and str(expected_status).strip().upper() != entity.status:
                raise ConflictingUpdate(
                    f"{et.value} status changed concurrently",
                    entity_type=et.value,
                    entity_id=int(entity.id),
                    expected=str(expected_status).strip().upper(),
                    actual=entity.status,
                )

            role = resolve_role(et, entity, actor_id)
            decision = decide_transition(et, entity, requested_status, role)
            self._compare_and_set(entity, decision)

            created_contract = None
            if decision.has(Effect.CREATE_DRAFT_CONTRACT) and settings.auto_create_contract_on_confirm:
                created_contract = self._ensure_draft_contract(entity)

            audit_write(
                db,
                owner_id=int(entity.owner_id),
                actor_user_id=int(actor_id),
                action=f"{et.value}_status_changed",
                entity_type=et.value,
                entity_id=entity.id,
                before={"status": decision.current},
                after={"status": decision.requested, "effects": [e.value for e in decision.effects]},
            )

            payload = {
                "entity_type": et.value,
                "entity_id": int(entity.id),
                "from": decision.current,
                "to": decision.requested,
            }
            outbox.add(self._counterparties(et, entity, actor_id), transition_event(et, decision.requested), payload)
            if created_contract is not None:
                outbox.add(
                    [created_contract.tenant_id],
                    CONTRACT_CREATED,
                    {"contract_id": int(created_contract.id), "booking_id": int(entity.id)},
                )

        log.info(
            "status_transition",
            extra={
                "actor_id": int(actor_id),
                "entity_type": et.value,
                "entity_id": int(entity.id),
                "from_status": decision.current,
                "to_status": decision.requested,
            },
        )
        return entity

    def _compare_and_set(self, entity: Any, decision: TransitionDecision) -> None:
        model = type(entity)
        now = self._now()
        values: dict[str, Any] = {"status": decision.requested, "updated_at": now}
        if decision.has(Effect.STAMP_SIGNED_AT):
            values["signed_at"] = now
        if decision.has(Effect.STAMP_PAID_AT):
            values["paid_at"] = now

        res = self.db.execute(
            update(model)
            .where(model.id == entity.id, model.status == decision.current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise ConflictingUpdate(
                f"{decision.entity_type.value} status changed concurrently",
                entity_type=decision.entity_type.value,
                entity_id=int(entity.id),
                expected=decision.current,
            )
        self.db.refresh(entity)

    def _ensure_draft_contract(self, booking: Booking) -> Optional[Contract]:
        db = self.db
        existing = db.scalar(select(Contract).where(Contract.booking_id == booking.id))
        if existing is not None:
            return None

        prop: Property = must_get_entity(db, EntityType.PROPERTY, booking.property_id)
        rent = float(prop.monthly_rent or 0.0)
        contract = Contract(
            owner_id=booking.owner_id,
            property_id=booking.property_id,
            booking_id=booking.id,
            tenant_id=booking.tenant_id,
            start_date=booking.start_date,
            end_date=booking.end_date,
            monthly_rent=rent,
            deposit=float(prop.deposit) if prop.deposit is not None else rent,
            status=ContractStatus.DRAFT.value,
            created_at=self._now(),
        )
        db.add(contract)
        db.flush()
        audit_write(
            db,
            owner_id=int(booking.owner_id),
            actor_user_id=None,
            action="contract_created_from_booking",
            entity_type=EntityType.CONTRACT.value,
            entity_id=contract.id,
            after=_snapshot(contract, "booking_id", "monthly_rent", "deposit", "start_date", "end_date", "status"),
        )
        return contract

    def _counterparties(self, et: EntityType, entity: Any, actor_id: int) -> list[int]:
        parties = [entity.owner_id]
        if et in (EntityType.BOOKING, EntityType.CONTRACT):
            parties.append(entity.tenant_id)
        elif et == EntityType.PAYMENT and entity.contract_id is not None:
            contract = self.db.get(Contract, entity.contract_id)
            if contract is not None:
                parties.append(contract.tenant_id)
        return [p for p in parties if p is not None and int(p) != int(actor_id)]

    # -------------------------------------------------------------------------
    # generatePayments
    # -------------------------------------------------------------------------
    def generate_payments(
        self,
        *,
        owner_id: int,
        months: int,
        deal_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        start_date: Optional[date] = None,
    ) -> list[Payment]:
        if (deal_id is None) == (contract_id is None):
            raise InvalidTerms("exactly one of deal_id or contract_id is required")

        with self._operation() as outbox:
            db = self.db
            terms, default_start = self._load_terms(owner_id=owner_id, deal_id=deal_id, contract_id=contract_id)
            first_due = start_date or default_start or self._today()
            drafts = generate_schedule(terms, months, first_due, utilities_rate=settings.utilities_rate)

            now = self._now()
            rows = [dict(d.as_row(), owner_id=int(owner_id), created_at=now) for d in drafts]
            payments = list(db.scalars(insert(Payment).returning(Payment, sort_by_parameter_order=True), rows).all())

            audit_write(
                db,
                owner_id=int(owner_id),
                actor_user_id=int(owner_id),
                action="payments_generated",
                entity_type=EntityType.CONTRACT.value if contract_id is not None else EntityType.DEAL.value,
                entity_id=contract_id if contract_id is not None else deal_id,
                after={"months": months, "count": len(payments), "first_due": first_due},
            )
            outbox.add(
                [owner_id],
                PAYMENTS_GENERATED,
                {"deal_id": terms.deal_id, "contract_id": terms.contract_id, "count": len(payments)},
            )

        log.info(
            "payments_generated",
            extra={"owner_id": int(owner_id), "count": len(payments), "months": months},
        )
        return payments

    def _load_terms(
        self,
        *,
        owner_id: int,
        deal_id: Optional[int],
        contract_id: Optional[int],
    ) -> tuple[CommercialTerms, Optional[date]]:
        db = self.db
        if contract_id is not None:
            contract = must_get_owned_contract(db, owner_id=owner_id, contract_id=contract_id)
            terms = CommercialTerms(
                monthly_rent=contract.monthly_rent,
                deposit=contract.deposit,
                property_id=contract.property_id,
                deal_id=contract.deal_id,
                contract_id=contract.id,
            )
            return terms, contract.start_date

        deal = must_get_owned_deal(db, owner_id=owner_id, deal_id=int(deal_id))
        rent = deal.monthly_rent
        if rent is None:
            prop = db.get(Property, deal.property_id)
            rent = prop.monthly_rent if prop is not None else None
        terms = CommercialTerms(
            monthly_rent=rent,
            deposit=deal.deposit,
            property_id=deal.property_id,
            deal_id=deal.id,
        )
        return terms, deal.start_date

    # -------------------------------------------------------------------------
    # removeEntity
    # -------------------------------------------------------------------------
    def remove_entity(
        self,
        *,
        entity_type: EntityType | str,
        entity_id: int,
        action: RemovalAction | str,
        actor_id: int,
    ) -> cascade.CascadeSummary:
        with self._operation():
            summary = cascade.remove(
                self.db,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                owner_id=actor_id,
                now=self._now(),
            )
            audit_write(
                self.db,
                owner_id=int(actor_id),
                actor_user_id=int(actor_id),
                action=f"{summary.root_type.value}_{summary.action.value}d",
                entity_type=summary.root_type.value,
                entity_id=summary.root_id,
                after=summary.as_dict(),
            )

        log.info(
            "entity_removed",
            extra={
                "actor_id": int(actor_id),
                "entity_type": summary.root_type.value,
                "entity_id": summary.root_id,
                "action": summary.action.value,
                "total": summary.total,
            },
        )
        return summary

    # -------------------------------------------------------------------------
    # contract financial terms
    # -------------------------------------------------------------------------
    def update_contract_terms(
        self,
        *,
        contract_id: int,
        actor_id: int,
        monthly_rent: Optional[float] = None,
        deposit: Optional[float] = None,
        terms: Optional[str] = None,
    ) -> Contract:
        if monthly_rent is not None and float(monthly_rent) <= 0:
            raise InvalidTerms("monthly rent must be positive", monthly_rent=monthly_rent)
        if deposit is not None and float(deposit) < 0:
            raise InvalidTerms("deposit cannot be negative", deposit=deposit)

        with self._operation():
            db = self.db
            contract: Contract = must_get_entity(db, EntityType.CONTRACT, contract_id, for_update=True)
            role = resolve_role(EntityType.CONTRACT, contract, actor_id)
            check_contract_terms_editable(contract, role)

            before = _snapshot(contract, "monthly_rent", "deposit", "terms")
            if monthly_rent is not None:
                contract.monthly_rent = float(monthly_rent)
            if deposit is not None:
                contract.deposit = float(deposit)
            if terms is not None:
                contract.terms = terms
            contract.updated_at = self._now()
            db.add(contract)
            db.flush()

            audit_write(
                db,
                owner_id=int(contract.owner_id),
                actor_user_id=int(actor_id),
                action="contract_terms_updated",
                entity_type=EntityType.CONTRACT.value,
                entity_id=contract.id,
                before=before,
                after=_snapshot(contract, "monthly_rent", "deposit", "terms"),
            )
        return contract

    # -------------------------------------------------------------------------
    # time-based expiry (driven by the scheduler)
    # -------------------------------------------------------------------------
    def expire_contracts(self, *, as_of: Optional[date] = None) -> int:
        """
        Move ACTIVE contracts whose end_date has passed to EXPIRED, acting as
        each contract's landlord. One transaction per contract; a contract that
        moved concurrently is skipped, not retried.
        """
        cutoff = as_of or self._today()
        with unit_of_work(self.db):
            due = self.db.execute(
                select(Contract.id, Contract.owner_id)
                .where(
                    Contract.status == ContractStatus.ACTIVE.value,
                    Contract.end_date < cutoff,
                )
                .order_by(Contract.id.asc())
            ).all()

        expired = 0
        for contract_id, owner_id in due:
            try:
                self.transition_status(
                    entity_type=EntityType.CONTRACT,
                    entity_id=int(contract_id),
                    requested_status=ContractStatus.EXPIRED.value,
                    actor_id=int(owner_id),
                    expected_status=ContractStatus.ACTIVE.value,
                )
                expired += 1
            except (ConflictingUpdate, IllegalTransition) as e:
                log.info(
                    "contract_expiry_skipped",
                    extra={"entity_type": "contract", "entity_id": int(contract_id), "reason": e.code},
                )
        return expired

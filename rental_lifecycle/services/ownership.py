# rental_lifecycle/services/ownership.py
from __future__ import annotations

from typing import Any, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..enums import ActorRole, EntityType
from ..errors import Forbidden, NotFound
from ..models import AppUser, Booking, Client, Contract, Deal, Payment, Property

T = TypeVar("T")

ENTITY_MODELS: dict[EntityType, type] = {
    EntityType.PROPERTY: Property,
    EntityType.CLIENT: Client,
    EntityType.BOOKING: Booking,
    EntityType.DEAL: Deal,
    EntityType.CONTRACT: Contract,
    EntityType.PAYMENT: Payment,
}


def must_get(db: Session, model: Type[T], entity_id: int, *, for_update: bool = False) -> T:
    """
    Load one row by id or raise NotFound.

    for_update=True takes a row lock (SELECT ... FOR UPDATE where supported)
    and refreshes any copy already sitting in the identity map, so the caller
    decides on what is committed right now rather than on a stale snapshot.
    """
    q = select(model).where(model.id == int(entity_id))
    if for_update:
        q = q.with_for_update().execution_options(populate_existing=True)
    row = db.scalar(q)
    if row is None:
        raise NotFound("record not found", entity_id=int(entity_id))
    return row


def must_get_entity(db: Session, entity_type: EntityType | str, entity_id: int, *, for_update: bool = False) -> Any:
    et = EntityType(entity_type)
    try:
        row = must_get(db, ENTITY_MODELS[et], entity_id, for_update=for_update)
    except NotFound:
        raise NotFound(f"{et.value} not found", entity_type=et.value, entity_id=int(entity_id))
    return row


def must_get_user(db: Session, *, user_id: int) -> AppUser:
    row = db.get(AppUser, int(user_id))
    if row is None:
        raise NotFound("user not found", user_id=int(user_id))
    return row


def must_get_owned_deal(db: Session, *, owner_id: int, deal_id: int) -> Deal:
    # other owners' deals are reported as missing, never as forbidden
    row = db.scalar(select(Deal).where(Deal.id == int(deal_id), Deal.owner_id == int(owner_id)))
    if row is None:
        raise NotFound("deal not found", entity_type=EntityType.DEAL.value, entity_id=int(deal_id))
    return row


def must_get_owned_contract(db: Session, *, owner_id: int, contract_id: int) -> Contract:
    row = db.scalar(select(Contract).where(Contract.id == int(contract_id), Contract.owner_id == int(owner_id)))
    if row is None:
        raise NotFound("contract not found", entity_type=EntityType.CONTRACT.value, entity_id=int(contract_id))
    return row


def resolve_role(entity_type: EntityType | str, entity: Any, actor_id: int) -> ActorRole:
    """
    Landlord = the owning user of the row (property owner / managing agent).
    Tenant   = the booking's or contract's tenant user.
    Anyone else has no business touching the row.
    """
    et = EntityType(entity_type)
    if int(getattr(entity, "owner_id")) == int(actor_id):
        return ActorRole.LANDLORD
    if et in (EntityType.BOOKING, EntityType.CONTRACT):
        tenant_id = getattr(entity, "tenant_id", None)
        if tenant_id is not None and int(tenant_id) == int(actor_id):
            return ActorRole.TENANT
    raise Forbidden(
        f"user is not a party to this {et.value}",
        entity_type=et.value,
        entity_id=getattr(entity, "id", None),
        actor_id=int(actor_id),
    )

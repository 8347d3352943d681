# rental_lifecycle/domain/transitions.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type

from ..enums import (
    ActorRole,
    BookingStatus,
    ContractStatus,
    DealStatus,
    EntityType,
    PaymentStatus,
)
from ..errors import Forbidden, IllegalTransition

# -----------------------------------------------------------------------------
# Status state machines
# -----------------------------------------------------------------------------
# One table per entity type:
#   current status -> { next status -> Edge(roles allowed, declared effects) }
#
# A status missing from the outer map, or mapping to {}, is terminal.
# Nothing here touches the database; the lifecycle service applies decisions.
# -----------------------------------------------------------------------------


class Effect(str, enum.Enum):
    STAMP_SIGNED_AT = "stamp_signed_at"
    STAMP_PAID_AT = "stamp_paid_at"
    CREATE_DRAFT_CONTRACT = "create_draft_contract"


LANDLORD: FrozenSet[ActorRole] = frozenset({ActorRole.LANDLORD})
EITHER: FrozenSet[ActorRole] = frozenset({ActorRole.LANDLORD, ActorRole.TENANT})


@dataclass(frozen=True)
class Edge:
    roles: FrozenSet[ActorRole]
    effects: Tuple[Effect, ...] = ()


TransitionTable = Dict[str, Dict[str, Edge]]


BOOKING_TRANSITIONS: TransitionTable = {
    BookingStatus.PENDING.value: {
        BookingStatus.CONFIRMED.value: Edge(LANDLORD, (Effect.CREATE_DRAFT_CONTRACT,)),
        BookingStatus.CANCELLED.value: Edge(EITHER),
    },
    BookingStatus.CONFIRMED.value: {
        BookingStatus.COMPLETED.value: Edge(LANDLORD),
        BookingStatus.CANCELLED.value: Edge(EITHER),
    },
    BookingStatus.COMPLETED.value: {},
    BookingStatus.CANCELLED.value: {},
}

CONTRACT_TRANSITIONS: TransitionTable = {
    ContractStatus.DRAFT.value: {
        ContractStatus.ACTIVE.value: Edge(EITHER, (Effect.STAMP_SIGNED_AT,)),
    },
    ContractStatus.ACTIVE.value: {
        ContractStatus.TERMINATED.value: Edge(EITHER),
        ContractStatus.EXPIRED.value: Edge(LANDLORD),
    },
    ContractStatus.EXPIRED.value: {},
    ContractStatus.TERMINATED.value: {},
}

# Payments and deals belong to the agent's own books: only the owning user moves them.
PAYMENT_TRANSITIONS: TransitionTable = {
    PaymentStatus.PENDING.value: {
        PaymentStatus.PROCESSING.value: Edge(LANDLORD),
        PaymentStatus.CANCELLED.value: Edge(LANDLORD),
        PaymentStatus.COMPLETED.value: Edge(LANDLORD, (Effect.STAMP_PAID_AT,)),
    },
    PaymentStatus.PROCESSING.value: {
        PaymentStatus.COMPLETED.value: Edge(LANDLORD, (Effect.STAMP_PAID_AT,)),
        PaymentStatus.FAILED.value: Edge(LANDLORD),
        PaymentStatus.CANCELLED.value: Edge(LANDLORD),
    },
    PaymentStatus.COMPLETED.value: {
        PaymentStatus.REFUNDED.value: Edge(LANDLORD),
    },
    PaymentStatus.FAILED.value: {
        PaymentStatus.PENDING.value: Edge(LANDLORD),
    },
    PaymentStatus.CANCELLED.value: {
        PaymentStatus.PENDING.value: Edge(LANDLORD),
    },
    PaymentStatus.REFUNDED.value: {},
}

DEAL_TRANSITIONS: TransitionTable = {
    DealStatus.DRAFT.value: {
        DealStatus.NEW.value: Edge(LANDLORD),
        DealStatus.CANCELLED.value: Edge(LANDLORD),
    },
    DealStatus.NEW.value: {
        DealStatus.IN_PROGRESS.value: Edge(LANDLORD),
        DealStatus.CANCELLED.value: Edge(LANDLORD),
    },
    DealStatus.IN_PROGRESS.value: {
        DealStatus.COMPLETED.value: Edge(LANDLORD),
        DealStatus.CANCELLED.value: Edge(LANDLORD),
    },
    DealStatus.COMPLETED.value: {},
    DealStatus.CANCELLED.value: {},
}

TRANSITIONS: Dict[EntityType, TransitionTable] = {
    EntityType.BOOKING: BOOKING_TRANSITIONS,
    EntityType.CONTRACT: CONTRACT_TRANSITIONS,
    EntityType.PAYMENT: PAYMENT_TRANSITIONS,
    EntityType.DEAL: DEAL_TRANSITIONS,
}

STATUS_ENUMS: Dict[EntityType, Type[enum.Enum]] = {
    EntityType.BOOKING: BookingStatus,
    EntityType.CONTRACT: ContractStatus,
    EntityType.PAYMENT: PaymentStatus,
    EntityType.DEAL: DealStatus,
}

# effect -> attribute that must still be empty for the effect to fire ("set once")
_ONCE_FIELDS: Dict[Effect, str] = {
    Effect.STAMP_SIGNED_AT: "signed_at",
    Effect.STAMP_PAID_AT: "paid_at",
}


@dataclass(frozen=True)
class TransitionDecision:
    entity_type: EntityType
    entity_id: Optional[int]
    current: str
    requested: str
    role: ActorRole
    effects: Tuple[Effect, ...] = field(default_factory=tuple)

    def has(self, effect: Effect) -> bool:
        return effect in self.effects


def _status_value(v: Any) -> str:
    return str(getattr(v, "value", v) or "").strip().upper()


def table_for(entity_type: EntityType | str) -> TransitionTable:
    et = EntityType(entity_type)
    try:
        return TRANSITIONS[et]
    except KeyError:
        raise IllegalTransition(et.value, "-", "-", message=f"{et.value} has no status state machine")


def allowed_next(entity_type: EntityType | str, current: Any, role: Optional[ActorRole] = None) -> set[str]:
    edges = table_for(entity_type).get(_status_value(current), {})
    if role is None:
        return set(edges)
    return {status for status, edge in edges.items() if role in edge.roles}


def is_terminal(entity_type: EntityType | str, status: Any) -> bool:
    return not table_for(entity_type).get(_status_value(status))


def decide_transition(
    entity_type: EntityType | str,
    entity: Any,
    requested: Any,
    role: ActorRole,
) -> TransitionDecision:
    """
    Decide whether `entity` may move to `requested` when acting as `role`.

    Raises IllegalTransition when the table has no such edge (terminal states
    have no self-loops, so repeating a terminal target fails too) and
    Forbidden when the edge exists but not for this role. Never mutates.
    """
    et = EntityType(entity_type)
    table = table_for(et)
    current = _status_value(getattr(entity, "status", None))
    target = _status_value(requested)

    valid = {s.value for s in STATUS_ENUMS[et]}
    if target not in valid:
        raise IllegalTransition(et.value, current, target, message=f"unknown {et.value} status: {target or '<empty>'}")

    edge = table.get(current, {}).get(target)
    if edge is None:
        raise IllegalTransition(et.value, current, target)

    if role not in edge.roles:
        raise Forbidden(
            f"{role.value} may not move {et.value} from {current} to {target}",
            entity_type=et.value,
            current=current,
            requested=target,
            role=role.value,
        )

    effects = tuple(
        e for e in edge.effects if e not in _ONCE_FIELDS or getattr(entity, _ONCE_FIELDS[e], None) is None
    )

    return TransitionDecision(
        entity_type=et,
        entity_id=getattr(entity, "id", None),
        current=current,
        requested=target,
        role=role,
        effects=effects,
    )


def check_contract_terms_editable(contract: Any, role: ActorRole) -> None:
    """Financial fields (rent, deposit, terms) are editable by the landlord while DRAFT only."""
    if role != ActorRole.LANDLORD:
        raise Forbidden("only the landlord may change contract terms", role=role.value)
    current = _status_value(getattr(contract, "status", None))
    if current != ContractStatus.DRAFT.value:
        raise IllegalTransition(
            EntityType.CONTRACT.value,
            current,
            current,
            message=f"contract terms are frozen once the contract leaves DRAFT (status={current})",
        )

# rental_lifecycle/domain/cascade.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..enums import (
    BookingStatus,
    ContractStatus,
    DealStatus,
    EntityType,
    PaymentStatus,
    PropertyStatus,
    RemovalAction,
)
from ..errors import Forbidden, NotFound
from ..models import Booking, Client, Contract, Deal, Payment, Property

# -----------------------------------------------------------------------------
# Cascade coordinator
# -----------------------------------------------------------------------------
# The dependency graph is declared once as (parent, child, foreign key) edges.
# Archive and delete share the same walk; only the per-type mutation differs.
# Callers own the transaction: this module flushes statements but never commits.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyEdge:
    parent: EntityType
    child: EntityType
    foreign_key: str


DEPENDENCY_EDGES: Tuple[DependencyEdge, ...] = (
    DependencyEdge(EntityType.PROPERTY, EntityType.DEAL, "property_id"),
    DependencyEdge(EntityType.PROPERTY, EntityType.BOOKING, "property_id"),
    DependencyEdge(EntityType.PROPERTY, EntityType.CONTRACT, "property_id"),
    DependencyEdge(EntityType.PROPERTY, EntityType.PAYMENT, "property_id"),
    DependencyEdge(EntityType.CLIENT, EntityType.DEAL, "tenant_id"),
    DependencyEdge(EntityType.CLIENT, EntityType.DEAL, "landlord_id"),
    DependencyEdge(EntityType.BOOKING, EntityType.CONTRACT, "booking_id"),
    DependencyEdge(EntityType.DEAL, EntityType.CONTRACT, "deal_id"),
    DependencyEdge(EntityType.DEAL, EntityType.PAYMENT, "deal_id"),
    DependencyEdge(EntityType.CONTRACT, EntityType.PAYMENT, "contract_id"),
)

MODELS = {
    EntityType.PROPERTY: Property,
    EntityType.CLIENT: Client,
    EntityType.BOOKING: Booking,
    EntityType.DEAL: Deal,
    EntityType.CONTRACT: Contract,
    EntityType.PAYMENT: Payment,
}

REMOVABLE_ROOTS = frozenset({EntityType.PROPERTY, EntityType.CLIENT, EntityType.DEAL, EntityType.CONTRACT})

# dependents: their "closed" terminal status
ARCHIVE_STATUS: Dict[EntityType, str] = {
    EntityType.PAYMENT: PaymentStatus.CANCELLED.value,
    EntityType.CONTRACT: ContractStatus.TERMINATED.value,
    EntityType.DEAL: DealStatus.CANCELLED.value,
    EntityType.BOOKING: BookingStatus.CANCELLED.value,
}

# roots: clients are soft-deleted through is_active instead of a status
ROOT_ARCHIVE_STATUS: Dict[EntityType, str] = {
    EntityType.PROPERTY: PropertyStatus.MAINTENANCE.value,
    EntityType.DEAL: DealStatus.CANCELLED.value,
    EntityType.CONTRACT: ContractStatus.TERMINATED.value,
}


@dataclass
class CascadeSummary:
    action: RemovalAction
    root_type: EntityType
    root_id: int
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return int(sum(self.counts.values()))

    def as_dict(self) -> dict:
        return {
            "action": self.action.value,
            "root_type": self.root_type.value,
            "root_id": self.root_id,
            "counts": dict(self.counts),
            "total": self.total,
        }


def edges_from(parent: EntityType) -> List[DependencyEdge]:
    return [e for e in DEPENDENCY_EDGES if e.parent == parent]


@lru_cache(maxsize=None)
def type_rank(entity_type: EntityType) -> int:
    """Longest path from this type down to a leaf. Leaves (payments) are 0."""
    children = {e.child for e in edges_from(entity_type)}
    if not children:
        return 0
    return 1 + max(type_rank(c) for c in children)


def bottom_up(types: Iterable[EntityType]) -> List[EntityType]:
    return sorted(set(types), key=lambda t: (type_rank(t), t.value))


def collect_dependents(db: Session, root_type: EntityType, root_id: int) -> Dict[EntityType, Set[int]]:
    """
    Breadth-first walk over DEPENDENCY_EDGES starting at the root.

    Each child type is queried once per frontier with an IN (...) filter.
    A row reachable over several edges (a contract hanging off both its deal
    and its property) is collected once. The root itself is not included.
    """
    found: Dict[EntityType, Set[int]] = {}
    queue: deque[Tuple[EntityType, Set[int]]] = deque([(root_type, {int(root_id)})])

    while queue:
        parent_type, parent_ids = queue.popleft()
        for edge in edges_from(parent_type):
            model = MODELS[edge.child]
            fk = getattr(model, edge.foreign_key)
            child_ids = set(db.scalars(select(model.id).where(fk.in_(parent_ids))).all())
            seen = found.setdefault(edge.child, set())
            fresh = child_ids - seen
            if fresh:
                seen |= fresh
                queue.append((edge.child, fresh))

    return {t: ids for t, ids in found.items() if ids}


def _delete_rows(db: Session, entity_type: EntityType, ids: Set[int]) -> int:
    model = MODELS[entity_type]
    db.execute(delete(model).where(model.id.in_(ids)).execution_options(synchronize_session="fetch"))
    return len(ids)


def _archive_rows(db: Session, entity_type: EntityType, ids: Set[int], now: datetime) -> int:
    model = MODELS[entity_type]
    db.execute(
        update(model)
        .where(model.id.in_(ids))
        .values(status=ARCHIVE_STATUS[entity_type], updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    return len(ids)


def _archive_root(db: Session, root_type: EntityType, root) -> None:
    if root_type == EntityType.CLIENT:
        root.is_active = False
    else:
        root.status = ROOT_ARCHIVE_STATUS[root_type]
    db.add(root)


def load_owned_root(db: Session, root_type: EntityType, root_id: int, owner_id: int):
    model = MODELS[root_type]
    root = db.get(model, int(root_id))
    if root is None:
        raise NotFound(f"{root_type.value} not found", entity_type=root_type.value, entity_id=int(root_id))
    if int(root.owner_id) != int(owner_id):
        raise Forbidden(
            f"{root_type.value} belongs to another user",
            entity_type=root_type.value,
            entity_id=int(root_id),
        )
    return root


def remove(
    db: Session,
    *,
    entity_type: EntityType | str,
    entity_id: int,
    action: RemovalAction | str,
    owner_id: int,
    now: datetime | None = None,
) -> CascadeSummary:
    """
    Archive or hard-delete a root entity together with everything hanging off it.

    delete:  dependents are removed bottom-up (payments, contracts, bookings and
             deals, then the root) so no statement ever leaves a dangling FK.
    archive: dependents move to their closed status, the root to its archival
             state (property MAINTENANCE, client inactive, deal CANCELLED,
             contract TERMINATED). Nothing is deleted.

    `owner_id` is trusted (verified upstream); the root must belong to it.
    """
    try:
        root_type = EntityType(entity_type)
        act = RemovalAction(action)
    except ValueError:
        raise Forbidden(f"cannot {action} {entity_type}", entity_type=str(entity_type), action=str(action))
    if root_type not in REMOVABLE_ROOTS:
        raise Forbidden(f"{root_type.value} cannot be removed directly", entity_type=root_type.value)

    root = load_owned_root(db, root_type, entity_id, owner_id)
    dependents = collect_dependents(db, root_type, int(root.id))
    stamp = now or datetime.utcnow()

    summary = CascadeSummary(action=act, root_type=root_type, root_id=int(root.id))
    for t in bottom_up(dependents):
        ids = dependents[t]
        if act == RemovalAction.DELETE:
            summary.counts[t.value] = _delete_rows(db, t, ids)
        else:
            summary.counts[t.value] = _archive_rows(db, t, ids, stamp)

    if act == RemovalAction.DELETE:
        _delete_rows(db, root_type, {int(root.id)})
    else:
        _archive_root(db, root_type, root)
    db.flush()

    summary.counts[root_type.value] = summary.counts.get(root_type.value, 0) + 1
    return summary

# standpos/domain/status.py
"""
Order status vocabularies.

Two closed enumerations live side by side:
- DomainStatus: what kitchen and back-office staff see
- PersistenceStatus: what the remote store keeps in orders.status

The mapping between them is NOT a round trip. INIT (unpaid) and PAYED both
show up as NEW, and writing NEW always stores PAYED, so the unpaid marker can
never be re-created from this side.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional


class DomainStatus(str, Enum):
    NEW = "NEW"
    PREPARING = "PREPARING"
    READY = "READY"
    EN_ROUTE = "EN_ROUTE"
    DELIVERED = "DELIVERED"


class PersistenceStatus(str, Enum):
    UNPAID = "INIT"
    PAID = "PAYED"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED = "DELIVERED"
    BOT_READY = "BOT_READY"  # present in the store enum, never written by us


TO_DOMAIN: Dict[PersistenceStatus, DomainStatus] = {
    PersistenceStatus.UNPAID: DomainStatus.NEW,
    #paid but not started yet looks exactly like a new order to the kitchen
    PersistenceStatus.PAID: DomainStatus.NEW,
    PersistenceStatus.IN_PROGRESS: DomainStatus.PREPARING,
    PersistenceStatus.READY: DomainStatus.READY,
    PersistenceStatus.ON_THE_WAY: DomainStatus.EN_ROUTE,
    PersistenceStatus.DELIVERED: DomainStatus.DELIVERED,
    PersistenceStatus.BOT_READY: DomainStatus.NEW,
}

TO_PERSISTENCE: Dict[DomainStatus, PersistenceStatus] = {
    DomainStatus.NEW: PersistenceStatus.PAID,
    DomainStatus.PREPARING: PersistenceStatus.IN_PROGRESS,
    DomainStatus.READY: PersistenceStatus.READY,
    DomainStatus.EN_ROUTE: PersistenceStatus.ON_THE_WAY,
    DomainStatus.DELIVERED: PersistenceStatus.DELIVERED,
}

# both tables must stay exhaustive over their enums
assert set(TO_DOMAIN) == set(PersistenceStatus)
assert set(TO_PERSISTENCE) == set(DomainStatus)


def to_domain(value) -> DomainStatus:
    """Total: anything unrecognized (None, typos, unused store values) is NEW."""
    try:
        status = PersistenceStatus(value)
    except ValueError:
        return DomainStatus.NEW
    return TO_DOMAIN[status]


def to_persistence(status: DomainStatus) -> PersistenceStatus:
    return TO_PERSISTENCE[DomainStatus(status)]


# normal (kitchen) path; the back-office override ignores this graph
ALLOWED_TRANSITIONS: Dict[DomainStatus, FrozenSet[DomainStatus]] = {
    DomainStatus.NEW: frozenset({DomainStatus.PREPARING}),
    DomainStatus.PREPARING: frozenset({DomainStatus.READY}),
    DomainStatus.READY: frozenset({DomainStatus.EN_ROUTE, DomainStatus.DELIVERED}),
    DomainStatus.EN_ROUTE: frozenset({DomainStatus.DELIVERED}),
    DomainStatus.DELIVERED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[DomainStatus] = frozenset({DomainStatus.DELIVERED})


def can_transition(current: DomainStatus, target: DomainStatus) -> bool:
    return DomainStatus(target) in ALLOWED_TRANSITIONS[DomainStatus(current)]


def next_status(current: DomainStatus, pickup: bool = False) -> Optional[DomainStatus]:
    """
    The single "advance" step the kitchen board offers.
    Pickup orders skip EN_ROUTE and go straight from READY to DELIVERED.
    """
    current = DomainStatus(current)
    if current == DomainStatus.READY:
        return DomainStatus.DELIVERED if pickup else DomainStatus.EN_ROUTE
    if current == DomainStatus.NEW:
        return DomainStatus.PREPARING
    if current == DomainStatus.PREPARING:
        return DomainStatus.READY
    if current == DomainStatus.EN_ROUTE:
        return DomainStatus.DELIVERED
    return None


STATUS_LABELS: Dict[DomainStatus, str] = {
    DomainStatus.NEW: "Nuevo pedido",
    DomainStatus.PREPARING: "Preparando",
    DomainStatus.READY: "Listo",
    DomainStatus.EN_ROUTE: "En camino",
    DomainStatus.DELIVERED: "Entregado",
}

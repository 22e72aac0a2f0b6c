"""OrderLifecyclePolicy — the closed transition table for order statuses."""

from __future__ import annotations

from app.domain.errors import InvalidTransition
from app.domain.value_objects.enums import OrderStatus

# ASSIGNED -> ASSIGNED and CONFIRMED -> ASSIGNED are provider switches.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.UNASSIGNED: frozenset({OrderStatus.ASSIGNED, OrderStatus.CANCELLED}),
    OrderStatus.ASSIGNED: frozenset(
        {OrderStatus.ASSIGNED, OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.ASSIGNED, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Statuses in which the order holds one unit of its provider's capacity.
CAPACITY_HOLDING = frozenset({OrderStatus.ASSIGNED, OrderStatus.CONFIRMED})

TERMINAL = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(order_id: int | None, current: OrderStatus, target: OrderStatus) -> None:
    """Raise InvalidTransition unless *current -> target* is in the table."""
    if not can_transition(current, target):
        raise InvalidTransition(order_id, current.value, target.value)


def holds_capacity(status: OrderStatus) -> bool:
    return status in CAPACITY_HOLDING


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL

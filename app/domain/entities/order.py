"""Order entity — one meal delivery awaiting or holding a provider."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from app.domain.policies.order_lifecycle import (
    ensure_transition,
    holds_capacity,
    is_terminal,
)
from app.domain.value_objects.delivery_window import DeliveryWindow
from app.domain.value_objects.enums import MealSlot, OrderPriority, OrderStatus, ProviderType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StatusChange:
    status: OrderStatus
    changed_at: datetime
    note: str | None = None


@dataclass
class Order:
    id: int | None
    user_id: str
    provider_type: ProviderType
    zone: str
    delivery_window: DeliveryWindow
    total_amount: Decimal
    meal_slot: MealSlot = MealSlot.LUNCH
    priority: OrderPriority = OrderPriority.MEDIUM
    order_number: str | None = None
    status: OrderStatus = OrderStatus.UNASSIGNED
    status_history: list[StatusChange] = field(default_factory=list)
    match_attempts: int = 0
    last_match_reason: str | None = None
    cancel_reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def transition_to(self, target: OrderStatus, note: str | None = None) -> None:
        """Move to *target*, recording the change in the status history.

        Raises:
            InvalidTransition: if the lifecycle table forbids the move.
        """
        ensure_transition(self.id, self.status, target)
        self.status = target
        self.status_history.append(StatusChange(status=target, changed_at=utcnow(), note=note))

    def record_unmatched(self, reason: str) -> None:
        self.match_attempts += 1
        self.last_match_reason = reason

    def is_unassigned(self) -> bool:
        return self.status == OrderStatus.UNASSIGNED

    def holds_capacity(self) -> bool:
        return holds_capacity(self.status)

    def is_terminal(self) -> bool:
        return is_terminal(self.status)

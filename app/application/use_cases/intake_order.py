"""SubmitOrderUseCase — validate a paid order and place it on the intake queue."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from app.application.ports.order_repo import OrderRepository
from app.application.use_cases.assign_order import AssignOrderUseCase, MatchResult
from app.domain.entities.order import Order, StatusChange, utcnow
from app.domain.errors import InvalidOrder
from app.domain.value_objects.delivery_window import DeliveryWindow
from app.domain.value_objects.enums import MealSlot, OrderPriority, OrderStatus, ProviderType

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "MS"


@dataclass
class OrderDraft:
    """A finalized checkout as received from the user-facing app."""

    user_id: str
    provider_type: str
    zone: str
    delivery_start: datetime
    delivery_end: datetime
    total_amount: Decimal | str | float
    meal_slot: str = MealSlot.LUNCH.value
    priority: str = OrderPriority.MEDIUM.value


@dataclass
class IntakeResult:
    order: Order
    match: MatchResult | None = None


def build_order_number(delivery_window: DeliveryWindow, sequence: int) -> str:
    """``MS-YYYYMMDD-NNNN``, numbered per UTC delivery date."""
    return f"{ORDER_NUMBER_PREFIX}-{delivery_window.delivery_date:%Y%m%d}-{sequence:04d}"


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def validate_draft(draft: OrderDraft) -> Order:
    """Turn a draft into an unsaved Order, rejecting malformed input.

    Raises:
        InvalidOrder: on the first problem found.
    """
    if not draft.user_id or not draft.user_id.strip():
        raise InvalidOrder("user_id is required")
    if not draft.zone or not draft.zone.strip():
        raise InvalidOrder("zone is required")

    try:
        provider_type = ProviderType(draft.provider_type)
    except ValueError:
        allowed = ", ".join(t.value for t in ProviderType)
        raise InvalidOrder(f"provider_type must be one of: {allowed}") from None

    try:
        meal_slot = MealSlot(draft.meal_slot)
    except ValueError:
        raise InvalidOrder(f"unknown meal_slot '{draft.meal_slot}'") from None

    try:
        priority = OrderPriority(draft.priority)
    except ValueError:
        allowed = ", ".join(p.value for p in OrderPriority)
        raise InvalidOrder(f"priority must be one of: {allowed}") from None

    try:
        total = Decimal(str(draft.total_amount))
    except InvalidOperation:
        raise InvalidOrder(f"total_amount '{draft.total_amount}' is not a number") from None
    if not total.is_finite() or total < 0:
        raise InvalidOrder("total_amount must be a non-negative amount")

    if not isinstance(draft.delivery_start, datetime) or not isinstance(draft.delivery_end, datetime):
        raise InvalidOrder("delivery_start and delivery_end are required")
    window = DeliveryWindow(start=_as_utc(draft.delivery_start), end=_as_utc(draft.delivery_end))
    if not window.is_valid():
        raise InvalidOrder("delivery window must end after it starts")

    now = utcnow()
    return Order(
        id=None,
        user_id=draft.user_id.strip(),
        provider_type=provider_type,
        zone=draft.zone.strip(),
        delivery_window=window,
        total_amount=total,
        meal_slot=meal_slot,
        priority=priority,
        status=OrderStatus.UNASSIGNED,
        status_history=[StatusChange(status=OrderStatus.UNASSIGNED, changed_at=now, note="received")],
        created_at=now,
    )


class SubmitOrderUseCase:
    """Accepts paid orders into the queue and, by default, matches them at once."""

    def __init__(
        self,
        order_repo: OrderRepository,
        assign_order: AssignOrderUseCase | None = None,
        auto_assign: bool = True,
    ):
        self._orders = order_repo
        self._assign = assign_order
        self._auto_assign = auto_assign

    async def execute(self, draft: OrderDraft) -> IntakeResult:
        order = validate_draft(draft)

        sequence = await self._orders.next_order_sequence(order.delivery_window.delivery_date)
        order.order_number = build_order_number(order.delivery_window, sequence)
        await self._orders.save(order)
        logger.info(
            "Order %s queued (user=%s, zone=%s, type=%s)",
            order.order_number, order.user_id, order.zone, order.provider_type.value,
        )

        if self._assign is None or not self._auto_assign:
            return IntakeResult(order=order)

        match = await self._assign.execute(order.id)
        refreshed = await self._orders.get_by_id(order.id)
        return IntakeResult(order=refreshed or order, match=match)

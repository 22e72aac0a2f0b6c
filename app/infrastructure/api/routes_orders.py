"""Order endpoints — intake, queue view, matching and lifecycle commands."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from app.application.use_cases.assign_order import AssignOrderUseCase
from app.application.use_cases.intake_order import OrderDraft, SubmitOrderUseCase
from app.application.use_cases.manage_order import ManageOrderUseCase
from app.domain.errors import AssignmentEngineError
from app.domain.value_objects.enums import MealSlot, OrderPriority, OrderStatus, SwitchReason
from app.infrastructure.api.dependencies import (
    Stores,
    get_assign_order_uc,
    get_manage_order_uc,
    get_stores,
    get_submit_order_uc,
    to_http_error,
)
from app.infrastructure.api.serializers import (
    serialize_assignment,
    serialize_match,
    serialize_order,
)

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderCreate(BaseModel):
    user_id: str
    provider_type: str
    zone: str
    delivery_start: datetime
    delivery_end: datetime
    total_amount: Decimal
    meal_slot: str = MealSlot.LUNCH.value
    priority: str = OrderPriority.MEDIUM.value


class PriorityUpdate(BaseModel):
    priority: OrderPriority


class ManualAssignRequest(BaseModel):
    provider_id: int


class ReassignRequest(BaseModel):
    reason: SwitchReason = SwitchReason.ADMIN_REASSIGNMENT


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


@router.post("", status_code=201)
async def submit_order(
    background_tasks: BackgroundTasks,
    body: OrderCreate,
    uc: SubmitOrderUseCase = Depends(get_submit_order_uc),
    stores: Stores = Depends(get_stores),
):
    """Accept a paid order into the queue and try to match it."""
    try:
        result = await uc.execute(OrderDraft(**body.model_dump()))
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)

    assignment = await stores.ledger.active_for(result.order.id)
    return {
        "order": serialize_order(result.order, assignment),
        "match": serialize_match(result.match) if result.match else None,
    }


@router.get("")
async def list_orders(status: OrderStatus | None = None, stores: Stores = Depends(get_stores)):
    orders = await stores.orders.get_all(status=status)
    return {
        "total": len(orders),
        "orders": [serialize_order(o) for o in orders],
    }


@router.get("/pending")
async def list_pending(urgent_only: bool = False, stores: Stores = Depends(get_stores)):
    """Operator queue: unassigned orders, most urgent then oldest first, with the last miss reason."""
    priorities = [p for p in OrderPriority if p.is_urgent] if urgent_only else None
    orders = await stores.orders.get_unassigned(priorities=priorities)
    return {
        "total": len(orders),
        "orders": [serialize_order(o) for o in orders],
    }


@router.get("/{order_id}")
async def get_order(order_id: int, stores: Stores = Depends(get_stores)):
    order = await stores.orders.get_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    assignment = await stores.ledger.active_for(order_id)
    return serialize_order(order, assignment)


@router.get("/{order_id}/assignments")
async def get_assignment_history(order_id: int, stores: Stores = Depends(get_stores)):
    """Full ledger for one order, voided records included."""
    order = await stores.orders.get_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    history = await stores.ledger.history_for(order_id)
    return {
        "order_id": order_id,
        "assignments": [serialize_assignment(a) for a in history],
    }


@router.post("/{order_id}/assign")
async def assign_order(
    background_tasks: BackgroundTasks,
    order_id: int,
    uc: AssignOrderUseCase = Depends(get_assign_order_uc),
    stores: Stores = Depends(get_stores),
):
    """Match an order now. Returns the existing assignment if it already has one."""
    try:
        result = await uc.execute(order_id)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_match(result)


@router.post("/{order_id}/assign-manually")
async def assign_manually(
    background_tasks: BackgroundTasks,
    order_id: int,
    body: ManualAssignRequest,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        result = await uc.assign_manually(order_id, body.provider_id)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_match(result)


@router.post("/{order_id}/reassign")
async def reassign_order(
    background_tasks: BackgroundTasks,
    order_id: int,
    body: ReassignRequest | None = None,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    """Switch to another provider; the current one is kept if none is free."""
    reason = body.reason if body else SwitchReason.ADMIN_REASSIGNMENT
    try:
        result = await uc.reassign(order_id, reason)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_match(result)


@router.post("/{order_id}/confirm")
async def confirm_order(
    background_tasks: BackgroundTasks,
    order_id: int,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        order = await uc.confirm(order_id)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_order(order, await stores.ledger.active_for(order_id))


@router.post("/{order_id}/deliver")
async def deliver_order(
    background_tasks: BackgroundTasks,
    order_id: int,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        order = await uc.deliver(order_id)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_order(order, await stores.ledger.active_for(order_id))


@router.post("/{order_id}/cancel")
async def cancel_order(
    background_tasks: BackgroundTasks,
    order_id: int,
    body: CancelRequest | None = None,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        order = await uc.cancel(order_id, body.reason if body else None)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_order(order)


@router.patch("/{order_id}/priority")
async def update_priority(
    background_tasks: BackgroundTasks,
    order_id: int,
    body: PriorityUpdate,
    uc: ManageOrderUseCase = Depends(get_manage_order_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        order = await uc.update_priority(order_id, body.priority)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return serialize_order(order, await stores.ledger.active_for(order_id))

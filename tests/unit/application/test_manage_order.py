"""Tests for ManageOrderUseCase: reassignment, manual override and lifecycle."""

from __future__ import annotations

import pytest

from app.adapters.memory.stores import InMemoryAssignmentLedger
from app.domain.errors import (
    CapacityExceeded,
    InvalidTransition,
    OrderNotFound,
    ProviderIneligible,
    ProviderNotFound,
)
from app.domain.events import OrderAssigned, OrderCancelled
from app.domain.value_objects.enums import OrderPriority, OrderStatus, ProviderType, SwitchReason


class FlakyLedger(InMemoryAssignmentLedger):
    """Ledger whose next ``record()`` fails once when ``fail_next_record`` is set."""

    def __init__(self):
        super().__init__()
        self.fail_next_record = False

    async def record(self, assignment):
        if self.fail_next_record:
            self.fail_next_record = False
            raise RuntimeError("ledger unavailable")
        return await super().record(assignment)

# ─── Reassign ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reassign_moves_one_unit_of_load(make_engine, make_provider):
    first = make_provider(name="First", performance_score=95)
    second = make_provider(name="Second", performance_score=80)
    engine = make_engine([first, second])
    order = await engine.place()
    old = await engine.ledger.active_for(order.id)
    assert old.provider_id == first.id

    result = await engine.manage.reassign(order.id, SwitchReason.POOR_FOOD_QUALITY)

    assert result.matched
    assert result.provider_id == second.id
    assert await engine.load_of(first.id) == 0
    assert await engine.load_of(second.id) == 1

    history = await engine.ledger.history_for(order.id)
    assert len(history) == 2
    voided, current = history
    assert not voided.is_active
    assert current.is_active
    assert current.supersedes == voided.id
    stored = await engine.orders.get_by_id(order.id)
    assert stored.status is OrderStatus.ASSIGNED
    assert stored.status_history[-1].note == "reassigned: poor_food_quality"


@pytest.mark.asyncio
async def test_reassign_without_alternative_keeps_current(make_engine, make_provider):
    only = make_provider()
    engine = make_engine([only])
    order = await engine.place()

    result = await engine.manage.reassign(order.id)

    assert not result.matched
    assert result.provider_id == only.id
    assert "keeping provider" in result.reason
    assert await engine.load_of(only.id) == 1
    active = await engine.ledger.active_for(order.id)
    assert active.provider_id == only.id
    assert len(await engine.ledger.history_for(order.id)) == 1


@pytest.mark.asyncio
async def test_reassign_confirmed_order_goes_back_to_assigned(make_engine, make_provider):
    engine = make_engine([make_provider(performance_score=90), make_provider(performance_score=85)])
    order = await engine.place()
    await engine.manage.confirm(order.id)

    result = await engine.manage.reassign(order.id, SwitchReason.LATE_DELIVERY)

    assert result.matched
    assert (await engine.orders.get_by_id(order.id)).status is OrderStatus.ASSIGNED


@pytest.mark.asyncio
async def test_reassign_of_queued_order_assigns_it(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place(assign=False)

    result = await engine.manage.reassign(order.id)

    assert result.matched
    assert result.provider_id == provider.id


@pytest.mark.asyncio
async def test_reassign_completed_order_rejected(make_engine, make_provider):
    engine = make_engine([make_provider(), make_provider()])
    order = await engine.place()
    await engine.manage.confirm(order.id)
    await engine.manage.deliver(order.id)

    with pytest.raises(InvalidTransition):
        await engine.manage.reassign(order.id)


# ─── Manual assignment ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_assignment_overrides_ranking(make_engine, make_provider):
    best = make_provider(name="Best", performance_score=99)
    chosen = make_provider(name="Chosen", performance_score=40)
    engine = make_engine([best, chosen])
    order = await engine.place()

    result = await engine.manage.assign_manually(order.id, chosen.id)

    assert result.matched
    assert result.provider_id == chosen.id
    assert await engine.load_of(best.id) == 0
    assert await engine.load_of(chosen.id) == 1
    active = await engine.ledger.active_for(order.id)
    assert active.manual is True
    assert engine.notifier.of_type(OrderAssigned)[-1].manual is True


@pytest.mark.asyncio
async def test_manual_assignment_to_current_provider_is_noop(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place()

    result = await engine.manage.assign_manually(order.id, provider.id)

    assert result.already_assigned
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_manual_assignment_rejects_wrong_zone(make_engine, make_provider):
    elsewhere = make_provider(zone="Z2")
    engine = make_engine([elsewhere])
    order = await engine.place(assign=False)

    with pytest.raises(ProviderIneligible):
        await engine.manage.assign_manually(order.id, elsewhere.id)
    assert await engine.load_of(elsewhere.id) == 0


@pytest.mark.asyncio
async def test_manual_assignment_rejects_wrong_type(make_engine, make_provider):
    vendor = make_provider(provider_type=ProviderType.VENDOR)
    engine = make_engine([vendor])
    order = await engine.place(assign=False, provider_type="chef")

    with pytest.raises(ProviderIneligible):
        await engine.manage.assign_manually(order.id, vendor.id)


@pytest.mark.asyncio
async def test_manual_assignment_to_full_provider_rejected(make_engine, make_provider):
    full = make_provider(max_capacity=1, current_load=1)
    engine = make_engine([full])
    order = await engine.place(assign=False)

    with pytest.raises((ProviderIneligible, CapacityExceeded)):
        await engine.manage.assign_manually(order.id, full.id)
    assert await engine.load_of(full.id) == 1


@pytest.mark.asyncio
async def test_manual_assignment_unknown_provider(make_engine):
    engine = make_engine()
    order = await engine.place(assign=False)

    with pytest.raises(ProviderNotFound):
        await engine.manage.assign_manually(order.id, 404)


# ─── Confirm / deliver / cancel ─────────────────────────────────────


@pytest.mark.asyncio
async def test_full_lifecycle_releases_capacity_on_delivery(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place()

    await engine.manage.confirm(order.id)
    assert await engine.load_of(provider.id) == 1
    delivered = await engine.manage.deliver(order.id)

    assert delivered.status is OrderStatus.COMPLETED
    assert await engine.load_of(provider.id) == 0
    statuses = [h.status for h in delivered.status_history]
    assert statuses == [
        OrderStatus.UNASSIGNED, OrderStatus.ASSIGNED, OrderStatus.CONFIRMED, OrderStatus.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_deliver_requires_confirmation(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place()

    with pytest.raises(InvalidTransition):
        await engine.manage.deliver(order.id)
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_confirm_unassigned_order_rejected(make_engine):
    engine = make_engine()
    order = await engine.place(assign=False)

    with pytest.raises(InvalidTransition):
        await engine.manage.confirm(order.id)


@pytest.mark.asyncio
async def test_cancel_assigned_order_frees_slot(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place()

    cancelled = await engine.manage.cancel(order.id, "user request")

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.cancel_reason == "user request"
    assert await engine.load_of(provider.id) == 0
    assert await engine.ledger.active_for(order.id) is None
    [event] = engine.notifier.of_type(OrderCancelled)
    assert event.provider_id == provider.id


@pytest.mark.asyncio
async def test_cancel_queued_order_touches_no_provider(make_engine, make_provider):
    provider = make_provider(max_capacity=0)
    engine = make_engine([provider])
    order = await engine.place()

    await engine.manage.cancel(order.id)

    assert await engine.load_of(provider.id) == 0
    [event] = engine.notifier.of_type(OrderCancelled)
    assert event.provider_id is None


@pytest.mark.asyncio
async def test_cancel_twice_rejected(make_engine, make_provider):
    engine = make_engine([make_provider()])
    order = await engine.place()
    await engine.manage.cancel(order.id)

    with pytest.raises(InvalidTransition):
        await engine.manage.cancel(order.id)


@pytest.mark.asyncio
async def test_freed_slot_goes_to_queued_order(make_engine, make_provider):
    provider = make_provider(max_capacity=1)
    engine = make_engine([provider])
    first = await engine.place(user_id="first")
    waiting = await engine.place(user_id="waiting")
    assert (await engine.orders.get_by_id(waiting.id)).status is OrderStatus.UNASSIGNED

    await engine.manage.cancel(first.id)

    stored = await engine.orders.get_by_id(waiting.id)
    assert stored.status is OrderStatus.ASSIGNED
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_commands_on_unknown_order(make_engine):
    engine = make_engine()
    with pytest.raises(OrderNotFound):
        await engine.manage.confirm(1)
    with pytest.raises(OrderNotFound):
        await engine.manage.cancel(1)


@pytest.mark.asyncio
async def test_failed_reassign_restores_previous_assignment(make_engine, make_provider):
    first = make_provider(name="First", performance_score=95)
    second = make_provider(name="Second", performance_score=80)
    ledger = FlakyLedger()
    engine = make_engine([first, second], ledger=ledger)
    order = await engine.place()
    ledger.fail_next_record = True

    with pytest.raises(RuntimeError, match="ledger unavailable"):
        await engine.manage.reassign(order.id)

    active = await engine.ledger.active_for(order.id)
    assert active is not None and active.provider_id == first.id
    assert await engine.load_of(first.id) == 1
    assert await engine.load_of(second.id) == 0
    assert (await engine.orders.get_by_id(order.id)).status is OrderStatus.ASSIGNED
    assert len(engine.locks) == 0


@pytest.mark.asyncio
async def test_failed_first_assignment_releases_slot(make_engine, make_provider):
    provider = make_provider()
    ledger = FlakyLedger()
    engine = make_engine([provider], ledger=ledger)
    order = await engine.place(assign=False)
    ledger.fail_next_record = True

    with pytest.raises(RuntimeError):
        await engine.assign.execute(order.id)

    assert await engine.ledger.active_for(order.id) is None
    assert await engine.load_of(provider.id) == 0
    assert (await engine.orders.get_by_id(order.id)).status is OrderStatus.UNASSIGNED


# ─── Priority ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_priority_moves_order_up_the_queue(make_engine):
    engine = make_engine()
    first = await engine.place(assign=False, user_id="first")
    second = await engine.place(assign=False, user_id="second")

    updated = await engine.manage.update_priority(second.id, OrderPriority.URGENT)

    assert updated.priority is OrderPriority.URGENT
    queue = await engine.orders.get_unassigned()
    assert [o.id for o in queue] == [second.id, first.id]


@pytest.mark.asyncio
async def test_update_priority_rejected_for_finished_order(make_engine):
    engine = make_engine()
    order = await engine.place(assign=False)
    await engine.manage.cancel(order.id, "changed mind")

    with pytest.raises(InvalidTransition):
        await engine.manage.update_priority(order.id, OrderPriority.HIGH)


@pytest.mark.asyncio
async def test_urgent_order_is_swept_before_older_ones(make_engine, make_provider):
    engine = make_engine()
    older = await engine.place(assign=False, user_id="older")
    urgent = await engine.place(assign=False, user_id="urgent", priority="urgent")
    provider = make_provider(max_capacity=1)
    await engine.providers.save(provider)

    results = await engine.retry.execute()

    assert [(r.order_id, r.matched) for r in results] == [(urgent.id, True), (older.id, False)]

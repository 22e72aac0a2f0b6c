"""Tests for the in-memory repository implementations."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.adapters.memory.stores import (
    InMemoryAssignmentLedger,
    InMemoryOrderRepository,
    InMemoryProviderRegistry,
)
from app.domain.entities.assignment import Assignment
from app.domain.entities.order import Order
from app.domain.errors import CapacityExceeded, ProviderNotFound
from app.domain.value_objects.delivery_window import DeliveryWindow
from app.domain.value_objects.enums import OrderPriority, OrderStatus, ProviderType

START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _order(
    zone="Z1", provider_type=ProviderType.CHEF, created_at=START, start=START,
    priority=OrderPriority.MEDIUM,
) -> Order:
    return Order(
        id=None, user_id="u", provider_type=provider_type, zone=zone,
        delivery_window=DeliveryWindow(start, start + timedelta(hours=1)),
        total_amount=Decimal("5"), created_at=created_at, priority=priority,
    )


# ─── Provider registry ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_find_eligible_filters_and_ranks(make_provider):
    registry = InMemoryProviderRegistry([
        make_provider(name="busy", max_capacity=4, current_load=3),
        make_provider(name="idle", max_capacity=4, current_load=0),
        make_provider(name="full", max_capacity=4, current_load=4),
        make_provider(name="other-zone", zone="Z2"),
        make_provider(name="off", is_available=False),
        make_provider(name="vendor", provider_type=ProviderType.VENDOR),
    ])

    found = await registry.find_eligible("Z1", ProviderType.CHEF)

    assert [p.name for p in found] == ["idle", "busy"]


@pytest.mark.asyncio
async def test_find_eligible_excludes_ids(make_provider):
    a, b = make_provider(name="a"), make_provider(name="b")
    registry = InMemoryProviderRegistry([a, b])

    found = await registry.find_eligible("Z1", ProviderType.CHEF, exclude={a.id})

    assert [p.id for p in found] == [b.id]


@pytest.mark.asyncio
async def test_find_eligible_filters_by_specialty(make_provider):
    registry = InMemoryProviderRegistry([
        make_provider(name="vegan", specialties={"vegan", "thai"}),
        make_provider(name="grill", specialties={"bbq"}),
        make_provider(name="plain"),
    ])

    found = await registry.find_eligible("Z1", ProviderType.CHEF, specialty="Vegan")

    assert [p.name for p in found] == ["vegan"]


@pytest.mark.asyncio
async def test_reset_load_only_applies_when_load_unchanged(make_provider):
    provider = make_provider(max_capacity=5, current_load=3)
    registry = InMemoryProviderRegistry([provider])

    assert await registry.reset_load(provider.id, expected_load=2, new_load=0) is None
    assert (await registry.get_by_id(provider.id)).current_load == 3

    reset = await registry.reset_load(provider.id, expected_load=3, new_load=1)
    assert reset.current_load == 1


@pytest.mark.asyncio
async def test_returned_providers_are_copies(make_provider):
    provider = make_provider()
    registry = InMemoryProviderRegistry([provider])

    copy = await registry.get_by_id(provider.id)
    copy.current_load = 99

    assert (await registry.get_by_id(provider.id)).current_load == 0


@pytest.mark.asyncio
async def test_reserve_and_release(make_provider):
    provider = make_provider(max_capacity=2)
    registry = InMemoryProviderRegistry([provider])

    await registry.reserve_capacity(provider.id)
    await registry.reserve_capacity(provider.id)
    with pytest.raises(CapacityExceeded):
        await registry.reserve_capacity(provider.id)

    assert await registry.release_capacity(provider.id, 5) == 2
    assert (await registry.get_by_id(provider.id)).current_load == 0


@pytest.mark.asyncio
async def test_mutations_on_unknown_provider():
    registry = InMemoryProviderRegistry()
    with pytest.raises(ProviderNotFound):
        await registry.reserve_capacity(1)
    with pytest.raises(ProviderNotFound):
        await registry.set_availability(1, False)


# ─── Order repository ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unassigned_queue_is_oldest_first():
    repo = InMemoryOrderRepository()
    late = await repo.save(_order(created_at=START + timedelta(minutes=5)))
    early = await repo.save(_order(created_at=START))
    other = await repo.save(_order(zone="Z2", created_at=START - timedelta(minutes=1)))

    queue = await repo.get_unassigned()
    assert [o.id for o in queue] == [other.id, early.id, late.id]

    z1 = await repo.get_unassigned(zone="Z1", limit=1)
    assert [o.id for o in z1] == [early.id]


@pytest.mark.asyncio
async def test_assigned_orders_leave_queue():
    repo = InMemoryOrderRepository()
    order = await repo.save(_order())
    order.transition_to(OrderStatus.ASSIGNED)
    await repo.update(order)

    assert await repo.get_unassigned() == []
    assert [o.id for o in await repo.get_all(status=OrderStatus.ASSIGNED)] == [order.id]


@pytest.mark.asyncio
async def test_order_sequence_counts_per_delivery_date():
    repo = InMemoryOrderRepository()
    day = START.date()

    assert await repo.next_order_sequence(day) == 1
    assert await repo.next_order_sequence(day) == 2
    assert await repo.next_order_sequence(day + timedelta(days=1)) == 1
    assert await repo.next_order_sequence(day) == 3


@pytest.mark.asyncio
async def test_concurrent_sequence_numbers_are_unique():
    repo = InMemoryOrderRepository()

    numbers = await asyncio.gather(*(repo.next_order_sequence(START.date()) for _ in range(20)))

    assert sorted(numbers) == list(range(1, 21))


@pytest.mark.asyncio
async def test_unassigned_queue_puts_urgent_orders_first():
    repo = InMemoryOrderRepository()
    old_low = await repo.save(_order(created_at=START, priority=OrderPriority.LOW))
    medium = await repo.save(_order(created_at=START + timedelta(minutes=1)))
    urgent = await repo.save(_order(created_at=START + timedelta(minutes=2), priority=OrderPriority.URGENT))
    high = await repo.save(_order(created_at=START + timedelta(minutes=3), priority=OrderPriority.HIGH))

    queue = await repo.get_unassigned()
    assert [o.id for o in queue] == [urgent.id, high.id, medium.id, old_low.id]

    only_urgent = await repo.get_unassigned(priorities=[OrderPriority.HIGH, OrderPriority.URGENT])
    assert [o.id for o in only_urgent] == [urgent.id, high.id]


# ─── Assignment ledger ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ledger_allows_one_active_assignment_per_order():
    ledger = InMemoryAssignmentLedger()
    first = await ledger.record(Assignment(id=None, order_id=1, provider_id=10))

    with pytest.raises(ValueError):
        await ledger.record(Assignment(id=None, order_id=1, provider_id=11))

    await ledger.void(first.id, reason="switch")
    second = await ledger.record(Assignment(id=None, order_id=1, provider_id=11, supersedes=first.id))

    assert (await ledger.active_for(1)).id == second.id
    history = await ledger.history_for(1)
    assert [a.is_active for a in history] == [False, True]
    assert history[0].void_reason == "switch"


@pytest.mark.asyncio
async def test_void_is_idempotent_and_unknown_id_fails():
    ledger = InMemoryAssignmentLedger()
    a = await ledger.record(Assignment(id=None, order_id=1, provider_id=10))
    first = await ledger.void(a.id, reason="one")
    again = await ledger.void(a.id, reason="two")

    assert again.voided_at == first.voided_at
    assert again.void_reason == "one"
    with pytest.raises(KeyError):
        await ledger.void(99)


@pytest.mark.asyncio
async def test_active_for_provider():
    ledger = InMemoryAssignmentLedger()
    await ledger.record(Assignment(id=None, order_id=1, provider_id=10))
    voided = await ledger.record(Assignment(id=None, order_id=2, provider_id=10))
    await ledger.record(Assignment(id=None, order_id=3, provider_id=11))
    await ledger.void(voided.id)

    assert [a.order_id for a in await ledger.active_for_provider(10)] == [1]

"""In-memory repository implementations.

Used by the test-suite and by ``STORAGE_BACKEND=memory``. Entities are copied
on the way in and out so callers see the same isolation a database gives.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from datetime import date

from app.application.locks import KeyedLock
from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.domain.entities.assignment import Assignment
from app.domain.entities.order import Order, utcnow
from app.domain.entities.provider import Provider
from app.domain.errors import CapacityExceeded, ProviderNotFound
from app.domain.policies.eligibility import EligibilityRequirement, provider_satisfies
from app.domain.policies.ranking import rank_candidates
from app.domain.value_objects.enums import OrderPriority, OrderStatus, ProviderType


class InMemoryProviderRegistry(ProviderRegistry):
    """Provider store with one asyncio lock per provider."""

    def __init__(self, providers: Iterable[Provider] = ()):
        self._providers: dict[int, Provider] = {}
        self._locks = KeyedLock()
        self._next_id = 1
        for provider in providers:
            self._insert(provider)

    def _insert(self, provider: Provider) -> Provider:
        if provider.id is None:
            provider.id = self._next_id
        self._next_id = max(self._next_id, provider.id + 1)
        self._providers[provider.id] = copy.deepcopy(provider)
        return provider

    def _require(self, provider_id: int) -> Provider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return provider

    async def save(self, provider: Provider) -> Provider:
        return self._insert(provider)

    async def get_by_id(self, provider_id: int) -> Provider | None:
        provider = self._providers.get(provider_id)
        return copy.deepcopy(provider) if provider else None

    async def get_all(self) -> list[Provider]:
        return [copy.deepcopy(p) for _, p in sorted(self._providers.items())]

    async def find_eligible(
        self,
        zone: str,
        provider_type: ProviderType,
        min_remaining_capacity: int = 1,
        exclude: Iterable[int] = (),
        specialty: str | None = None,
    ) -> list[Provider]:
        requirement = EligibilityRequirement(
            zone=zone,
            provider_type=provider_type,
            min_remaining_capacity=min_remaining_capacity,
        )
        excluded = set(exclude)
        eligible = [
            copy.deepcopy(p)
            for p in self._providers.values()
            if p.id not in excluded
            and provider_satisfies(p, requirement)
            and (specialty is None or p.has_specialty(specialty))
        ]
        return rank_candidates(eligible)

    async def reserve_capacity(self, provider_id: int, delta: int = 1) -> Provider:
        async with self._locks.hold(provider_id):
            provider = self._require(provider_id)
            if not provider.can_take(delta):
                raise CapacityExceeded(provider_id, provider.current_load, provider.max_capacity)
            provider.current_load += delta
            return copy.deepcopy(provider)

    async def release_capacity(self, provider_id: int, delta: int = 1) -> int:
        async with self._locks.hold(provider_id):
            provider = self._require(provider_id)
            released = min(delta, provider.current_load)
            provider.current_load -= released
            return released

    async def set_availability(self, provider_id: int, is_available: bool) -> Provider:
        async with self._locks.hold(provider_id):
            provider = self._require(provider_id)
            provider.is_available = is_available
            return copy.deepcopy(provider)

    async def update_capacity(self, provider_id: int, max_capacity: int) -> Provider:
        async with self._locks.hold(provider_id):
            provider = self._require(provider_id)
            if max_capacity < provider.current_load:
                raise CapacityExceeded(provider_id, provider.current_load, max_capacity)
            provider.max_capacity = max_capacity
            return copy.deepcopy(provider)

    async def reset_load(self, provider_id: int, expected_load: int, new_load: int) -> Provider | None:
        async with self._locks.hold(provider_id):
            provider = self._require(provider_id)
            if provider.current_load != expected_load:
                return None
            provider.current_load = new_load
            return copy.deepcopy(provider)


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, orders: Iterable[Order] = ()):
        self._orders: dict[int, Order] = {}
        self._sequences: dict[date, int] = {}
        self._next_id = 1
        for order in orders:
            self._insert(order)

    def _insert(self, order: Order) -> Order:
        if order.id is None:
            order.id = self._next_id
        self._next_id = max(self._next_id, order.id + 1)
        self._orders[order.id] = copy.deepcopy(order)
        return order

    async def save(self, order: Order) -> Order:
        return self._insert(order)

    async def get_by_id(self, order_id: int) -> Order | None:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def get_for_update(self, order_id: int) -> Order | None:
        # Serialization comes from the use case's per-order lock.
        return await self.get_by_id(order_id)

    async def get_all(self, status: OrderStatus | None = None) -> list[Order]:
        return [
            copy.deepcopy(o)
            for _, o in sorted(self._orders.items())
            if status is None or o.status == status
        ]

    async def get_unassigned(
        self,
        zone: str | None = None,
        provider_type: ProviderType | None = None,
        limit: int | None = None,
        priorities: Iterable[OrderPriority] | None = None,
    ) -> list[Order]:
        wanted = set(priorities) if priorities is not None else None
        queued = [
            o for o in self._orders.values()
            if o.status == OrderStatus.UNASSIGNED
            and (wanted is None or o.priority in wanted)
            and (zone is None or o.zone == zone)
            and (provider_type is None or o.provider_type == provider_type)
        ]
        queued.sort(key=lambda o: (o.priority.rank, o.created_at, o.id))
        if limit is not None:
            queued = queued[:limit]
        return [copy.deepcopy(o) for o in queued]

    async def next_order_sequence(self, delivery_date: date) -> int:
        # No await between read and write, so concurrent callers cannot interleave.
        self._sequences[delivery_date] = self._sequences.get(delivery_date, 0) + 1
        return self._sequences[delivery_date]

    async def update(self, order: Order) -> Order:
        if order.id not in self._orders:
            return self._insert(order)
        self._orders[order.id] = copy.deepcopy(order)
        return order


class InMemoryAssignmentLedger(AssignmentLedger):
    def __init__(self):
        self._records: list[Assignment] = []

    async def record(self, assignment: Assignment) -> Assignment:
        if any(a.order_id == assignment.order_id and a.is_active for a in self._records):
            raise ValueError(f"Order {assignment.order_id} already has an active assignment")
        assignment.id = len(self._records) + 1
        self._records.append(copy.deepcopy(assignment))
        return assignment

    async def void(self, assignment_id: int, reason: str | None = None) -> Assignment:
        for record in self._records:
            if record.id == assignment_id:
                if record.is_active:
                    record.voided_at = utcnow()
                    record.void_reason = reason
                return copy.deepcopy(record)
        raise KeyError(f"Assignment {assignment_id} not found")

    async def active_for(self, order_id: int) -> Assignment | None:
        return next(
            (copy.deepcopy(a) for a in self._records if a.order_id == order_id and a.is_active),
            None,
        )

    async def history_for(self, order_id: int) -> list[Assignment]:
        return [copy.deepcopy(a) for a in self._records if a.order_id == order_id]

    async def active_for_provider(self, provider_id: int) -> list[Assignment]:
        return [copy.deepcopy(a) for a in self._records if a.provider_id == provider_id and a.is_active]

    async def get_all(self) -> list[Assignment]:
        return [copy.deepcopy(a) for a in self._records]

"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from sqlalchemy import case, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.persistence.models import (
    AssignmentModel,
    OrderModel,
    OrderSequenceModel,
    OrderStatusHistoryModel,
    ProviderModel,
)
from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.domain.entities.assignment import Assignment
from app.domain.entities.order import Order, StatusChange, utcnow
from app.domain.entities.provider import Provider
from app.domain.errors import CapacityExceeded, ProviderNotFound
from app.domain.policies.ranking import rank_candidates
from app.domain.value_objects.delivery_window import DeliveryWindow
from app.domain.value_objects.enums import (
    MealSlot,
    OrderPriority,
    OrderStatus,
    ProviderType,
)

_PRIORITY_ORDER = case(
    {p.value: p.rank for p in OrderPriority},
    value=OrderModel.priority,
    else_=OrderPriority.MEDIUM.rank,
)

# ─── Mappers ─────────────────────────────────────────────────────────


def _provider_to_domain(m: ProviderModel) -> Provider:
    return Provider(
        id=m.id,
        name=m.name,
        provider_type=ProviderType(m.provider_type),
        zone=m.zone,
        max_capacity=m.max_capacity,
        current_load=m.current_load,
        rating=m.rating,
        performance_score=m.performance_score,
        specialties=set(m.specialties) if m.specialties else set(),
        is_available=m.is_available,
    )


def _order_to_domain(m: OrderModel) -> Order:
    return Order(
        id=m.id,
        order_number=m.order_number,
        user_id=m.user_id,
        provider_type=ProviderType(m.provider_type),
        zone=m.zone,
        delivery_window=DeliveryWindow(start=m.delivery_start, end=m.delivery_end),
        total_amount=m.total_amount,
        meal_slot=MealSlot(m.meal_slot),
        priority=OrderPriority(m.priority),
        status=OrderStatus(m.status),
        status_history=[
            StatusChange(status=OrderStatus(h.status), changed_at=h.changed_at, note=h.note)
            for h in m.history
        ],
        match_attempts=m.match_attempts,
        last_match_reason=m.last_match_reason,
        cancel_reason=m.cancel_reason,
        created_at=m.created_at,
    )


def _assignment_to_domain(m: AssignmentModel) -> Assignment:
    return Assignment(
        id=m.id,
        order_id=m.order_id,
        provider_id=m.provider_id,
        reason=m.reason,
        manual=m.manual,
        assigned_at=m.assigned_at,
        voided_at=m.voided_at,
        void_reason=m.void_reason,
        supersedes=m.supersedes,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlProviderRegistry(ProviderRegistry):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, provider: Provider) -> Provider:
        m = ProviderModel(
            name=provider.name,
            provider_type=provider.provider_type.value,
            zone=provider.zone,
            rating=provider.rating,
            performance_score=provider.performance_score,
            specialties=sorted(provider.specialties),
            current_load=provider.current_load,
            max_capacity=provider.max_capacity,
            is_available=provider.is_available,
        )
        self._s.add(m)
        await self._s.flush()
        provider.id = m.id
        return provider

    async def get_by_id(self, provider_id: int) -> Provider | None:
        m = await self._s.get(ProviderModel, provider_id, populate_existing=True)
        return _provider_to_domain(m) if m else None

    async def get_all(self) -> list[Provider]:
        result = await self._s.execute(select(ProviderModel).order_by(ProviderModel.id))
        return [_provider_to_domain(m) for m in result.scalars()]

    async def find_eligible(
        self,
        zone: str,
        provider_type: ProviderType,
        min_remaining_capacity: int = 1,
        exclude: Iterable[int] = (),
        specialty: str | None = None,
    ) -> list[Provider]:
        query = (
            select(ProviderModel)
            .where(
                ProviderModel.zone == zone,
                ProviderModel.provider_type == provider_type.value,
                ProviderModel.is_available.is_(True),
                ProviderModel.max_capacity - ProviderModel.current_load
                >= max(min_remaining_capacity, 1),
            )
            .execution_options(populate_existing=True)
        )
        excluded = list(exclude)
        if excluded:
            query = query.where(ProviderModel.id.notin_(excluded))
        result = await self._s.execute(query)
        providers = [_provider_to_domain(m) for m in result.scalars()]
        if specialty is not None:
            providers = [p for p in providers if p.has_specialty(specialty)]
        return rank_candidates(providers)

    async def reserve_capacity(self, provider_id: int, delta: int = 1) -> Provider:
        # Compare-and-swap: the guard and the increment are one statement.
        result = await self._s.execute(
            update(ProviderModel)
            .where(
                ProviderModel.id == provider_id,
                ProviderModel.current_load + delta <= ProviderModel.max_capacity,
                ProviderModel.current_load + delta >= 0,
            )
            .values(current_load=ProviderModel.current_load + delta)
            .returning(ProviderModel.id)
            .execution_options(synchronize_session=False)
        )
        reserved = result.scalar_one_or_none()
        m = await self._s.get(ProviderModel, provider_id, populate_existing=True)
        if m is None:
            raise ProviderNotFound(provider_id)
        if reserved is None:
            raise CapacityExceeded(provider_id, m.current_load, m.max_capacity)
        return _provider_to_domain(m)

    async def release_capacity(self, provider_id: int, delta: int = 1) -> int:
        m = await self._locked(provider_id)
        released = min(delta, m.current_load)
        m.current_load -= released
        await self._s.flush()
        return released

    async def set_availability(self, provider_id: int, is_available: bool) -> Provider:
        m = await self._locked(provider_id)
        m.is_available = is_available
        await self._s.flush()
        return _provider_to_domain(m)

    async def update_capacity(self, provider_id: int, max_capacity: int) -> Provider:
        m = await self._locked(provider_id)
        if max_capacity < m.current_load:
            raise CapacityExceeded(provider_id, m.current_load, max_capacity)
        m.max_capacity = max_capacity
        await self._s.flush()
        return _provider_to_domain(m)

    async def reset_load(self, provider_id: int, expected_load: int, new_load: int) -> Provider | None:
        result = await self._s.execute(
            update(ProviderModel)
            .where(ProviderModel.id == provider_id, ProviderModel.current_load == expected_load)
            .values(current_load=new_load)
            .returning(ProviderModel.id)
            .execution_options(synchronize_session=False)
        )
        changed = result.scalar_one_or_none()
        m = await self._s.get(ProviderModel, provider_id, populate_existing=True)
        if m is None:
            raise ProviderNotFound(provider_id)
        return _provider_to_domain(m) if changed is not None else None

    async def _locked(self, provider_id: int) -> ProviderModel:
        result = await self._s.execute(
            select(ProviderModel)
            .where(ProviderModel.id == provider_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        if m is None:
            raise ProviderNotFound(provider_id)
        return m


class SqlOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, order: Order) -> Order:
        m = OrderModel(
            order_number=order.order_number,
            user_id=order.user_id,
            provider_type=order.provider_type.value,
            zone=order.zone,
            meal_slot=order.meal_slot.value,
            priority=order.priority.value,
            delivery_start=order.delivery_window.start,
            delivery_end=order.delivery_window.end,
            total_amount=order.total_amount,
            status=order.status.value,
            match_attempts=order.match_attempts,
            last_match_reason=order.last_match_reason,
            cancel_reason=order.cancel_reason,
            created_at=order.created_at,
            history=[
                OrderStatusHistoryModel(status=h.status.value, changed_at=h.changed_at, note=h.note)
                for h in order.status_history
            ],
        )
        self._s.add(m)
        await self._s.flush()
        order.id = m.id
        return order

    async def get_by_id(self, order_id: int) -> Order | None:
        m = await self._s.get(OrderModel, order_id, populate_existing=True)
        return _order_to_domain(m) if m else None

    async def get_for_update(self, order_id: int) -> Order | None:
        result = await self._s.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _order_to_domain(m) if m else None

    async def get_all(self, status: OrderStatus | None = None) -> list[Order]:
        query = select(OrderModel).order_by(OrderModel.id)
        if status is not None:
            query = query.where(OrderModel.status == status.value)
        result = await self._s.execute(query)
        return [_order_to_domain(m) for m in result.scalars()]

    async def get_unassigned(
        self,
        zone: str | None = None,
        provider_type: ProviderType | None = None,
        limit: int | None = None,
        priorities: Iterable[OrderPriority] | None = None,
    ) -> list[Order]:
        query = (
            select(OrderModel)
            .where(OrderModel.status == OrderStatus.UNASSIGNED.value)
            .order_by(_PRIORITY_ORDER, OrderModel.created_at, OrderModel.id)
        )
        if priorities is not None:
            query = query.where(OrderModel.priority.in_([p.value for p in priorities]))
        if zone is not None:
            query = query.where(OrderModel.zone == zone)
        if provider_type is not None:
            query = query.where(OrderModel.provider_type == provider_type.value)
        if limit is not None:
            query = query.limit(limit)
        result = await self._s.execute(query)
        return [_order_to_domain(m) for m in result.scalars()]

    async def next_order_sequence(self, delivery_date: date) -> int:
        # Upsert-and-increment is one statement; the row lock serializes callers.
        stmt = (
            insert(OrderSequenceModel)
            .values(delivery_date=delivery_date, last_value=1)
            .on_conflict_do_update(
                index_elements=[OrderSequenceModel.delivery_date],
                set_={"last_value": OrderSequenceModel.last_value + 1},
            )
            .returning(OrderSequenceModel.last_value)
        )
        result = await self._s.execute(stmt)
        return result.scalar_one()

    async def update(self, order: Order) -> Order:
        m = await self._s.get(OrderModel, order.id)
        if m is None:
            return await self.save(order)
        m.status = order.status.value
        m.priority = order.priority.value
        m.match_attempts = order.match_attempts
        m.last_match_reason = order.last_match_reason
        m.cancel_reason = order.cancel_reason
        # History is append-only: persist only entries not yet stored.
        for h in order.status_history[len(m.history):]:
            m.history.append(
                OrderStatusHistoryModel(status=h.status.value, changed_at=h.changed_at, note=h.note)
            )
        await self._s.flush()
        return order


class SqlAssignmentLedger(AssignmentLedger):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def record(self, assignment: Assignment) -> Assignment:
        m = AssignmentModel(
            order_id=assignment.order_id,
            provider_id=assignment.provider_id,
            reason=assignment.reason,
            manual=assignment.manual,
            supersedes=assignment.supersedes,
            assigned_at=assignment.assigned_at,
        )
        self._s.add(m)
        await self._s.flush()
        assignment.id = m.id
        return assignment

    async def void(self, assignment_id: int, reason: str | None = None) -> Assignment:
        m = await self._s.get(AssignmentModel, assignment_id)
        if m is None:
            raise KeyError(f"Assignment {assignment_id} not found")
        if m.voided_at is None:
            m.voided_at = utcnow()
            m.void_reason = reason
            await self._s.flush()
        return _assignment_to_domain(m)

    async def active_for(self, order_id: int) -> Assignment | None:
        result = await self._s.execute(
            select(AssignmentModel).where(
                AssignmentModel.order_id == order_id,
                AssignmentModel.voided_at.is_(None),
            )
        )
        m = result.scalar_one_or_none()
        return _assignment_to_domain(m) if m else None

    async def history_for(self, order_id: int) -> list[Assignment]:
        result = await self._s.execute(
            select(AssignmentModel)
            .where(AssignmentModel.order_id == order_id)
            .order_by(AssignmentModel.id)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def active_for_provider(self, provider_id: int) -> list[Assignment]:
        result = await self._s.execute(
            select(AssignmentModel)
            .where(
                AssignmentModel.provider_id == provider_id,
                AssignmentModel.voided_at.is_(None),
            )
            .order_by(AssignmentModel.id)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def get_all(self) -> list[Assignment]:
        result = await self._s.execute(select(AssignmentModel).order_by(AssignmentModel.id))
        return [_assignment_to_domain(m) for m in result.scalars()]

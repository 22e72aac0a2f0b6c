"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from app.adapters.memory.stores import (
    InMemoryAssignmentLedger,
    InMemoryOrderRepository,
    InMemoryProviderRegistry,
)
from app.application.locks import KeyedLock
from app.application.ports.notifier_port import NotificationPort
from app.application.use_cases.assign_order import AssignOrderUseCase, RetryQueuedOrdersUseCase
from app.application.use_cases.capacity_updater import CapacityUpdater
from app.application.use_cases.intake_order import OrderDraft, SubmitOrderUseCase
from app.application.use_cases.manage_order import ManageOrderUseCase
from app.application.use_cases.manage_provider import ManageProviderUseCase
from app.domain.entities.order import Order
from app.domain.entities.provider import Provider
from app.domain.events import DomainEvent
from app.domain.value_objects.enums import ProviderType

LUNCH_START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(NotificationPort):
    def __init__(self):
        self.events: list[DomainEvent] = []

    async def publish(self, event):
        self.events.append(event)

    def of_type(self, event_type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


def build_provider(
    id: int | None = None,
    name: str = "Provider",
    provider_type: ProviderType = ProviderType.CHEF,
    zone: str = "Z1",
    max_capacity: int = 5,
    current_load: int = 0,
    rating: float = 4.0,
    performance_score: float = 80.0,
    is_available: bool = True,
    specialties: set[str] | None = None,
) -> Provider:
    return Provider(
        id=id,
        name=name,
        provider_type=provider_type,
        zone=zone,
        max_capacity=max_capacity,
        current_load=current_load,
        rating=rating,
        performance_score=performance_score,
        is_available=is_available,
        specialties=specialties or set(),
    )


def build_draft(
    user_id: str = "user-1",
    provider_type: str = "chef",
    zone: str = "Z1",
    start: datetime = LUNCH_START,
    minutes: int = 60,
    total_amount: str = "12.50",
    meal_slot: str = "lunch",
    priority: str = "medium",
) -> OrderDraft:
    return OrderDraft(
        user_id=user_id,
        provider_type=provider_type,
        zone=zone,
        delivery_start=start,
        delivery_end=start + timedelta(minutes=minutes),
        total_amount=total_amount,
        meal_slot=meal_slot,
        priority=priority,
    )


@dataclass
class Engine:
    """Every use case wired against fresh in-memory stores."""

    orders: InMemoryOrderRepository
    providers: InMemoryProviderRegistry
    ledger: InMemoryAssignmentLedger
    notifier: RecordingNotifier
    capacity: CapacityUpdater
    assign: AssignOrderUseCase
    retry: RetryQueuedOrdersUseCase
    manage: ManageOrderUseCase
    manage_providers: ManageProviderUseCase
    locks: KeyedLock = field(default_factory=KeyedLock)

    async def place(self, assign: bool = True, **draft_fields) -> Order:
        """Submit an order; with ``assign=False`` it just joins the queue."""
        intake = SubmitOrderUseCase(self.orders, self.assign, auto_assign=assign)
        result = await intake.execute(build_draft(**draft_fields))
        return result.order

    async def load_of(self, provider_id: int) -> int:
        provider = await self.providers.get_by_id(provider_id)
        return provider.current_load


def build_engine(
    providers=(),
    strict: bool = True,
    max_candidate_attempts: int = 3,
    registry: InMemoryProviderRegistry | None = None,
    ledger: InMemoryAssignmentLedger | None = None,
    notifier: NotificationPort | None = None,
) -> Engine:
    orders = InMemoryOrderRepository()
    registry = registry if registry is not None else InMemoryProviderRegistry(providers)
    ledger = ledger if ledger is not None else InMemoryAssignmentLedger()
    notifier = notifier if notifier is not None else RecordingNotifier()
    capacity = CapacityUpdater(registry, strict=strict)
    locks = KeyedLock()
    assign = AssignOrderUseCase(
        order_repo=orders,
        provider_registry=registry,
        ledger=ledger,
        capacity=capacity,
        notifier=notifier,
        max_candidate_attempts=max_candidate_attempts,
        order_locks=locks,
    )
    retry = RetryQueuedOrdersUseCase(assign_order=assign, order_repo=orders)
    manage = ManageOrderUseCase(
        order_repo=orders,
        provider_registry=registry,
        ledger=ledger,
        capacity=capacity,
        notifier=notifier,
        assign_order=assign,
        retry_queue=retry,
    )
    return Engine(
        orders=orders,
        providers=registry,
        ledger=ledger,
        notifier=notifier,
        capacity=capacity,
        assign=assign,
        retry=retry,
        manage=manage,
        manage_providers=ManageProviderUseCase(registry, retry_queue=retry),
        locks=locks,
    )


@pytest.fixture
def make_provider():
    return build_provider


@pytest.fixture
def make_draft():
    return build_draft


@pytest.fixture
def make_engine():
    return build_engine


@pytest.fixture
def notifier():
    return RecordingNotifier()

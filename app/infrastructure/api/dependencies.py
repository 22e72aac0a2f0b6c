"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.memory.stores import (
    InMemoryAssignmentLedger,
    InMemoryOrderRepository,
    InMemoryProviderRegistry,
)
from app.adapters.notifications.webhook_notifier import LoggingNotifier, WebhookNotifier
from app.adapters.persistence.database import get_session
from app.adapters.persistence.repositories import (
    SqlAssignmentLedger,
    SqlOrderRepository,
    SqlProviderRegistry,
)
from app.application.outbox import EventOutbox
from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.notifier_port import NotificationPort
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.application.use_cases.assign_order import AssignOrderUseCase, RetryQueuedOrdersUseCase
from app.application.use_cases.assignment_stats import AssignmentStatsUseCase
from app.application.use_cases.capacity_updater import CapacityUpdater
from app.application.use_cases.intake_order import SubmitOrderUseCase
from app.application.use_cases.manage_order import ManageOrderUseCase
from app.application.use_cases.manage_provider import ManageProviderUseCase
from app.application.use_cases.reset_capacity import ResetDailyCapacityUseCase
from app.config import settings
from app.domain.errors import (
    AssignmentEngineError,
    CapacityExceeded,
    CapacityUnderflow,
    InvalidOrder,
    InvalidProvider,
    InvalidTransition,
    OrderNotFound,
    ProviderIneligible,
    ProviderNotFound,
)

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """One unit of work: the three repositories, its session and its events."""

    orders: OrderRepository
    providers: ProviderRegistry
    ledger: AssignmentLedger
    outbox: EventOutbox
    session: AsyncSession | None = None

    async def commit(self, background_tasks: BackgroundTasks | None = None) -> None:
        """Commit, then release the collected events.

        With *background_tasks* the events go out after the response is
        sent; without, they are published before this returns.
        """
        if self.session is not None:
            await self.session.commit()
        if background_tasks is not None:
            background_tasks.add_task(self.outbox.flush)
        else:
            await self.outbox.flush()


def sql_stores(session: AsyncSession, notifier: NotificationPort) -> Stores:
    return Stores(
        orders=SqlOrderRepository(session),
        providers=SqlProviderRegistry(session),
        ledger=SqlAssignmentLedger(session),
        outbox=EventOutbox(notifier),
        session=session,
    )


def memory_stores(notifier: NotificationPort | None = None) -> Stores:
    return Stores(
        orders=InMemoryOrderRepository(),
        providers=InMemoryProviderRegistry(),
        ledger=InMemoryAssignmentLedger(),
        outbox=EventOutbox(notifier or get_notifier()),
    )


# Singletons (process-wide state for the memory backend, stateless notifier)
_memory_stores: Stores | None = None

if settings.notification_webhook_url:
    _notifier: NotificationPort = WebhookNotifier()
    logger.info("Publishing events to %s", settings.notification_webhook_url)
else:
    _notifier = LoggingNotifier()


def get_notifier() -> NotificationPort:
    return _notifier


def shared_memory_stores(notifier: NotificationPort | None = None) -> Stores:
    """The process-wide in-memory repositories behind a fresh outbox."""
    global _memory_stores
    if _memory_stores is None:
        _memory_stores = memory_stores()
    return Stores(
        orders=_memory_stores.orders,
        providers=_memory_stores.providers,
        ledger=_memory_stores.ledger,
        outbox=EventOutbox(notifier or get_notifier()),
    )


async def get_stores(
    session: AsyncSession = Depends(get_session),
    notifier: NotificationPort = Depends(get_notifier),
) -> Stores:
    """One unit of work per request: a session for sql, shared stores for memory."""
    if settings.storage_backend == "memory":
        return shared_memory_stores(notifier)
    return sql_stores(session, notifier)


# ─── Use case builders (shared by routes and the background sweep) ──


def _capacity(stores: Stores) -> CapacityUpdater:
    return CapacityUpdater(
        stores.providers,
        strict=settings.strict_capacity_invariants or settings.debug,
    )


def build_assign_order(stores: Stores) -> AssignOrderUseCase:
    return AssignOrderUseCase(
        order_repo=stores.orders,
        provider_registry=stores.providers,
        ledger=stores.ledger,
        capacity=_capacity(stores),
        notifier=stores.outbox,
        max_candidate_attempts=settings.max_candidate_attempts,
    )


def build_retry_queue(stores: Stores) -> RetryQueuedOrdersUseCase:
    return RetryQueuedOrdersUseCase(
        assign_order=build_assign_order(stores),
        order_repo=stores.orders,
    )


def build_daily_reset(stores: Stores) -> ResetDailyCapacityUseCase:
    return ResetDailyCapacityUseCase(
        provider_registry=stores.providers,
        ledger=stores.ledger,
        order_repo=stores.orders,
        retry_queue=build_retry_queue(stores),
    )


def get_assign_order_uc(stores: Stores = Depends(get_stores)) -> AssignOrderUseCase:
    return build_assign_order(stores)


def get_retry_queue_uc(stores: Stores = Depends(get_stores)) -> RetryQueuedOrdersUseCase:
    return build_retry_queue(stores)


def get_daily_reset_uc(stores: Stores = Depends(get_stores)) -> ResetDailyCapacityUseCase:
    return build_daily_reset(stores)


def get_submit_order_uc(stores: Stores = Depends(get_stores)) -> SubmitOrderUseCase:
    return SubmitOrderUseCase(
        order_repo=stores.orders,
        assign_order=build_assign_order(stores),
        auto_assign=settings.auto_assign_on_intake,
    )


def get_manage_order_uc(stores: Stores = Depends(get_stores)) -> ManageOrderUseCase:
    assign_uc = build_assign_order(stores)
    return ManageOrderUseCase(
        order_repo=stores.orders,
        provider_registry=stores.providers,
        ledger=stores.ledger,
        capacity=_capacity(stores),
        notifier=stores.outbox,
        assign_order=assign_uc,
        retry_queue=RetryQueuedOrdersUseCase(assign_order=assign_uc, order_repo=stores.orders),
    )


def get_manage_provider_uc(stores: Stores = Depends(get_stores)) -> ManageProviderUseCase:
    return ManageProviderUseCase(
        provider_registry=stores.providers,
        retry_queue=build_retry_queue(stores),
    )


def get_stats_uc(stores: Stores = Depends(get_stores)) -> AssignmentStatsUseCase:
    return AssignmentStatsUseCase(order_repo=stores.orders, ledger=stores.ledger)


# ─── Error mapping ───────────────────────────────────────────────────

_STATUS_BY_ERROR: list[tuple[type[AssignmentEngineError], int]] = [
    (OrderNotFound, 404),
    (ProviderNotFound, 404),
    (InvalidOrder, 422),
    (InvalidProvider, 422),
    (InvalidTransition, 409),
    (ProviderIneligible, 409),
    (CapacityExceeded, 409),
    (CapacityUnderflow, 500),
]


def to_http_error(error: AssignmentEngineError) -> HTTPException:
    """Translate a domain error into the HTTPException a route should raise."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))

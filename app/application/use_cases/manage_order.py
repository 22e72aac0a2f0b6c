"""ManageOrderUseCase — operator commands and lifecycle transitions."""

from __future__ import annotations

import logging

from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.notifier_port import NotificationPort
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.application.use_cases.assign_order import (
    AssignOrderUseCase,
    MatchResult,
    RetryQueuedOrdersUseCase,
)
from app.application.use_cases.capacity_updater import CapacityUpdater
from app.domain.entities.order import Order
from app.domain.errors import (
    InvalidTransition,
    OrderNotFound,
    ProviderIneligible,
    ProviderNotFound,
)
from app.domain.events import OrderCancelled
from app.domain.policies.eligibility import ineligibility_reason, requirement_for
from app.domain.policies.order_lifecycle import ensure_transition
from app.domain.value_objects.enums import OrderPriority, OrderStatus, SwitchReason

logger = logging.getLogger(__name__)


class ManageOrderUseCase:
    """Confirm, deliver, cancel, reassign and manually assign orders.

    Every command runs under the order's lock. Capacity freed by a command
    triggers a retry of the queue for the provider's zone and type once the
    lock is released.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        provider_registry: ProviderRegistry,
        ledger: AssignmentLedger,
        capacity: CapacityUpdater,
        notifier: NotificationPort,
        assign_order: AssignOrderUseCase,
        retry_queue: RetryQueuedOrdersUseCase | None = None,
    ):
        self._orders = order_repo
        self._providers = provider_registry
        self._ledger = ledger
        self._capacity = capacity
        self._notifier = notifier
        self._assign = assign_order
        self._retry = retry_queue

    async def confirm(self, order_id: int) -> Order:
        """Provider accepted the order: assigned → confirmed."""
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            order.transition_to(OrderStatus.CONFIRMED, note="confirmed by provider")
            await self._orders.update(order)
        logger.info("Order %d confirmed", order_id)
        return order

    async def deliver(self, order_id: int) -> Order:
        """Order delivered: confirmed → completed, the provider slot is freed."""
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            ensure_transition(order.id, order.status, OrderStatus.COMPLETED)
            active = await self._ledger.active_for(order.id)
            if active is not None:
                await self._capacity.on_release(active.provider_id)
            order.transition_to(OrderStatus.COMPLETED, note="delivered")
            await self._orders.update(order)
        logger.info("Order %d completed", order_id)
        if active is not None:
            await self._requeue_for(active.provider_id)
        return order

    async def cancel(self, order_id: int, reason: str | None = None) -> Order:
        """Cancel from any non-terminal status, voiding and releasing a held slot."""
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            ensure_transition(order.id, order.status, OrderStatus.CANCELLED)
            active = await self._ledger.active_for(order.id)
            if active is not None:
                await self._ledger.void(active.id, reason=f"order cancelled: {reason or 'no reason'}")
                if order.holds_capacity():
                    await self._capacity.on_release(active.provider_id)
            order.cancel_reason = reason
            order.transition_to(OrderStatus.CANCELLED, note=reason)
            await self._orders.update(order)

        logger.info("Order %d cancelled (%s)", order_id, reason)
        await self._notifier.publish(
            OrderCancelled(
                order_id=order_id,
                provider_id=active.provider_id if active is not None else None,
                reason=reason,
            )
        )
        if active is not None:
            await self._requeue_for(active.provider_id)
        return order

    async def reassign(
        self,
        order_id: int,
        reason: SwitchReason = SwitchReason.ADMIN_REASSIGNMENT,
    ) -> MatchResult:
        """Switch an order to a different provider.

        The new slot is reserved before the old assignment is touched, so a
        failed switch leaves the order exactly as it was. An unassigned
        order is simply assigned.
        """
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            current = await self._ledger.active_for(order.id)
            if order.is_unassigned() or current is None:
                return await self._assign.assign_locked(order)
            ensure_transition(order.id, order.status, OrderStatus.ASSIGNED)

            reservation = await self._assign.reserve_best(order, exclude={current.provider_id})
            if reservation.provider is None:
                logger.warning(
                    "Order %d: no alternative to provider %d (%s)",
                    order.id, current.provider_id, reservation.reason,
                )
                return MatchResult(
                    order_id=order.id,
                    matched=False,
                    assignment=None,
                    provider_id=current.provider_id,
                    attempts=reservation.attempts,
                    reason=f"{reservation.reason}; keeping provider {current.provider_id}",
                )

            assignment = await self._assign.commit_assignment(
                order,
                reservation.provider,
                reason=reservation.reason,
                previous=current,
                note=f"reassigned: {reason.value}",
            )

        await self._requeue_for(current.provider_id)
        return MatchResult(
            order_id=order_id,
            matched=True,
            assignment=assignment,
            provider_id=assignment.provider_id,
            attempts=reservation.attempts,
            reason=reservation.reason,
        )

    async def assign_manually(self, order_id: int, provider_id: int) -> MatchResult:
        """Operator override: put the order on a specific provider.

        Raises:
            ProviderNotFound: unknown provider.
            ProviderIneligible: wrong zone / type, or provider unavailable.
            CapacityExceeded: provider is full.
            InvalidTransition: order is completed or cancelled.
        """
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            if order.is_terminal():
                raise InvalidTransition(order.id, order.status.value, OrderStatus.ASSIGNED.value)

            provider = await self._providers.get_by_id(provider_id)
            if provider is None:
                raise ProviderNotFound(provider_id)

            current = await self._ledger.active_for(order.id)
            if current is not None and current.provider_id == provider_id:
                return MatchResult(
                    order_id=order.id,
                    matched=True,
                    assignment=current,
                    provider_id=provider_id,
                    attempts=0,
                    reason="already assigned to this provider",
                    already_assigned=True,
                )

            problem = ineligibility_reason(provider, requirement_for(order))
            if problem is not None:
                raise ProviderIneligible(f"Provider {provider_id} cannot serve order {order.id}: {problem}")

            reserved = await self._capacity.on_assign(provider_id)
            reason = f"Manual assignment to {reserved.name}"
            assignment = await self._assign.commit_assignment(
                order,
                reserved,
                reason=reason,
                manual=True,
                previous=current,
                note="manually assigned by operator",
            )

        if current is not None:
            await self._requeue_for(current.provider_id)
        return MatchResult(
            order_id=order_id,
            matched=True,
            assignment=assignment,
            provider_id=provider_id,
            attempts=1,
            reason=reason,
        )

    async def update_priority(self, order_id: int, priority: OrderPriority) -> Order:
        """Move a queued or in-flight order up or down the intake queue."""
        async with self._assign.order_locks.hold(order_id):
            order = await self._load(order_id)
            if order.is_terminal():
                raise InvalidTransition(order.id, order.status.value, "priority change")
            previous, order.priority = order.priority, priority
            await self._orders.update(order)
        logger.info("Order %d priority %s -> %s", order_id, previous.value, priority.value)
        return order

    async def _load(self, order_id: int) -> Order:
        order = await self._orders.get_for_update(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _requeue_for(self, provider_id: int) -> None:
        """Give queued orders a chance at capacity freed on *provider_id*."""
        if self._retry is None:
            return
        provider = await self._providers.get_by_id(provider_id)
        if provider is None or not provider.is_available:
            return
        await self._retry.execute(zone=provider.zone, provider_type=provider.provider_type)

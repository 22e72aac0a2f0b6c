"""AssignOrderUseCase — the matching engine: eligible → ranked → reserved → recorded."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from app.application.locks import ORDER_LOCKS, KeyedLock
from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.notifier_port import NotificationPort
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.application.use_cases.capacity_updater import CapacityUpdater
from app.domain.entities.assignment import Assignment
from app.domain.entities.order import Order
from app.domain.entities.provider import Provider
from app.domain.errors import (
    AssignmentEngineError,
    CapacityExceeded,
    InvalidTransition,
    OrderNotFound,
    ProviderNotFound,
)
from app.domain.events import OrderAssigned, OrderUnmatched
from app.domain.policies.eligibility import requirement_for
from app.domain.policies.ranking import top_candidates
from app.domain.value_objects.enums import OrderStatus, ProviderType

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATE_ATTEMPTS = 3


@dataclass
class MatchResult:
    """Outcome of one assignment attempt. ``matched=False`` means Unmatched."""

    order_id: int
    matched: bool
    assignment: Assignment | None
    provider_id: int | None
    attempts: int
    reason: str
    already_assigned: bool = False


@dataclass
class Reservation:
    """A slot held on *provider*, or None when every candidate failed."""

    provider: Provider | None
    attempts: int
    reason: str


class AssignOrderUseCase:
    """Matches one queued order to the best provider with spare capacity."""

    def __init__(
        self,
        order_repo: OrderRepository,
        provider_registry: ProviderRegistry,
        ledger: AssignmentLedger,
        capacity: CapacityUpdater,
        notifier: NotificationPort,
        max_candidate_attempts: int = DEFAULT_MAX_CANDIDATE_ATTEMPTS,
        order_locks: KeyedLock | None = None,
    ):
        self._orders = order_repo
        self._providers = provider_registry
        self._ledger = ledger
        self._capacity = capacity
        self._notifier = notifier
        self._max_attempts = max(1, max_candidate_attempts)
        self._locks = order_locks if order_locks is not None else ORDER_LOCKS

    @property
    def order_locks(self) -> KeyedLock:
        return self._locks

    async def execute(self, order_id: int) -> MatchResult:
        """Assign an order. Safe to call repeatedly.

        An order that already holds an assignment gets that assignment back
        unchanged. Completed and cancelled orders raise InvalidTransition.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        async with self._locks.hold(order_id):
            order = await self._orders.get_for_update(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return await self.assign_locked(order)

    async def assign_locked(self, order: Order) -> MatchResult:
        """Assign *order*; the caller must already hold its lock."""
        if order.is_terminal():
            raise InvalidTransition(order.id, order.status.value, OrderStatus.ASSIGNED.value)

        existing = await self._ledger.active_for(order.id)
        if existing is not None:
            if order.is_unassigned():
                # Ledger is authoritative; heal an order left behind by a crash.
                logger.warning(
                    "Order %d is unassigned but has active assignment %d, adopting it",
                    order.id, existing.id,
                )
                order.transition_to(OrderStatus.ASSIGNED, note="recovered from ledger")
                await self._orders.update(order)
            else:
                logger.info("Order %d already assigned to provider %d", order.id, existing.provider_id)
            return MatchResult(
                order_id=order.id,
                matched=True,
                assignment=existing,
                provider_id=existing.provider_id,
                attempts=0,
                reason="already assigned",
                already_assigned=True,
            )

        reservation = await self.reserve_best(order)
        if reservation.provider is None:
            return await self._mark_unmatched(order, reservation)

        assignment = await self.commit_assignment(
            order, reservation.provider, reason=reservation.reason
        )
        return MatchResult(
            order_id=order.id,
            matched=True,
            assignment=assignment,
            provider_id=reservation.provider.id,
            attempts=reservation.attempts,
            reason=reservation.reason,
        )

    async def reserve_best(self, order: Order, exclude: Iterable[int] = ()) -> Reservation:
        """Reserve a slot on the best eligible provider.

        Candidates are tried in rank order. A CapacityExceeded means a
        concurrent request took the last slot, so the next candidate is
        tried, up to the configured attempt bound.
        """
        requirement = requirement_for(order)
        candidates = await self._providers.find_eligible(
            requirement.zone,
            requirement.provider_type,
            requirement.min_remaining_capacity,
            exclude=exclude,
        )
        if not candidates:
            return Reservation(
                provider=None,
                attempts=0,
                reason=(
                    f"No available {requirement.provider_type.value} providers "
                    f"with capacity in zone '{requirement.zone}'"
                ),
            )

        attempts = 0
        for candidate in top_candidates(candidates, self._max_attempts):
            attempts += 1
            try:
                provider = await self._capacity.on_assign(candidate.id)
            except CapacityExceeded:
                logger.info(
                    "Order %d: provider %d filled up concurrently, trying next candidate",
                    order.id, candidate.id,
                )
                continue
            except ProviderNotFound:
                logger.warning("Order %d: provider %d vanished, trying next candidate", order.id, candidate.id)
                continue

            reason = (
                f"Best match: {provider.name} "
                f"(performance {provider.performance_score:g}, "
                f"load {provider.current_load}/{provider.max_capacity})"
            )
            return Reservation(provider=provider, attempts=attempts, reason=reason)

        return Reservation(
            provider=None,
            attempts=attempts,
            reason=f"All {attempts} candidate provider(s) ran out of capacity",
        )

    async def commit_assignment(
        self,
        order: Order,
        provider: Provider,
        reason: str | None,
        manual: bool = False,
        previous: Assignment | None = None,
        note: str | None = None,
    ) -> Assignment:
        """Write the ledger and order state for a slot already reserved on *provider*.

        When *previous* is given it is voided and its provider released
        first, so the order never has two active assignments. If anything
        fails, every step already taken is undone before the error
        propagates: the new reservation is handed back and *previous* is
        reinstated on its provider.
        """
        recorded: Assignment | None = None
        voided: Assignment | None = None
        previous_released = False
        try:
            if previous is not None:
                await self._ledger.void(previous.id, reason=note or "superseded")
                voided = previous
                await self._capacity.on_release(previous.provider_id)
                previous_released = True

            recorded = await self._ledger.record(
                Assignment(
                    id=None,
                    order_id=order.id,
                    provider_id=provider.id,
                    reason=reason,
                    manual=manual,
                    supersedes=previous.id if previous is not None else None,
                )
            )
            order.transition_to(OrderStatus.ASSIGNED, note=note or reason)
            order.last_match_reason = None
            await self._orders.update(order)
        except Exception:
            logger.exception("Order %d: failed to record assignment, releasing provider %d", order.id, provider.id)
            try:
                await self._undo_commit(order.id, provider.id, recorded, voided, previous_released)
            except Exception:
                logger.exception("Order %d: could not restore its previous assignment", order.id)
            raise
        assignment = recorded

        logger.info(
            "Order %d → provider %s (#%d)%s",
            order.id, provider.name, provider.id, " [manual]" if manual else "",
        )
        await self._notifier.publish(
            OrderAssigned(
                order_id=order.id,
                provider_id=provider.id,
                assignment_id=assignment.id,
                user_id=order.user_id,
                manual=manual,
            )
        )
        return assignment

    async def _undo_commit(
        self,
        order_id: int,
        provider_id: int,
        recorded: Assignment | None,
        voided: Assignment | None,
        previous_released: bool,
    ) -> None:
        if recorded is not None:
            await self._ledger.void(recorded.id, reason="rolled back")
        await self._capacity.on_release(provider_id)
        if voided is None:
            return
        if previous_released:
            await self._capacity.on_assign(voided.provider_id)
        await self._ledger.record(
            Assignment(
                id=None,
                order_id=order_id,
                provider_id=voided.provider_id,
                reason=voided.reason,
                manual=voided.manual,
                supersedes=voided.id,
            )
        )
        logger.warning("Order %d: reinstated provider %d after a failed switch", order_id, voided.provider_id)

    async def _mark_unmatched(self, order: Order, reservation: Reservation) -> MatchResult:
        order.record_unmatched(reservation.reason)
        await self._orders.update(order)
        logger.warning("Order %d unmatched: %s", order.id, reservation.reason)

        # Only the first miss is announced; later sweeps just keep the order queued.
        if order.match_attempts == 1:
            await self._notifier.publish(
                OrderUnmatched(
                    order_id=order.id,
                    zone=order.zone,
                    provider_type=order.provider_type.value,
                    reason=reservation.reason,
                    attempts=reservation.attempts,
                )
            )
        return MatchResult(
            order_id=order.id,
            matched=False,
            assignment=None,
            provider_id=None,
            attempts=reservation.attempts,
            reason=reservation.reason,
        )


class RetryQueuedOrdersUseCase:
    """Retry every queued order, optionally only for one zone / provider type."""

    def __init__(self, assign_order: AssignOrderUseCase, order_repo: OrderRepository):
        self._assign = assign_order
        self._orders = order_repo

    async def execute(
        self,
        zone: str | None = None,
        provider_type: ProviderType | None = None,
        limit: int | None = None,
    ) -> list[MatchResult]:
        """Sweep the intake queue, most urgent first, and return one result per order tried."""
        queued = await self._orders.get_unassigned(zone=zone, provider_type=provider_type, limit=limit)
        logger.info("Retrying %d queued orders (zone=%s, type=%s)", len(queued), zone, provider_type)

        results: list[MatchResult] = []
        # (zone, type) groups with no candidates at all; later orders there are skipped.
        exhausted: set[tuple[str, ProviderType]] = set()
        for order in queued:
            group = (order.zone, order.provider_type)
            if group in exhausted:
                continue
            try:
                result = await self._assign.execute(order.id)
            except AssignmentEngineError as e:
                # The order moved on (cancelled, assigned elsewhere) since the queue was read.
                logger.warning("Skipping queued order %d: %s", order.id, e)
                continue
            if not result.matched and result.attempts == 0:
                exhausted.add(group)
            results.append(result)

        matched = sum(1 for r in results if r.matched)
        logger.info("Queue retry complete: %d/%d matched", matched, len(results))
        return results

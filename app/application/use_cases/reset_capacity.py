"""ResetDailyCapacityUseCase — start-of-day recount of provider load."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from app.application.locks import ORDER_LOCKS, KeyedLock
from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.order_repo import OrderRepository
from app.application.ports.provider_repo import ProviderRegistry
from app.application.use_cases.assign_order import MatchResult, RetryQueuedOrdersUseCase
from app.domain.entities.provider import Provider

logger = logging.getLogger(__name__)

RECOUNT_ATTEMPTS = 3


@dataclass
class LoadReset:
    provider_id: int
    before: int
    after: int


@dataclass
class DailyResetReport:
    resets: list[LoadReset] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    requeued: list[MatchResult] = field(default_factory=list)


class ResetDailyCapacityUseCase:
    """Bring every provider's load back to what its open orders really hold.

    Load is released on delivery and cancellation, so on a clean day this is
    a no-op. It frees slots leaked by orders that never reached a terminal
    status through the normal commands, and then retries the queue.

    Each write is a compare-and-set against the load read before counting,
    and no recount runs while an order command is in flight in this
    process. A provider whose load keeps moving is skipped and picked up by
    the next run. Availability is left alone: it is an operator decision.
    """

    def __init__(
        self,
        provider_registry: ProviderRegistry,
        ledger: AssignmentLedger,
        order_repo: OrderRepository,
        retry_queue: RetryQueuedOrdersUseCase | None = None,
        order_locks: KeyedLock | None = None,
    ):
        self._providers = provider_registry
        self._ledger = ledger
        self._orders = order_repo
        self._retry = retry_queue
        self._locks = order_locks if order_locks is not None else ORDER_LOCKS

    async def execute(self) -> DailyResetReport:
        report = DailyResetReport()
        freed: list[Provider] = []

        for provider in await self._providers.get_all():
            outcome = await self._recount(provider)
            if outcome is None:
                report.skipped.append(provider.id)
                logger.warning("Provider %d load kept changing, reset skipped", provider.id)
                continue
            if outcome.after != outcome.before:
                report.resets.append(outcome)
                logger.info("Provider %d load reset %d -> %d", provider.id, outcome.before, outcome.after)
                if outcome.after < outcome.before:
                    freed.append(provider)

        if self._retry is not None:
            seen: set[tuple] = set()
            for provider in freed:
                group = (provider.zone, provider.provider_type)
                if group in seen:
                    continue
                seen.add(group)
                report.requeued.extend(
                    await self._retry.execute(zone=provider.zone, provider_type=provider.provider_type)
                )

        logger.info(
            "Daily capacity reset: %d providers adjusted, %d skipped",
            len(report.resets), len(report.skipped),
        )
        return report

    async def _recount(self, provider: Provider) -> LoadReset | None:
        for _ in range(RECOUNT_ATTEMPTS):
            if len(self._locks):
                # A slot may be reserved but not yet in the ledger.
                await asyncio.sleep(0.05)
                continue
            current = await self._providers.get_by_id(provider.id)
            if current is None:
                return None
            held = await self._held_slots(provider.id)
            if held == current.current_load:
                return LoadReset(provider.id, current.current_load, held)
            if await self._providers.reset_load(provider.id, current.current_load, held) is not None:
                return LoadReset(provider.id, current.current_load, held)
        return None

    async def _held_slots(self, provider_id: int) -> int:
        held = 0
        for assignment in await self._ledger.active_for_provider(provider_id):
            order = await self._orders.get_by_id(assignment.order_id)
            if order is not None and order.holds_capacity():
                held += 1
        return held

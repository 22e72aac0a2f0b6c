"""Background jobs: periodic queue sweep and the daily capacity reset."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from app.adapters.persistence.database import async_session_factory
from app.application.use_cases.assign_order import MatchResult
from app.application.use_cases.reset_capacity import DailyResetReport
from app.config import settings
from app.domain.entities.order import utcnow
from app.infrastructure.api.dependencies import (
    Stores,
    build_daily_reset,
    build_retry_queue,
    get_notifier,
    shared_memory_stores,
    sql_stores,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _unit_of_work() -> AsyncIterator[Stores]:
    if settings.storage_backend == "memory":
        yield shared_memory_stores()
        return
    async with async_session_factory() as session:
        yield sql_stores(session, get_notifier())


async def sweep_once() -> list[MatchResult]:
    """Run one retry pass over the whole intake queue in its own unit of work.

    Events raised by the pass are published once it has committed.
    """
    async with _unit_of_work() as stores:
        results = await build_retry_queue(stores).execute()
        await stores.commit()
    return results


async def reset_capacity_once() -> DailyResetReport:
    """Recount every provider's load and retry the queue where slots came free."""
    async with _unit_of_work() as stores:
        report = await build_daily_reset(stores).execute()
        await stores.commit()
    return report


def reset_due(last_reset: date, today: date) -> bool:
    """The daily reset runs on the first tick after UTC midnight."""
    return today > last_reset


async def run_periodic_sweep(interval_seconds: float, daily_reset: bool = False) -> None:
    """Sweep every *interval_seconds* until cancelled."""
    logger.info("Queue sweep running every %.0fs", interval_seconds)
    last_reset = utcnow().date()
    while True:
        await asyncio.sleep(interval_seconds)

        today = utcnow().date()
        if daily_reset and reset_due(last_reset, today):
            try:
                await reset_capacity_once()
                last_reset = today
            except Exception:
                # Retried on the next tick.
                logger.exception("Daily capacity reset failed")

        try:
            results = await sweep_once()
        except Exception:
            # A failed pass must not stop later ones; the orders stay queued.
            logger.exception("Queue sweep failed")
            continue
        if results:
            matched = sum(1 for r in results if r.matched)
            logger.info("Queue sweep: %d/%d orders matched", matched, len(results))


class SweepScheduler:
    """Owns the background sweep task for the application lifespan."""

    def __init__(self, interval_seconds: float, daily_reset: bool = False):
        self._interval = interval_seconds
        self._daily_reset = daily_reset
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._interval <= 0:
            logger.info("Queue sweep disabled")
            return
        if not self.running:
            self._task = asyncio.create_task(run_periodic_sweep(self._interval, self._daily_reset))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

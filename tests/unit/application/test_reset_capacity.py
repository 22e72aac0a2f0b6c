"""Tests for the daily capacity reset."""

from __future__ import annotations

import pytest

from app.application.use_cases.reset_capacity import ResetDailyCapacityUseCase


def _reset(engine) -> ResetDailyCapacityUseCase:
    return ResetDailyCapacityUseCase(
        provider_registry=engine.providers,
        ledger=engine.ledger,
        order_repo=engine.orders,
        retry_queue=engine.retry,
        order_locks=engine.locks,
    )


@pytest.mark.asyncio
async def test_clean_day_changes_nothing(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    await engine.place()

    report = await _reset(engine).execute()

    assert report.resets == []
    assert report.skipped == []
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_leaked_load_is_freed_and_queue_retried(make_engine, make_provider):
    provider = make_provider(max_capacity=1)
    engine = make_engine([provider])
    # Load with no open order behind it, e.g. left by a crashed process.
    await engine.providers.reserve_capacity(provider.id)
    waiting = await engine.place()
    assert waiting.status.value == "unassigned"

    report = await _reset(engine).execute()

    assert [(r.provider_id, r.before, r.after) for r in report.resets] == [(provider.id, 1, 0)]
    assert [(r.order_id, r.matched) for r in report.requeued] == [(waiting.id, True)]
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_delivered_orders_do_not_count(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    order = await engine.place()
    await engine.manage.confirm(order.id)
    await engine.manage.deliver(order.id)
    await engine.providers.reserve_capacity(provider.id)

    report = await _reset(engine).execute()

    assert [(r.before, r.after) for r in report.resets] == [(1, 0)]
    assert await engine.load_of(provider.id) == 0


@pytest.mark.asyncio
async def test_provider_skipped_while_an_order_command_is_in_flight(make_engine, make_provider):
    provider = make_provider()
    engine = make_engine([provider])
    await engine.providers.reserve_capacity(provider.id)

    async with engine.locks.hold(999):
        report = await _reset(engine).execute()

    assert report.skipped == [provider.id]
    assert await engine.load_of(provider.id) == 1


@pytest.mark.asyncio
async def test_availability_is_left_alone(make_engine, make_provider):
    provider = make_provider(is_available=False)
    engine = make_engine([provider])
    await engine.providers.reserve_capacity(provider.id)

    await _reset(engine).execute()

    stored = await engine.providers.get_by_id(provider.id)
    assert stored.is_available is False
    assert stored.current_load == 0

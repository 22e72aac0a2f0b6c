"""Tests for request-scoped wiring: stores, commit and event release."""

from __future__ import annotations

import pytest
from fastapi import BackgroundTasks

from app.adapters.persistence.repositories import SqlOrderRepository
from app.config import settings
from app.domain.events import OrderCancelled
from app.infrastructure.api import dependencies
from app.infrastructure.api.dependencies import get_stores, memory_stores, sql_stores


class FakeSession:
    def __init__(self, log: list[str]):
        self._log = log

    async def commit(self):
        self._log.append("commit")


class LoggingRecorder:
    def __init__(self, log: list[str]):
        self._log = log

    async def publish(self, event):
        self._log.append(f"publish {type(event).__name__}")


@pytest.mark.asyncio
async def test_events_are_published_after_commit():
    log: list[str] = []
    stores = sql_stores(FakeSession(log), LoggingRecorder(log))
    await stores.outbox.publish(OrderCancelled(order_id=1, provider_id=None, reason=None))
    assert log == []

    await stores.commit()

    assert log == ["commit", "publish OrderCancelled"]


@pytest.mark.asyncio
async def test_commit_with_background_tasks_defers_delivery():
    log: list[str] = []
    stores = sql_stores(FakeSession(log), LoggingRecorder(log))
    await stores.outbox.publish(OrderCancelled(order_id=1, provider_id=None, reason=None))
    tasks = BackgroundTasks()

    await stores.commit(tasks)
    assert log == ["commit"]

    await tasks()
    assert log == ["commit", "publish OrderCancelled"]


@pytest.mark.asyncio
async def test_get_stores_uses_the_request_session(monkeypatch, notifier):
    monkeypatch.setattr(settings, "storage_backend", "sql")
    session = FakeSession([])

    stores = await get_stores(session=session, notifier=notifier)

    assert stores.session is session
    assert isinstance(stores.orders, SqlOrderRepository)


@pytest.mark.asyncio
async def test_memory_backend_shares_repositories_not_outboxes(monkeypatch, notifier):
    monkeypatch.setattr(settings, "storage_backend", "memory")
    monkeypatch.setattr(dependencies, "_memory_stores", memory_stores())

    first = await get_stores(session=None, notifier=notifier)
    second = await get_stores(session=None, notifier=notifier)

    assert first.orders is second.orders
    assert first.outbox is not second.outbox
    assert first.session is None

"""Tests for EventOutbox: events leave only after the unit of work is done."""

from __future__ import annotations

import asyncio

import pytest

from app.application.outbox import EventOutbox
from app.application.ports.notifier_port import NotificationPort
from app.domain.events import OrderAssigned, OrderCancelled, OrderUnmatched


class GatedNotifier(NotificationPort):
    """Blocks every delivery until ``gate`` is set."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.started = asyncio.Event()
        self.events = []

    async def publish(self, event):
        self.started.set()
        await self.gate.wait()
        self.events.append(event)


class FailingOnceNotifier(NotificationPort):
    def __init__(self):
        self.events = []
        self._failed = False

    async def publish(self, event):
        if not self._failed:
            self._failed = True
            raise RuntimeError("webhook down")
        self.events.append(event)


@pytest.mark.asyncio
async def test_assignment_completes_while_delivery_is_blocked(make_engine, make_provider):
    provider = make_provider()
    notifier = GatedNotifier()
    outbox = EventOutbox(notifier)
    engine = make_engine([provider], notifier=outbox)
    order = await engine.place(assign=False)

    result = await asyncio.wait_for(engine.assign.execute(order.id), timeout=1)

    assert result.matched
    assert len(engine.locks) == 0
    assert [type(e) for e in outbox.pending] == [OrderAssigned]
    assert notifier.events == []

    flush = asyncio.create_task(outbox.flush())
    await asyncio.wait_for(notifier.started.wait(), timeout=1)
    assert not flush.done()
    # Another command on the same order is not held up by the slow delivery.
    confirmed = await asyncio.wait_for(engine.manage.confirm(order.id), timeout=1)
    assert confirmed.status.value == "confirmed"

    notifier.gate.set()
    assert await asyncio.wait_for(flush, timeout=1) == 1
    assert [e.order_id for e in notifier.events] == [order.id]
    assert outbox.pending == []


@pytest.mark.asyncio
async def test_flush_keeps_publish_order_and_survives_failures(caplog):
    notifier = FailingOnceNotifier()
    outbox = EventOutbox(notifier)
    await outbox.publish(OrderUnmatched(order_id=1, zone="Z1", provider_type="chef", reason="none", attempts=0))
    await outbox.publish(OrderAssigned(order_id=2, provider_id=3, assignment_id=4, user_id="u"))
    await outbox.publish(OrderCancelled(order_id=5, provider_id=None, reason=None))

    assert await outbox.flush() == 3

    assert [type(e) for e in notifier.events] == [OrderAssigned, OrderCancelled]
    assert "Publishing OrderUnmatched failed" in caplog.text


@pytest.mark.asyncio
async def test_discarded_events_are_never_sent(notifier):
    outbox = EventOutbox(notifier)
    await outbox.publish(OrderCancelled(order_id=1, provider_id=None, reason="x"))

    outbox.discard()

    assert await outbox.flush() == 0
    assert notifier.events == []

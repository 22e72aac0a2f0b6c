"""Tests for the notification adapters."""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from app.adapters.notifications.webhook_notifier import LoggingNotifier, WebhookNotifier
from app.domain.events import OrderAssigned

EVENT = OrderAssigned(order_id=1, provider_id=2, assignment_id=3, user_id="u1")


@pytest.mark.asyncio
async def test_webhook_posts_event_payload():
    received: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(204)

    notifier = WebhookNotifier(url="http://hooks.test/events", transport=httpx.MockTransport(handler))
    await notifier.publish(EVENT)

    assert len(received) == 1
    assert received[0]["event"] == "OrderAssigned"
    assert received[0]["order_id"] == 1


@pytest.mark.asyncio
async def test_webhook_failure_is_logged_not_raised(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    notifier = WebhookNotifier(url="http://hooks.test/events", transport=httpx.MockTransport(handler))
    with caplog.at_level(logging.ERROR):
        await notifier.publish(EVENT)

    assert "Notification webhook failed" in caplog.text


@pytest.mark.asyncio
async def test_webhook_connection_error_is_swallowed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    notifier = WebhookNotifier(url="http://hooks.test/events", transport=httpx.MockTransport(handler))
    await notifier.publish(EVENT)


@pytest.mark.asyncio
async def test_logging_notifier(caplog):
    with caplog.at_level(logging.INFO):
        await LoggingNotifier().publish(EVENT)
    assert "OrderAssigned" in caplog.text

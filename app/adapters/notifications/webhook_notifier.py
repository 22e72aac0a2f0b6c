"""Notification adapters — implement NotificationPort."""

from __future__ import annotations

import logging

import httpx

from app.application.ports.notifier_port import NotificationPort
from app.config import settings
from app.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class WebhookNotifier(NotificationPort):
    """POSTs each event as JSON to a webhook. Failures are logged, never raised."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url or settings.notification_webhook_url
        self._timeout = timeout or settings.notification_timeout_seconds
        self._transport = transport

    async def publish(self, event: DomainEvent) -> None:
        payload = event.to_payload()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload)
                response.raise_for_status()
            logger.info("Delivered %s for order %s", payload["event"], payload.get("order_id"))
        except Exception:
            logger.exception("Notification webhook failed for %s", payload["event"])


class LoggingNotifier(NotificationPort):
    """Used when no webhook is configured: events only go to the log."""

    async def publish(self, event: DomainEvent) -> None:
        logger.info("Event %s", event.to_payload())

"""EventOutbox — holds a unit of work's events until it has committed."""

from __future__ import annotations

import logging

from app.application.ports.notifier_port import NotificationPort
from app.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class EventOutbox(NotificationPort):
    """Collects events published inside a transaction.

    ``publish`` only appends, so use cases never wait on the notification
    service while they hold order locks or row locks. The owner calls
    ``flush`` after a successful commit; if the commit fails the outbox is
    simply dropped and nothing is sent.
    """

    def __init__(self, notifier: NotificationPort):
        self._notifier = notifier
        self._pending: list[DomainEvent] = []

    @property
    def pending(self) -> list[DomainEvent]:
        return list(self._pending)

    async def publish(self, event: DomainEvent) -> None:
        self._pending.append(event)

    def discard(self) -> None:
        self._pending.clear()

    async def flush(self) -> int:
        """Hand every pending event to the notifier, in publish order."""
        events, self._pending = self._pending, []
        for event in events:
            try:
                await self._notifier.publish(event)
            except Exception:
                # One broken delivery must not hold back the rest.
                logger.exception("Publishing %s failed", type(event).__name__)
        return len(events)

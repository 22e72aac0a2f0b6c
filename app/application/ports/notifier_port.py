"""Port interface for the external notification service."""

from abc import ABC, abstractmethod

from app.domain.events import DomainEvent


class NotificationPort(ABC):
    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """Deliver an event, fire-and-forget.

        Implementations must not raise: a failed notification never rolls
        back an assignment.
        """
        ...

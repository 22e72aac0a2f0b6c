"""Port interface for order persistence (also the intake queue)."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date

from app.domain.entities.order import Order
from app.domain.value_objects.enums import OrderPriority, OrderStatus, ProviderType


class OrderRepository(ABC):
    @abstractmethod
    async def save(self, order: Order) -> Order:
        ...

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Order | None:
        ...

    @abstractmethod
    async def get_for_update(self, order_id: int) -> Order | None:
        """Load an order and hold its row lock until the transaction ends."""
        ...

    @abstractmethod
    async def get_all(self, status: OrderStatus | None = None) -> list[Order]:
        ...

    @abstractmethod
    async def get_unassigned(
        self,
        zone: str | None = None,
        provider_type: ProviderType | None = None,
        limit: int | None = None,
        priorities: Iterable[OrderPriority] | None = None,
    ) -> list[Order]:
        """Return queued orders, most urgent first, then oldest first."""
        ...

    @abstractmethod
    async def next_order_sequence(self, delivery_date: date) -> int:
        """Atomically hand out the next order number for *delivery_date*.

        Numbers start at 1 and are never handed out twice, even to
        concurrent callers.
        """
        ...

    @abstractmethod
    async def update(self, order: Order) -> Order:
        ...

"""Port interface for the append-only assignment ledger."""

from abc import ABC, abstractmethod

from app.domain.entities.assignment import Assignment


class AssignmentLedger(ABC):
    @abstractmethod
    async def record(self, assignment: Assignment) -> Assignment:
        """Append a new assignment. Existing records are never overwritten."""
        ...

    @abstractmethod
    async def void(self, assignment_id: int, reason: str | None = None) -> Assignment:
        """Mark an assignment as superseded. Records are never deleted."""
        ...

    @abstractmethod
    async def active_for(self, order_id: int) -> Assignment | None:
        ...

    @abstractmethod
    async def history_for(self, order_id: int) -> list[Assignment]:
        ...

    @abstractmethod
    async def active_for_provider(self, provider_id: int) -> list[Assignment]:
        ...

    @abstractmethod
    async def get_all(self) -> list[Assignment]:
        ...

"""Port interface for the provider registry."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from app.domain.entities.provider import Provider
from app.domain.value_objects.enums import ProviderType


class ProviderRegistry(ABC):
    @abstractmethod
    async def save(self, provider: Provider) -> Provider:
        ...

    @abstractmethod
    async def get_by_id(self, provider_id: int) -> Provider | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[Provider]:
        ...

    @abstractmethod
    async def find_eligible(
        self,
        zone: str,
        provider_type: ProviderType,
        min_remaining_capacity: int = 1,
        exclude: Iterable[int] = (),
        specialty: str | None = None,
    ) -> list[Provider]:
        """Return available providers in *zone* of *provider_type* with at
        least *min_remaining_capacity* free slots, best-ranked first.

        With *specialty* only providers offering it (case-insensitive) are
        returned.
        """
        ...

    @abstractmethod
    async def reserve_capacity(self, provider_id: int, delta: int = 1) -> Provider:
        """Atomically add *delta* to the provider's load.

        Must be a single read-modify-write per provider (lock or
        compare-and-swap). Never clamps.

        Raises:
            CapacityExceeded: if the new load would exceed max_capacity.
            ProviderNotFound: if the provider does not exist.
        """
        ...

    @abstractmethod
    async def release_capacity(self, provider_id: int, delta: int = 1) -> int:
        """Atomically subtract up to *delta* from the load, stopping at zero.

        Returns the amount actually released; a value below *delta* means
        the caller released more than it held.
        """
        ...

    @abstractmethod
    async def set_availability(self, provider_id: int, is_available: bool) -> Provider:
        ...

    @abstractmethod
    async def update_capacity(self, provider_id: int, max_capacity: int) -> Provider:
        """Change max_capacity.

        Raises:
            CapacityExceeded: if *max_capacity* is below the current load.
        """
        ...

    @abstractmethod
    async def reset_load(self, provider_id: int, expected_load: int, new_load: int) -> Provider | None:
        """Set current_load to *new_load* only if it still equals *expected_load*.

        Returns None when the load moved in the meantime.

        Raises:
            ProviderNotFound: if the provider does not exist.
        """
        ...

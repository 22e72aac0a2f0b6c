"""ManageProviderUseCase — registry administration that can free capacity."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.application.ports.provider_repo import ProviderRegistry
from app.application.use_cases.assign_order import MatchResult, RetryQueuedOrdersUseCase
from app.domain.entities.provider import Provider
from app.domain.errors import InvalidProvider, ProviderNotFound

logger = logging.getLogger(__name__)


@dataclass
class ProviderChange:
    provider: Provider
    requeued: list[MatchResult] = field(default_factory=list)


def validate_provider(provider: Provider) -> None:
    """Raise InvalidProvider unless the registry invariants hold."""
    if not provider.name or not provider.name.strip():
        raise InvalidProvider("name is required")
    if not provider.zone or not provider.zone.strip():
        raise InvalidProvider("zone is required")
    if provider.max_capacity < 0:
        raise InvalidProvider("max_capacity must be >= 0")
    if not 0 <= provider.current_load <= provider.max_capacity:
        raise InvalidProvider("current_load must be between 0 and max_capacity")
    if not 0 <= provider.rating <= 5:
        raise InvalidProvider("rating must be between 0 and 5")
    if not 0 <= provider.performance_score <= 100:
        raise InvalidProvider("performance_score must be between 0 and 100")


class ManageProviderUseCase:
    """Register providers and change availability / capacity.

    Open question resolved: a provider switched off keeps its in-flight
    orders; it only stops receiving new ones. Switching it back on, or
    raising its capacity, retries the queue for its zone and type.
    """

    def __init__(
        self,
        provider_registry: ProviderRegistry,
        retry_queue: RetryQueuedOrdersUseCase | None = None,
    ):
        self._providers = provider_registry
        self._retry = retry_queue

    async def register(self, provider: Provider) -> ProviderChange:
        validate_provider(provider)
        provider.specialties = {s.strip() for s in provider.specialties if s and s.strip()}
        saved = await self._providers.save(provider)
        logger.info(
            "Registered %s provider %s (#%d) in zone %s, capacity %d",
            saved.provider_type.value, saved.name, saved.id, saved.zone, saved.max_capacity,
        )
        return ProviderChange(provider=saved, requeued=await self._requeue(saved))

    async def set_availability(self, provider_id: int, is_available: bool) -> ProviderChange:
        before = await self._get(provider_id)
        provider = await self._providers.set_availability(provider_id, is_available)
        logger.info("Provider %d availability: %s -> %s", provider_id, before.is_available, is_available)

        requeued: list[MatchResult] = []
        if is_available and not before.is_available:
            requeued = await self._requeue(provider)
        return ProviderChange(provider=provider, requeued=requeued)

    async def update_capacity(self, provider_id: int, max_capacity: int) -> ProviderChange:
        """Raises CapacityExceeded if *max_capacity* is below the current load."""
        if max_capacity < 0:
            raise InvalidProvider("max_capacity must be >= 0")
        before = await self._get(provider_id)
        provider = await self._providers.update_capacity(provider_id, max_capacity)
        logger.info("Provider %d capacity: %d -> %d", provider_id, before.max_capacity, max_capacity)

        requeued: list[MatchResult] = []
        if max_capacity > before.max_capacity:
            requeued = await self._requeue(provider)
        return ProviderChange(provider=provider, requeued=requeued)

    async def _get(self, provider_id: int) -> Provider:
        provider = await self._providers.get_by_id(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return provider

    async def _requeue(self, provider: Provider) -> list[MatchResult]:
        if self._retry is None or not provider.is_available or provider.remaining_capacity <= 0:
            return []
        return await self._retry.execute(zone=provider.zone, provider_type=provider.provider_type)

"""CapacityUpdater — the only writer of provider load counters."""

from __future__ import annotations

import logging

from app.application.ports.provider_repo import ProviderRegistry
from app.domain.entities.provider import Provider
from app.domain.errors import CapacityUnderflow

logger = logging.getLogger(__name__)


class CapacityUpdater:
    """Increments load on assignment, decrements it on release.

    A release that finds nothing to release is a bookkeeping bug. With
    ``strict=True`` it raises CapacityUnderflow; otherwise the registry has
    already clamped the load at zero and the violation is only logged.
    """

    def __init__(self, registry: ProviderRegistry, strict: bool = False):
        self._registry = registry
        self._strict = strict

    async def on_assign(self, provider_id: int) -> Provider:
        """Reserve one slot. Raises CapacityExceeded when the provider is full."""
        provider = await self._registry.reserve_capacity(provider_id, 1)
        logger.debug(
            "Provider %d load -> %d/%d",
            provider_id, provider.current_load, provider.max_capacity,
        )
        return provider

    async def on_release(self, provider_id: int) -> int:
        released = await self._registry.release_capacity(provider_id, 1)
        if released < 1:
            error = CapacityUnderflow(provider_id, requested=1, released=released)
            if self._strict:
                raise error
            logger.error("%s; load clamped at zero", error)
        else:
            logger.debug("Provider %d released one slot", provider_id)
        return released

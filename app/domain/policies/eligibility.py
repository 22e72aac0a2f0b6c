"""EligibilityPolicy — decides whether a provider may serve an order."""

from __future__ import annotations

from dataclasses import dataclass

from app.domain.entities.order import Order
from app.domain.entities.provider import Provider
from app.domain.value_objects.enums import ProviderType


@dataclass(frozen=True)
class EligibilityRequirement:
    """What a candidate provider must offer."""

    zone: str
    provider_type: ProviderType
    min_remaining_capacity: int = 1


def requirement_for(order: Order) -> EligibilityRequirement:
    """Pure function: derive the matching requirement from an order.

    Business rules:
      1. Provider zone must equal the order's delivery zone.
      2. Provider type must equal the meal-type preference (vendor / chef).
      3. One free slot is needed per order.
    """
    return EligibilityRequirement(zone=order.zone, provider_type=order.provider_type)


def provider_satisfies(provider: Provider, requirement: EligibilityRequirement) -> bool:
    """Check whether a provider meets the requirement."""
    if provider.zone != requirement.zone:
        return False
    if provider.provider_type != requirement.provider_type:
        return False
    if not provider.is_available:
        return False
    return provider.remaining_capacity >= max(requirement.min_remaining_capacity, 1)


def ineligibility_reason(provider: Provider, requirement: EligibilityRequirement) -> str | None:
    """Human-readable reason a provider fails the requirement, or None."""
    if provider.zone != requirement.zone:
        return f"provider zone '{provider.zone}' != order zone '{requirement.zone}'"
    if provider.provider_type != requirement.provider_type:
        return (
            f"provider type '{provider.provider_type.value}' != "
            f"requested '{requirement.provider_type.value}'"
        )
    if not provider.is_available:
        return "provider is not available"
    if provider.remaining_capacity < max(requirement.min_remaining_capacity, 1):
        return f"provider is at capacity ({provider.current_load}/{provider.max_capacity})"
    return None

"""Domain error taxonomy.

Only failures are modelled here. A zone without spare capacity is an expected
outcome and is reported through ``MatchResult`` instead of an exception.
"""

from __future__ import annotations


class AssignmentEngineError(Exception):
    """Base class for all domain errors."""


class CapacityExceeded(AssignmentEngineError):
    """A reservation would push a provider above its maximum capacity."""

    def __init__(self, provider_id: int, current_load: int | None = None, max_capacity: int | None = None):
        self.provider_id = provider_id
        self.current_load = current_load
        self.max_capacity = max_capacity
        super().__init__(
            f"Provider {provider_id} has no spare capacity "
            f"(load={current_load}, max={max_capacity})"
        )


class CapacityUnderflow(AssignmentEngineError):
    """A release would push a provider's load below zero."""

    def __init__(self, provider_id: int, requested: int, released: int):
        self.provider_id = provider_id
        self.requested = requested
        self.released = released
        super().__init__(
            f"Provider {provider_id}: release of {requested} underflowed "
            f"(only {released} held)"
        )


class InvalidOrder(AssignmentEngineError):
    """Malformed order rejected before entering the intake queue."""


class InvalidTransition(AssignmentEngineError):
    def __init__(self, order_id: int | None, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id}: cannot move from '{current}' to '{target}'")


class OrderNotFound(AssignmentEngineError):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class ProviderNotFound(AssignmentEngineError):
    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} not found")


class ProviderIneligible(AssignmentEngineError):
    """Operator picked a provider that cannot serve the order."""


class InvalidProvider(AssignmentEngineError):
    """Provider data violates the registry invariants."""

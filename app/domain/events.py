"""Domain events emitted by the matching engine.

Events are named in the past tense and never mutated after creation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

from app.domain.entities.order import utcnow


@dataclass(frozen=True)
class DomainEvent:
    def to_payload(self) -> dict:
        payload = asdict(self)
        payload["event"] = type(self).__name__
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
        return payload


@dataclass(frozen=True)
class OrderAssigned(DomainEvent):
    order_id: int
    provider_id: int
    assignment_id: int
    user_id: str
    manual: bool = False
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class OrderUnmatched(DomainEvent):
    order_id: int
    zone: str
    provider_type: str
    reason: str
    attempts: int
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    order_id: int
    provider_id: int | None
    reason: str | None
    occurred_at: datetime = field(default_factory=utcnow)

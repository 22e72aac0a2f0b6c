"""Assignment entity — the link between one order and one provider."""

from dataclasses import dataclass, field
from datetime import datetime

from app.domain.entities.order import utcnow


@dataclass
class Assignment:
    id: int | None
    order_id: int
    provider_id: int
    reason: str | None = None
    manual: bool = False
    assigned_at: datetime = field(default_factory=utcnow)
    voided_at: datetime | None = None
    void_reason: str | None = None
    supersedes: int | None = None

    @property
    def is_active(self) -> bool:
        return self.voided_at is None

"""DeliveryWindow value object — immutable (start, end) pair."""

from dataclasses import dataclass
from datetime import date, datetime, timezone


@dataclass(frozen=True)
class DeliveryWindow:
    start: datetime
    end: datetime

    def is_valid(self) -> bool:
        return self.end > self.start

    @property
    def delivery_date(self) -> date:
        """UTC calendar date of the start; naive starts are taken as UTC."""
        if self.start.tzinfo is None:
            return self.start.date()
        return self.start.astimezone(timezone.utc).date()

    def overlaps(self, other: "DeliveryWindow") -> bool:
        return self.start < other.end and other.start < self.end

"""Provider entity — a home chef or food vendor with bounded daily capacity."""

from dataclasses import dataclass, field

from app.domain.value_objects.enums import PerformanceTier, ProviderType

GOLD_THRESHOLD = 90.0
SILVER_THRESHOLD = 75.0


@dataclass
class Provider:
    id: int | None
    name: str
    provider_type: ProviderType
    zone: str
    max_capacity: int
    current_load: int = 0
    rating: float = 0.0
    performance_score: float = 0.0
    specialties: set[str] = field(default_factory=set)
    is_available: bool = True

    @property
    def remaining_capacity(self) -> int:
        return self.max_capacity - self.current_load

    @property
    def load_ratio(self) -> float:
        if self.max_capacity <= 0:
            return 1.0
        return self.current_load / self.max_capacity

    @property
    def performance_tier(self) -> PerformanceTier:
        if self.performance_score >= GOLD_THRESHOLD:
            return PerformanceTier.GOLD
        if self.performance_score >= SILVER_THRESHOLD:
            return PerformanceTier.SILVER
        return PerformanceTier.BRONZE

    def has_specialty(self, specialty: str) -> bool:
        return specialty.strip().lower() in {s.lower() for s in self.specialties}

    def can_take(self, delta: int = 1) -> bool:
        return 0 <= self.current_load + delta <= self.max_capacity

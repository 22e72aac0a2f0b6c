"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class ProviderType(str, Enum):
    VENDOR = "vendor"
    CHEF = "chef"


class OrderStatus(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MealSlot(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"


class PerformanceTier(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


class SwitchReason(str, Enum):
    POOR_FOOD_QUALITY = "poor_food_quality"
    LATE_DELIVERY = "late_delivery"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    DIETARY_RESTRICTIONS = "dietary_restrictions"
    CUSTOMER_PREFERENCE = "customer_preference"
    ADMIN_REASSIGNMENT = "admin_reassignment"
    OTHER = "other"


class OrderPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """0 is served first."""
        return _PRIORITY_RANK[self]

    @property
    def is_urgent(self) -> bool:
        return self in (OrderPriority.HIGH, OrderPriority.URGENT)


_PRIORITY_RANK = {
    OrderPriority.URGENT: 0,
    OrderPriority.HIGH: 1,
    OrderPriority.MEDIUM: 2,
    OrderPriority.LOW: 3,
}

"""AssignmentStatsUseCase — dashboard numbers for the operator queue."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.application.ports.assignment_repo import AssignmentLedger
from app.application.ports.order_repo import OrderRepository
from app.domain.entities.order import utcnow
from app.domain.value_objects.enums import OrderStatus

DEFAULT_WINDOW_DAYS = 30


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


@dataclass
class AssignmentStats:
    start: datetime
    end: datetime
    orders_by_status: dict[str, int] = field(default_factory=dict)
    pending_by_zone: dict[str, int] = field(default_factory=dict)
    pending_by_priority: dict[str, int] = field(default_factory=dict)
    pending_by_type: dict[str, int] = field(default_factory=dict)
    assignments: int = 0
    manual_assignments: int = 0
    reassignments: int = 0
    avg_minutes_to_assign: float | None = None


class AssignmentStatsUseCase:
    """Queue depth right now plus assignment activity within a date range.

    Time to assign is measured from order intake to the first assignment
    the order received, for first assignments made inside the range.
    """

    def __init__(self, order_repo: OrderRepository, ledger: AssignmentLedger):
        self._orders = order_repo
        self._ledger = ledger

    async def execute(self, start: datetime | None = None, end: datetime | None = None) -> AssignmentStats:
        end = _as_utc(end) if end else utcnow()
        start = _as_utc(start) if start else end - timedelta(days=DEFAULT_WINDOW_DAYS)
        stats = AssignmentStats(start=start, end=end)

        orders = {o.id: o for o in await self._orders.get_all()}
        stats.orders_by_status = dict(Counter(o.status.value for o in orders.values()))

        pending = [o for o in orders.values() if o.status == OrderStatus.UNASSIGNED]
        stats.pending_by_zone = dict(Counter(o.zone for o in pending))
        stats.pending_by_priority = dict(Counter(o.priority.value for o in pending))
        stats.pending_by_type = dict(Counter(o.provider_type.value for o in pending))

        in_range = [a for a in await self._ledger.get_all() if start <= a.assigned_at <= end]
        stats.assignments = len(in_range)
        stats.manual_assignments = sum(1 for a in in_range if a.manual)
        stats.reassignments = sum(1 for a in in_range if a.supersedes is not None)

        waits = [
            (a.assigned_at - orders[a.order_id].created_at).total_seconds() / 60
            for a in in_range
            if a.supersedes is None and a.order_id in orders
        ]
        if waits:
            stats.avg_minutes_to_assign = round(sum(waits) / len(waits), 2)
        return stats

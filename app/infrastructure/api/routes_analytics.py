"""Analytics endpoints — assignment stats + provider load."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from app.application.use_cases.assignment_stats import AssignmentStatsUseCase
from app.infrastructure.api.dependencies import Stores, get_stats_uc, get_stores

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/assignments")
async def assignment_stats(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    uc: AssignmentStatsUseCase = Depends(get_stats_uc),
):
    """Queue depth plus assignment activity for the dashboard (last 30 days by default)."""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=422, detail="start_date must not be after end_date")
    stats = await uc.execute(start=start_date, end=end_date)
    return {
        "start_date": stats.start.isoformat(),
        "end_date": stats.end.isoformat(),
        "orders_by_status": stats.orders_by_status,
        "pending": {
            "total": sum(stats.pending_by_zone.values()),
            "by_zone": stats.pending_by_zone,
            "by_priority": stats.pending_by_priority,
            "by_type": stats.pending_by_type,
        },
        "assignments": stats.assignments,
        "manual_assignments": stats.manual_assignments,
        "reassignments": stats.reassignments,
        "avg_minutes_to_assign": stats.avg_minutes_to_assign,
    }


@router.get("/providers")
async def provider_load(stores: Stores = Depends(get_stores)):
    """Provider load distribution, busiest first."""
    providers = sorted(
        await stores.providers.get_all(),
        key=lambda p: (-p.load_ratio, p.id),
    )
    return {
        "total_providers": len(providers),
        "providers": [
            {
                "id": p.id,
                "name": p.name,
                "zone": p.zone,
                "provider_type": p.provider_type.value,
                "current_load": p.current_load,
                "max_capacity": p.max_capacity,
                "load_ratio": round(p.load_ratio, 3),
                "is_available": p.is_available,
            }
            for p in providers
        ],
    }

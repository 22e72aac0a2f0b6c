"""Entity → API response dict conversion shared by the routers."""

from __future__ import annotations

from app.application.use_cases.assign_order import MatchResult
from app.domain.entities.assignment import Assignment
from app.domain.entities.order import Order
from app.domain.entities.provider import Provider


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def serialize_provider(p: Provider) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "provider_type": p.provider_type.value,
        "zone": p.zone,
        "rating": p.rating,
        "performance_score": p.performance_score,
        "performance_tier": p.performance_tier.value,
        "specialties": sorted(p.specialties),
        "current_load": p.current_load,
        "max_capacity": p.max_capacity,
        "remaining_capacity": p.remaining_capacity,
        "is_available": p.is_available,
    }


def serialize_assignment(a: Assignment | None) -> dict | None:
    if a is None:
        return None
    return {
        "id": a.id,
        "order_id": a.order_id,
        "provider_id": a.provider_id,
        "reason": a.reason,
        "manual": a.manual,
        "active": a.is_active,
        "assigned_at": _iso(a.assigned_at),
        "voided_at": _iso(a.voided_at),
        "void_reason": a.void_reason,
        "supersedes": a.supersedes,
    }


def serialize_order(o: Order, assignment: Assignment | None = None) -> dict:
    return {
        "id": o.id,
        "order_number": o.order_number,
        "user_id": o.user_id,
        "provider_type": o.provider_type.value,
        "zone": o.zone,
        "meal_slot": o.meal_slot.value,
        "priority": o.priority.value,
        "delivery_start": _iso(o.delivery_window.start),
        "delivery_end": _iso(o.delivery_window.end),
        "total_amount": str(o.total_amount),
        "status": o.status.value,
        "match_attempts": o.match_attempts,
        "last_match_reason": o.last_match_reason,
        "cancel_reason": o.cancel_reason,
        "created_at": _iso(o.created_at),
        "status_history": [
            {"status": h.status.value, "changed_at": _iso(h.changed_at), "note": h.note}
            for h in o.status_history
        ],
        "assignment": serialize_assignment(assignment),
    }


def serialize_match(r: MatchResult) -> dict:
    return {
        "order_id": r.order_id,
        "matched": r.matched,
        "already_assigned": r.already_assigned,
        "provider_id": r.provider_id,
        "attempts": r.attempts,
        "reason": r.reason,
        "assignment": serialize_assignment(r.assignment),
    }

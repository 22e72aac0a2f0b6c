"""Provider endpoints — registry administration and eligibility lookup."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from app.application.use_cases.manage_provider import ManageProviderUseCase, ProviderChange
from app.domain.entities.provider import Provider
from app.domain.errors import AssignmentEngineError
from app.domain.value_objects.enums import ProviderType
from app.infrastructure.api.dependencies import (
    Stores,
    get_manage_provider_uc,
    get_stores,
    to_http_error,
)
from app.infrastructure.api.serializers import serialize_match, serialize_provider

router = APIRouter(prefix="/providers", tags=["providers"])


class ProviderCreate(BaseModel):
    name: str
    provider_type: ProviderType
    zone: str
    max_capacity: int = Field(ge=0)
    current_load: int = Field(default=0, ge=0)
    rating: float = 0.0
    performance_score: float = 0.0
    specialties: list[str] = Field(default_factory=list)
    is_available: bool = True


class AvailabilityUpdate(BaseModel):
    is_available: bool


class CapacityUpdate(BaseModel):
    max_capacity: int


def _change_response(change: ProviderChange) -> dict:
    return {
        "provider": serialize_provider(change.provider),
        "requeued": [serialize_match(r) for r in change.requeued],
    }


@router.post("", status_code=201)
async def register_provider(
    background_tasks: BackgroundTasks,
    body: ProviderCreate,
    uc: ManageProviderUseCase = Depends(get_manage_provider_uc),
    stores: Stores = Depends(get_stores),
):
    provider = Provider(id=None, **body.model_dump(exclude={"specialties"}), specialties=set(body.specialties))
    try:
        change = await uc.register(provider)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return _change_response(change)


@router.get("")
async def list_providers(stores: Stores = Depends(get_stores)):
    providers = await stores.providers.get_all()
    return {
        "total": len(providers),
        "providers": [serialize_provider(p) for p in providers],
    }


@router.get("/eligible")
async def eligible_providers(
    zone: str,
    provider_type: ProviderType,
    min_remaining_capacity: int = 1,
    specialty: str | None = None,
    stores: Stores = Depends(get_stores),
):
    """Ranked candidates an order for (zone, type) would be matched against."""
    providers = await stores.providers.find_eligible(
        zone, provider_type, min_remaining_capacity, specialty=specialty
    )
    return {
        "zone": zone,
        "provider_type": provider_type.value,
        "providers": [serialize_provider(p) for p in providers],
    }


@router.get("/{provider_id}")
async def get_provider(provider_id: int, stores: Stores = Depends(get_stores)):
    provider = await stores.providers.get_by_id(provider_id)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    active = await stores.ledger.active_for_provider(provider_id)
    return {**serialize_provider(provider), "assigned_order_ids": [a.order_id for a in active]}


@router.patch("/{provider_id}/availability")
async def set_availability(
    background_tasks: BackgroundTasks,
    provider_id: int,
    body: AvailabilityUpdate,
    uc: ManageProviderUseCase = Depends(get_manage_provider_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        change = await uc.set_availability(provider_id, body.is_available)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return _change_response(change)


@router.patch("/{provider_id}/capacity")
async def update_capacity(
    background_tasks: BackgroundTasks,
    provider_id: int,
    body: CapacityUpdate,
    uc: ManageProviderUseCase = Depends(get_manage_provider_uc),
    stores: Stores = Depends(get_stores),
):
    try:
        change = await uc.update_capacity(provider_id, body.max_capacity)
    except AssignmentEngineError as e:
        raise to_http_error(e) from e
    await stores.commit(background_tasks)
    return _change_response(change)

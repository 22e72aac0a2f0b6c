"""Processing endpoints — queue sweep, daily capacity reset and CSV ingest."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from app.application.use_cases.assign_order import RetryQueuedOrdersUseCase
from app.application.use_cases.reset_capacity import ResetDailyCapacityUseCase
from app.config import settings
from app.domain.value_objects.enums import ProviderType
from app.infrastructure.api.dependencies import (
    Stores,
    get_daily_reset_uc,
    get_retry_queue_uc,
    get_stores,
)
from app.infrastructure.api.serializers import serialize_match
from app.tools.seed_db import ingest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/process", tags=["processing"])


@router.post("/sweep")
async def sweep_queue(
    background_tasks: BackgroundTasks,
    zone: str | None = None,
    provider_type: ProviderType | None = None,
    limit: int | None = None,
    uc: RetryQueuedOrdersUseCase = Depends(get_retry_queue_uc),
    stores: Stores = Depends(get_stores),
):
    """Retry queued orders now, most urgent then oldest first."""
    results = await uc.execute(zone=zone, provider_type=provider_type, limit=limit)
    await stores.commit(background_tasks)

    matched = [r for r in results if r.matched]
    return {
        "status": "ok",
        "total_processed": len(results),
        "matched": len(matched),
        "unmatched": len(results) - len(matched),
        "results": [serialize_match(r) for r in results],
    }


@router.post("/reset-capacity")
async def reset_capacity(
    background_tasks: BackgroundTasks,
    uc: ResetDailyCapacityUseCase = Depends(get_daily_reset_uc),
    stores: Stores = Depends(get_stores),
):
    """Recount provider load from open assignments, as the daily job does."""
    report = await uc.execute()
    await stores.commit(background_tasks)
    return {
        "status": "ok",
        "resets": [
            {"provider_id": r.provider_id, "before": r.before, "after": r.after}
            for r in report.resets
        ],
        "skipped": report.skipped,
        "requeued": [serialize_match(r) for r in report.requeued],
    }


@router.post("/ingest")
async def ingest_csv(stores: Stores = Depends(get_stores)):
    """Load providers and orders from the CSV data directory."""
    data_dir = Path(settings.csv_data_path)
    if not data_dir.exists():
        raise HTTPException(status_code=400, detail=f"Data directory not found: {data_dir}")

    try:
        counts = await ingest(stores, data_dir)
    except FileNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error ingesting CSV data")
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "status": "ok",
        "message": "CSV data ingested successfully",
        "counts": counts,
    }

"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from app.config import settings
from app.infrastructure.api.dependencies import Stores, get_stores

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(stores: Stores = Depends(get_stores)):
    """Check API and database connectivity."""
    if stores.session is None:
        db_status = "not used"
    else:
        try:
            result = await stores.session.execute(text("SELECT 1"))
            result.scalar()
            db_status = "connected"
        except Exception as e:
            db_status = f"error: {e}"

    return {
        "status": "degraded" if db_status.startswith("error") else "ok",
        "storage_backend": settings.storage_backend,
        "database": db_status,
        "service": "Meal Provider Assignment Engine",
    }

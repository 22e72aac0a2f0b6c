"""Meal Provider Assignment Engine — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.persistence.database import engine
from app.config import configure_logging, settings
from app.infrastructure.api.routes_analytics import router as analytics_router
from app.infrastructure.api.routes_health import router as health_router
from app.infrastructure.api.routes_orders import router as orders_router
from app.infrastructure.api.routes_processing import router as processing_router
from app.infrastructure.api.routes_providers import router as providers_router
from app.infrastructure.scheduler import SweepScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    if settings.storage_backend == "sql":
        try:
            async with engine.begin():
                pass  # Connection pool warmed up
            logger.info("Database connection established")
        except Exception as e:
            logger.warning("Database not available on startup: %s", e)
    else:
        logger.info("Using in-memory storage; data is lost on restart")

    scheduler = SweepScheduler(settings.sweep_interval_seconds, daily_reset=settings.daily_capacity_reset)
    scheduler.start()
    yield
    await scheduler.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Meal Provider Assignment Engine",
        description="Matches paid meal orders to home chefs and vendors with spare capacity",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS for the admin dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix="/api")
    app.include_router(orders_router, prefix="/api")
    app.include_router(providers_router, prefix="/api")
    app.include_router(processing_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")

    return app


app = create_app()

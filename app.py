"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and prepares the
database schema on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.reservation_controller import router as reservation_router
from backend.controllers.room_controller import router as room_router
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import ReservationAllocator
from backend.services.availability_service import AvailabilityService
from backend.services.notification_service import ConfirmationService, DigitalKeyService
from backend.services.reassignment_service import RoomService
from backend.services.swap_service import SwapReconciler
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service is instantiated here and exposed through app.state;
    controllers resolve them per request.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection and transaction factory) ---
    repository = DataRepository(settings)

    # --- Collaborators invoked after a reservation becomes paid ---
    confirmation_service = ConfirmationService(repository=repository, settings=settings)
    key_service = DigitalKeyService(repository=repository, settings=settings)

    # --- Allocation services ---
    availability_service = AvailabilityService(repository=repository, settings=settings)
    allocator = ReservationAllocator(
        repository=repository,
        settings=settings,
        confirmation_service=confirmation_service,
        key_service=key_service,
    )
    swap_reconciler = SwapReconciler(repository=repository, settings=settings)
    room_service = RoomService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(reservation_router)
    app.include_router(room_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.availability_service = availability_service
    app.state.allocator = allocator
    app.state.swap_reconciler = swap_reconciler
    app.state.room_service = room_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """Idempotent startup sequence. Schema first, then the optional demo seed."""
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo hotel (skipped if a hotel exists)")
        repository.seed_demo_data()

    logger.info("Startup complete | strategy=%s", settings.reassignment_strategy)


# Module-level app object for uvicorn
app = create_app()

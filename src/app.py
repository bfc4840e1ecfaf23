# src/app.py
"""
FastAPI приложение ядра трекинга и диспетчеризации.

Компоненты (хранилища, рассылка, сервисы) создаются явно в lifespan
и хранятся в app.state: до старта приложения их нет, после
остановки рассылка закрыта.

REST endpoints (префикс /api/v1):
- /drivers — реестр водителей
- /trips — поездки
- /tracking — геолокация, отслеживание поездки, расстояние и тариф

WebSocket:
- /ws — realtime-канал

Служебные:
- GET /health, GET /stats
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.common.constants import TypeMsg
from src.common.exceptions import SwiftRideError
from src.common.logger import log_info, log_warning, setup_logging
from src.config.loader import Settings
from src.infra.database import init_db
from src.infra.redis_client import init_redis
from src.services.driver_state.redis_store import RedisDriverStateStore
from src.services.driver_state.store import DriverStateStore, InMemoryDriverStateStore
from src.services.drivers.routes import router as drivers_router
from src.services.drivers.service import DriverService
from src.services.order_matching.service import DispatchMatcher
from src.services.pricing_service.routes import router as pricing_router
from src.services.pricing_service.service import PricingService
from src.services.realtime_location.routes import router as tracking_router
from src.services.realtime_location.service import LocationIngestService
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.realtime_ws.handlers import RealtimeHandler
from src.services.realtime_ws.routes import router as ws_router
from src.services.trip_service.repository import (
    InMemoryTripRepository,
    PostgresTripRepository,
    TripRepository,
)
from src.services.trip_service.routes import router as trips_router
from src.services.trip_service.service import TripService
from src.shared.models.common import ErrorResponse, HealthStatus


async def _build_driver_store(settings: Settings, stack: AsyncExitStack) -> DriverStateStore:
    if settings.storage.DRIVER_STATE_BACKEND == "redis":
        redis_client = await init_redis(settings)
        stack.push_async_callback(redis_client.disconnect)
        return RedisDriverStateStore(redis_client)
    return InMemoryDriverStateStore()


async def _build_trip_repository(settings: Settings, stack: AsyncExitStack) -> TripRepository:
    if settings.storage.TRIP_BACKEND == "postgres":
        db = await init_db(settings)
        stack.push_async_callback(db.disconnect)
        return PostgresTripRepository(db)
    return InMemoryTripRepository()


def wire_components(
    app: FastAPI,
    settings: Settings,
    store: DriverStateStore,
    repository: TripRepository,
) -> None:
    """Собирает сервисы поверх хранилищ и кладёт их в app.state."""
    manager = ConnectionManager(queue_size=settings.tracking.OBSERVER_QUEUE_SIZE)
    pricing = PricingService(settings.fares)
    ingest = LocationIngestService(
        store, manager, round_digits=settings.tracking.DISTANCE_ROUND_DIGITS
    )
    matcher = DispatchMatcher(store, repository, manager, pricing)

    app.state.settings = settings
    app.state.driver_store = store
    app.state.trip_repository = repository
    app.state.connection_manager = manager
    app.state.pricing_service = pricing
    app.state.location_service = ingest
    app.state.dispatch_matcher = matcher
    app.state.trip_service = TripService(
        repository,
        store,
        matcher,
        manager,
        user_trips_limit=settings.tracking.USER_TRIPS_LIMIT,
    )
    app.state.driver_service = DriverService(store, manager)
    app.state.realtime_handler = RealtimeHandler(
        manager,
        ingest,
        matcher,
        store,
        snapshot_on_connect=settings.tracking.ADMIN_SNAPSHOT_ON_CONNECT,
        drivers=app.state.driver_service,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        settings: Явные настройки (тесты); по умолчанию — из config.json
    """
    if settings is None:
        from src.config import settings as default_settings
        settings = default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        await log_info(
            f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: запуск "
            f"(водители: {settings.storage.DRIVER_STATE_BACKEND}, поездки: {settings.storage.TRIP_BACKEND})",
            type_msg=TypeMsg.INFO,
        )

        async with AsyncExitStack() as stack:
            store = await _build_driver_store(settings, stack)
            repository = await _build_trip_repository(settings, stack)
            wire_components(app, settings, store, repository)
            stack.push_async_callback(app.state.connection_manager.close)

            yield

            await log_info("Остановка: закрытие соединений...", type_msg=TypeMsg.INFO)

    app = FastAPI(
        title="SwiftRide Dispatch Core",
        description="Live-трекинг водителей, диспетчеризация и realtime-рассылка.",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    @app.exception_handler(SwiftRideError)
    async def swiftride_error_handler(request: Request, exc: SwiftRideError) -> JSONResponse:
        if exc.status_code >= 500:
            await log_warning(f"{request.method} {request.url.path}: {exc.message}")
        body = ErrorResponse(error_code=exc.error_code, message=exc.message, details=exc.details)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    app.include_router(drivers_router, prefix="/api/v1")
    app.include_router(trips_router, prefix="/api/v1")
    app.include_router(tracking_router, prefix="/api/v1")
    app.include_router(pricing_router, prefix="/api/v1")
    app.include_router(ws_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса."""
        return HealthStatus(
            service=settings.system.PROJECT_NAME,
            status="healthy",
            version=settings.system.VERSION,
            dependencies={
                "driver_state": settings.storage.DRIVER_STATE_BACKEND,
                "trips": settings.storage.TRIP_BACKEND,
            },
        )

    @app.get("/stats", tags=["Stats"])
    async def get_stats(request: Request) -> dict[str, Any]:
        """Статистика соединений, приёма геолокации и диспетчеризации."""
        state = request.app.state
        return {
            "connections": state.connection_manager.get_stats(),
            "location": state.location_service.get_stats(),
            "dispatch": state.dispatch_matcher.get_stats(),
            "drivers": await state.driver_store.count(),
        }

    return app

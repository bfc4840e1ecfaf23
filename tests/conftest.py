# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")

from src.config.loader import Settings, StorageSettings, TrackingSettings  # noqa: E402
from src.services.driver_state.store import InMemoryDriverStateStore  # noqa: E402
from src.services.drivers.service import DriverService  # noqa: E402
from src.services.order_matching.service import DispatchMatcher  # noqa: E402
from src.services.pricing_service.service import PricingService  # noqa: E402
from src.services.realtime_location.service import LocationIngestService  # noqa: E402
from src.services.realtime_ws.connection_manager import ConnectionManager  # noqa: E402
from src.services.trip_service.repository import InMemoryTripRepository  # noqa: E402
from src.services.trip_service.service import TripService  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "swiftride_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "APP_HOST": "127.0.0.1",
        "APP_PORT": 9000,
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "LOG_MAX_BYTES": 1048576,
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "swiftride_test",
        "DB_USER": "postgres",
        "DB_MIN_POOL_SIZE": 1,
        "DB_MAX_POOL_SIZE": 3,
        "DB_COMMAND_TIMEOUT": 30,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "swiftride_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "DRIVER_STATE_BACKEND": "memory",
        "TRIP_BACKEND": "memory",
        "OBSERVER_QUEUE_SIZE": 8,
        "DISTANCE_ROUND_DIGITS": 1,
        "ADMIN_SNAPSHOT_ON_CONNECT": False,
        "USER_TRIPS_LIMIT": 5,
        "BASE_FARE": 30.0,
        "FARE_PER_KM": 12.0,
        "SERVICE_FEE_PERCENT": 5.0,
        "AVERAGE_SPEED_KMH": 40.0,
        "CURRENCY": "EUR",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def test_settings() -> Settings:
    """Настройки с хранилищами в памяти (без внешней инфраструктуры)."""
    return Settings(
        storage=StorageSettings(DRIVER_STATE_BACKEND="memory", TRIP_BACKEND="memory"),
        tracking=TrackingSettings(OBSERVER_QUEUE_SIZE=64, ADMIN_SNAPSHOT_ON_CONNECT=True),
    )


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=0)
    return db


class FakeRedis:
    """
    Минимальная замена redis.asyncio.Redis на словарях.
    Покрывает команды, которые использует RedisClient.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.values[key] = value
        return True

    async def zadd(self, key: str, mapping: dict[str, float], nx: bool = False) -> int:
        zset = self.zsets.setdefault(key, {})
        added = 0
        for member, score in mapping.items():
            if member in zset and nx:
                continue
            if member not in zset:
                added += 1
            zset[member] = score
        return added

    async def zrange(self, key: str, start: int, end: int) -> list[str]:
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        members = [member for member, _ in ordered]
        return members[start:] if end == -1 else members[start:end + 1]

    async def zcard(self, key: str) -> int:
        return len(self.zsets.get(key, {}))

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# =============================================================================
# REALTIME
# =============================================================================

class FakeWebSocket:
    """
    Заглушка WebSocket для ConnectionManager.

    fail — send_json всегда падает (разорванное соединение);
    block — send_json ждёт release (медленный наблюдатель).
    """

    def __init__(self, fail: bool = False, block: bool = False) -> None:
        self.fail = fail
        self.block = block
        self.accepted = False
        self.closed = False
        self.sent: list[dict[str, Any]] = []
        self.release = asyncio.Event()

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        if self.block:
            await self.release.wait()
        self.sent.append(message)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        """Отправленные кадры (с фильтром по имени события)."""
        return [m for m in self.sent if name is None or m["event"] == name]

    async def wait_for(self, count: int, timeout: float = 1.0) -> None:
        """Ждать, пока будет отправлено не меньше count кадров."""
        async def _poll() -> None:
            while len(self.sent) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def ws_factory() -> Callable[..., FakeWebSocket]:
    """Фабрика заглушек WebSocket."""
    return FakeWebSocket


# =============================================================================
# СЕРВИСЫ (ХРАНИЛИЩА В ПАМЯТИ)
# =============================================================================

@pytest.fixture
def driver_store() -> InMemoryDriverStateStore:
    return InMemoryDriverStateStore()


@pytest.fixture
def trip_repository() -> InMemoryTripRepository:
    return InMemoryTripRepository()


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager(queue_size=16)


@pytest.fixture
def pricing() -> PricingService:
    return PricingService()


@pytest.fixture
def ingest(driver_store: InMemoryDriverStateStore, manager: ConnectionManager) -> LocationIngestService:
    return LocationIngestService(driver_store, manager, round_digits=2)


@pytest.fixture
def matcher(
    driver_store: InMemoryDriverStateStore,
    trip_repository: InMemoryTripRepository,
    manager: ConnectionManager,
    pricing: PricingService,
) -> DispatchMatcher:
    return DispatchMatcher(driver_store, trip_repository, manager, pricing)


@pytest.fixture
def trip_service(
    driver_store: InMemoryDriverStateStore,
    trip_repository: InMemoryTripRepository,
    matcher: DispatchMatcher,
    manager: ConnectionManager,
) -> TripService:
    return TripService(trip_repository, driver_store, matcher, manager, user_trips_limit=50)


@pytest.fixture
def driver_service(driver_store: InMemoryDriverStateStore, manager: ConnectionManager) -> DriverService:
    return DriverService(driver_store, manager)

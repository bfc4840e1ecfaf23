# src/services/driver_state/redis_store.py
"""
Хранилище состояния водителей в Redis.

Запись водителя — JSON-документ по ключу drivers:{id}; порядок регистрации
хранится в sorted set drivers:index (score — время создания записи).
Сериализация по ключу остаётся в процессе (один логический процесс).
"""

from __future__ import annotations

from src.infra.redis_client import RedisClient
from src.services.driver_state.store import DriverStateStore
from src.shared.models.driver import DriverState


class RedisDriverStateStore(DriverStateStore):
    """Состояние водителей в Redis через RedisClient."""

    STATE_PREFIX = "drivers:"
    INDEX_KEY = "drivers:index"

    def __init__(self, redis: RedisClient) -> None:
        super().__init__()
        self._redis = redis

    def _state_key(self, driver_id: str) -> str:
        return f"{self.STATE_PREFIX}{driver_id}"

    async def _load(self, driver_id: str) -> DriverState | None:
        return await self._redis.get_model(self._state_key(driver_id), DriverState)

    async def _save(self, state: DriverState) -> None:
        await self._redis.set_model(self._state_key(state.driver_id), state)
        await self._redis.zadd_nx(self.INDEX_KEY, state.driver_id, state.created_at.timestamp())

    async def _ids(self) -> list[str]:
        return await self._redis.zrange(self.INDEX_KEY)

    async def count(self) -> int:
        return await self._redis.zcard(self.INDEX_KEY)

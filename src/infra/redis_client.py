# src/infra/redis_client.py
"""
Клиент Redis для хранения состояния водителей.
Поддерживает типизированные операции с Pydantic моделями.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar, Type

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from src.common.logger import get_logger, log_error, log_info
from src.common.constants import TypeMsg

if TYPE_CHECKING:
    from src.config.loader import Settings

logger = get_logger("redis")

T = TypeVar("T", bound=BaseModel)


class RedisClient:
    """
    Асинхронный клиент Redis.
    Поддерживает:
    - Типизированные get/set с Pydantic моделями
    - Упорядоченные множества (индекс водителей по порядку регистрации)
    """

    def __init__(self, namespace: str = "swiftride") -> None:
        self._client: redis.Redis | None = None
        self._namespace = namespace

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
        """
        if self._client is not None:
            return

        if url is None:
            from src.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            self._namespace = settings.redis.REDIS_NAMESPACE

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

        # Проверяем подключение
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    def attach(self, client: redis.Redis) -> None:
        """Использует уже созданный клиент (например, в тестах)."""
        self._client = client

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Получает значение по ключу."""
        return await self.client.get(self._make_key(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> bool:
        """
        Устанавливает значение.

        Args:
            key: Ключ
            value: Значение
            ttl: Время жизни в секундах
        """
        return await self.client.set(self._make_key(key), value, ex=ttl)

    # =========================================================================
    # ТИПИЗИРОВАННЫЕ ОПЕРАЦИИ (PYDANTIC)
    # =========================================================================

    async def get_model(self, key: str, model_class: Type[T]) -> T | None:
        """
        Получает и десериализует Pydantic модель.

        Returns:
            Экземпляр модели или None, если ключа нет либо данные повреждены
        """
        data = await self.get(key)
        if data is None:
            return None

        try:
            return model_class.model_validate_json(data)
        except ValidationError as e:
            await log_error(f"Ошибка десериализации модели {model_class.__name__}: {e}")
            return None

    async def set_model(
        self,
        key: str,
        model: BaseModel,
        ttl: int | None = None,
    ) -> bool:
        """Сериализует и сохраняет Pydantic модель."""
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    # =========================================================================
    # SORTED SET ОПЕРАЦИИ
    # =========================================================================

    async def zadd_nx(self, key: str, member: str, score: float) -> int:
        """Добавляет элемент, только если его ещё нет (порядок не меняется)."""
        return await self.client.zadd(self._make_key(key), {member: score}, nx=True)

    async def zrange(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        """Элементы по возрастанию score."""
        return await self.client.zrange(self._make_key(key), start, end)

    async def zcard(self, key: str) -> int:
        """Количество элементов."""
        return await self.client.zcard(self._make_key(key))

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """
        Проверяет здоровье подключения к Redis.

        Returns:
            True если подключение работает
        """
        try:
            return await self.client.ping()
        except (redis.RedisError, RuntimeError) as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


async def init_redis(settings: "Settings | None" = None) -> RedisClient:
    """
    Создаёт и подключает клиент Redis по настройкам из конфигурации.
    """
    if settings is None:
        from src.config import settings

    redis_client = RedisClient(namespace=settings.redis.REDIS_NAMESPACE)
    await redis_client.connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )
    return redis_client

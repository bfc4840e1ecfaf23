# src/services/driver_state/store.py
"""
Базовое хранилище состояния водителей.

Конкретные реализации отвечают только за чтение/запись целой записи
(_load/_save) и порядок регистрации (_ids). Сериализация изменений
по ключу, проверка инвариантов привязки и CAS-резервирование
реализованы здесь и одинаковы для всех бэкендов.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Callable

from src.common.exceptions import ConflictError, DriverNotFoundError
from src.common.logger import get_logger
from src.shared.models.driver import DriverPatch, DriverState, utc_now
from src.shared.models.enums import DriverStatus

logger = get_logger("driver_state")

# Мутатор получает текущую запись (или None) и возвращает патч
Mutator = Callable[[DriverState | None], DriverPatch]
CommitHook = Callable[[DriverState], None]


class DriverStateStore(ABC):
    """
    Хранилище состояния водителей.

    Изменения одного водителя сериализуются через asyncio.Lock на его id,
    изменения разных водителей идут параллельно. Блокировка не держится
    на время сетевой рассылки: on_commit только ставит сообщения в очередь.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    # =========================================================================
    # БЭКЕНД
    # =========================================================================

    @abstractmethod
    async def _load(self, driver_id: str) -> DriverState | None:
        """Читает запись целиком."""

    @abstractmethod
    async def _save(self, state: DriverState) -> None:
        """Записывает запись целиком (создаёт или перезаписывает)."""

    @abstractmethod
    async def _ids(self) -> list[str]:
        """Все известные id в порядке создания записей."""

    # =========================================================================
    # АТОМАРНОЕ ИЗМЕНЕНИЕ
    # =========================================================================

    def _lock_for(self, driver_id: str) -> asyncio.Lock:
        lock = self._locks.get(driver_id)
        if lock is None:
            lock = self._locks[driver_id] = asyncio.Lock()
        return lock

    async def update(
        self,
        driver_id: str,
        mutator: Mutator,
        on_commit: CommitHook | None = None,
    ) -> DriverState:
        """
        Атомарный read-modify-write записи водителя.

        Args:
            driver_id: Идентификатор водителя
            mutator: Строит патч по текущей записи (None — записи нет).
                Исключение из мутатора отменяет изменение.
            on_commit: Вызывается под той же блокировкой после записи,
                поэтому события одного водителя уходят в порядке применения

        Returns:
            Итоговая запись
        """
        async with self._lock_for(driver_id):
            current = await self._load(driver_id)
            patch = mutator(current)
            state = self._apply(driver_id, current, patch)
            await self._save(state)
            if on_commit is not None:
                on_commit(state)
            return state

    @staticmethod
    def _apply(driver_id: str, current: DriverState | None, patch: DriverPatch) -> DriverState:
        base = current if current is not None else DriverState(driver_id=driver_id)
        state = base.model_copy(update=patch.changes())

        if state.status == DriverStatus.BUSY and state.current_trip_id is None:
            raise ConflictError(
                "Статус busy требует привязанной поездки",
                driver_id=driver_id,
            )
        if state.current_trip_id is not None and state.status != DriverStatus.BUSY:
            raise ConflictError(
                "Водитель с привязанной поездкой должен быть в статусе busy",
                driver_id=driver_id,
                trip_id=state.current_trip_id,
            )
        return state

    # =========================================================================
    # ОПЕРАЦИИ
    # =========================================================================

    async def get(self, driver_id: str) -> DriverState | None:
        """Текущая запись или None."""
        return await self._load(driver_id)

    async def upsert(self, driver_id: str, patch: DriverPatch) -> DriverState:
        """
        Создаёт запись (пробег 0, статус offline, дата — сегодня)
        или применяет патч к существующей.
        """
        return await self.update(driver_id, lambda _current: patch)

    async def register(self, display_name: str | None = None) -> DriverState:
        """Регистрирует водителя под новым стабильным id."""
        driver_id = uuid.uuid4().hex
        state = await self.upsert(driver_id, DriverPatch(display_name=display_name))
        logger.info("Зарегистрирован водитель %s (%s)", driver_id, display_name)
        return state

    async def set_status(
        self,
        driver_id: str,
        status: DriverStatus,
        on_commit: CommitHook | None = None,
    ) -> DriverState:
        """
        Ручная смена статуса.

        Raises:
            DriverNotFoundError: водитель неизвестен
            ConflictError: попытка выставить busy напрямую
                или сменить статус водителю с активной поездкой
        """
        def mutator(current: DriverState | None) -> DriverPatch:
            if current is None:
                raise DriverNotFoundError(f"Водитель {driver_id} не найден", driver_id=driver_id)
            if status == DriverStatus.BUSY:
                raise ConflictError(
                    "Статус busy выставляется только назначением поездки",
                    driver_id=driver_id,
                )
            if current.current_trip_id is not None:
                raise ConflictError(
                    f"Водитель {driver_id} выполняет поездку {current.current_trip_id}",
                    driver_id=driver_id,
                    trip_id=current.current_trip_id,
                )
            return DriverPatch(status=status, last_update=utc_now())

        return await self.update(driver_id, mutator, on_commit)

    async def bind_trip(
        self,
        driver_id: str,
        trip_id: str,
        on_commit: CommitHook | None = None,
    ) -> DriverState:
        """
        Привязывает поездку и переводит водителя в busy.

        Raises:
            DriverNotFoundError: водитель неизвестен
            ConflictError: у водителя уже есть поездка
        """
        def mutator(current: DriverState | None) -> DriverPatch:
            if current is None:
                raise DriverNotFoundError(f"Водитель {driver_id} не найден", driver_id=driver_id)
            if current.current_trip_id is not None:
                raise ConflictError(
                    f"Водитель {driver_id} уже привязан к поездке {current.current_trip_id}",
                    driver_id=driver_id,
                    trip_id=current.current_trip_id,
                )
            return DriverPatch(status=DriverStatus.BUSY, current_trip_id=trip_id, last_update=utc_now())

        return await self.update(driver_id, mutator, on_commit)

    async def release_trip(
        self,
        driver_id: str,
        trip_id: str | None = None,
        on_commit: CommitHook | None = None,
        completed: bool = False,
    ) -> DriverState:
        """
        Снимает привязку и возвращает водителя в available.

        Args:
            trip_id: Если передан, снимается только привязка к этой поездке
            completed: Поездка завершена успешно (увеличивает total_trips)

        Raises:
            DriverNotFoundError: водитель неизвестен, не привязан
                или привязан к другой поездке
        """
        def mutator(current: DriverState | None) -> DriverPatch:
            if current is None or current.current_trip_id is None:
                raise DriverNotFoundError(
                    f"У водителя {driver_id} нет активной поездки",
                    driver_id=driver_id,
                )
            if trip_id is not None and current.current_trip_id != trip_id:
                raise DriverNotFoundError(
                    f"Водитель {driver_id} не привязан к поездке {trip_id}",
                    driver_id=driver_id,
                    trip_id=trip_id,
                )
            changes: dict = {"status": DriverStatus.AVAILABLE, "current_trip_id": None, "last_update": utc_now()}
            if completed:
                changes["total_trips"] = current.total_trips + 1
            return DriverPatch(**changes)

        return await self.update(driver_id, mutator, on_commit)

    async def reserve_available(
        self,
        trip_id: str,
        on_commit: CommitHook | None = None,
    ) -> DriverState | None:
        """
        Находит первого свободного водителя и атомарно привязывает поездку.

        Проверка статуса и привязка выполняются в одном шаге под блокировкой
        водителя (compare-and-swap), поэтому два параллельных запроса
        не могут зарезервировать одного водителя. Порядок перебора —
        порядок регистрации.

        Returns:
            Зарезервированный водитель или None, если свободных нет
        """
        for driver_id in await self._ids():
            lock = self._lock_for(driver_id)
            async with lock:
                current = await self._load(driver_id)
                if current is None or not current.is_dispatchable:
                    continue
                state = self._apply(
                    driver_id,
                    current,
                    DriverPatch(status=DriverStatus.BUSY, current_trip_id=trip_id, last_update=utc_now()),
                )
                await self._save(state)
                if on_commit is not None:
                    on_commit(state)
                return state
        return None

    async def list(self, status: DriverStatus | None = None) -> list[DriverState]:
        """Все водители в порядке регистрации (с фильтром по статусу)."""
        result: list[DriverState] = []
        for driver_id in await self._ids():
            state = await self._load(driver_id)
            if state is None:
                continue
            if status is None or state.status == status:
                result.append(state)
        return result

    async def count(self) -> int:
        return len(await self._ids())


class InMemoryDriverStateStore(DriverStateStore):
    """Хранилище в памяти процесса (dict сохраняет порядок вставки)."""

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, DriverState] = {}

    async def _load(self, driver_id: str) -> DriverState | None:
        return self._states.get(driver_id)

    async def _save(self, state: DriverState) -> None:
        self._states[state.driver_id] = state

    async def _ids(self) -> list[str]:
        return list(self._states)

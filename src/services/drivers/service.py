# src/services/drivers/service.py
"""
Реестр водителей: регистрация, статусы, позиция, дневная сводка.
"""

from __future__ import annotations

from src.common.constants import TypeMsg
from src.common.exceptions import DriverNotFoundError
from src.common.logger import log_info
from src.services.driver_state.store import DriverStateStore
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.shared.events.tracking_events import DriverStatusChanged
from src.shared.models.driver import (
    DriverLocationResponse,
    DriverState,
    DriverStatsResponse,
)
from src.shared.models.enums import DriverStatus


class DriverService:
    """Операции над водителями поверх хранилища состояния."""

    def __init__(self, store: DriverStateStore, fanout: ConnectionManager) -> None:
        self._store = store
        self._fanout = fanout

    def _publish_status(self, state: DriverState) -> None:
        self._fanout.broadcast_driver_update(DriverStatusChanged.from_state(state))

    async def register(self, display_name: str) -> DriverState:
        """Зарегистрировать водителя (статус offline)."""
        state = await self._store.register(display_name)
        self._publish_status(state)
        return state

    async def get(self, driver_id: str) -> DriverState:
        state = await self._store.get(driver_id)
        if state is None:
            raise DriverNotFoundError(f"Водитель {driver_id} не найден", driver_id=driver_id)
        return state

    async def list(self, status: DriverStatus | None = None) -> list[DriverState]:
        return await self._store.list(status)

    async def list_available(self) -> list[DriverState]:
        """Водители, которым можно назначить поездку."""
        return [s for s in await self._store.list(DriverStatus.AVAILABLE) if s.is_dispatchable]

    async def set_status(self, driver_id: str, status: DriverStatus) -> DriverState:
        """
        Ручная смена статуса.

        Raises:
            DriverNotFoundError: водитель неизвестен
            ConflictError: busy напрямую или водитель на поездке
        """
        state = await self._store.set_status(driver_id, status, on_commit=self._publish_status)
        await log_info(
            f"Статус водителя {driver_id}: {status}",
            type_msg=TypeMsg.INFO,
            logger_name="drivers",
        )
        return state

    async def get_location(self, driver_id: str) -> DriverLocationResponse:
        state = await self.get(driver_id)
        return DriverLocationResponse(
            driver_id=state.driver_id,
            lat=state.lat,
            lng=state.lng,
            timestamp=state.last_update,
        )

    async def get_stats(self, driver_id: str) -> DriverStatsResponse:
        state = await self.get(driver_id)
        return DriverStatsResponse(
            driver_id=state.driver_id,
            display_name=state.display_name,
            status=state.status,
            daily_distance_meters=state.daily_distance_meters,
            distance_date=state.distance_date,
            current_trip_id=state.current_trip_id,
            total_trips=state.total_trips,
            last_update=state.last_update,
        )

# src/services/trip_service/service.py
"""
Жизненный цикл поездки: создание через диспетчер, смена статусов,
освобождение водителя при завершении.
"""

from __future__ import annotations

import asyncio
import weakref

from src.common.constants import ADMIN_TOPIC, TypeMsg, customer_topic, driver_topic, trip_topic
from src.common.exceptions import DriverNotFoundError, InvalidTransitionError, TripNotFoundError
from src.common.logger import log_info, log_warning
from src.services.driver_state.store import DriverStateStore
from src.services.order_matching.service import DispatchMatcher, MatchResult
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.trip_service.repository import TripRepository
from src.services.trip_service.state_machine import TripStateMachine
from src.shared.events.tracking_events import DriverStatusChanged
from src.shared.events.trip_events import TripUpdated
from src.shared.models.common import PaginatedResponse, PaginationParams
from src.shared.models.driver import DriverState, utc_now
from src.shared.models.enums import TripStatus
from src.shared.models.trip_dto import (
    CreateTripRequest,
    TrackedDriverDTO,
    TripDTO,
    TripTrackingResponse,
)


class TripService:
    def __init__(
        self,
        repository: TripRepository,
        store: DriverStateStore,
        matcher: DispatchMatcher,
        fanout: ConnectionManager,
        user_trips_limit: int = 50,
    ):
        self.repository = repository
        self.store = store
        self.matcher = matcher
        self.fanout = fanout
        self.user_trips_limit = user_trips_limit
        # Смены статуса одной поездки выполняются последовательно;
        # блокировка живёт, пока её держит или ждёт хотя бы один вызов
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, trip_id: str) -> asyncio.Lock:
        lock = self._locks.get(trip_id)
        if lock is None:
            lock = self._locks[trip_id] = asyncio.Lock()
        return lock

    async def create_trip(self, request: CreateTripRequest, customer_id: str | None = None) -> MatchResult:
        return await self.matcher.request_trip(request, customer_id=customer_id)

    async def get_trip(self, trip_id: str) -> TripDTO:
        trip = await self.repository.get(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Поездка {trip_id} не найдена", trip_id=trip_id)
        return trip

    async def get_user_trips(self, customer_id: str) -> list[TripDTO]:
        """Последние поездки заказчика, новые первыми."""
        return await self.repository.list_for_customer(customer_id, limit=self.user_trips_limit)

    async def get_all_trips(self, pagination: PaginationParams) -> PaginatedResponse[TripDTO]:
        items, total = await self.repository.list_page(pagination.offset, pagination.limit)
        return PaginatedResponse[TripDTO].create(items=items, total=total, pagination=pagination)

    async def update_status(self, trip_id: str, new_status: TripStatus) -> TripDTO:
        """
        Перевести поездку в новый статус.

        В терминальном статусе (completed/cancelled) водитель освобождается;
        если водитель уже не привязан к поездке, это не ошибка.

        Raises:
            TripNotFoundError: поездка не найдена
            InvalidTransitionError: переход не разрешён
        """
        async with self._lock_for(trip_id):
            trip = await self.get_trip(trip_id)
            old_status = trip.status

            if not TripStateMachine.can_transition(old_status, new_status):
                raise InvalidTransitionError(
                    f"Invalid transition from {old_status} to {new_status}",
                    trip_id=trip_id,
                    current_status=old_status.value,
                    requested_status=new_status.value,
                )

            changes: dict = {"status": new_status}
            ts_field = TripStateMachine.TIMESTAMP_FIELDS.get(new_status)
            if ts_field:
                changes[ts_field] = utc_now()
            updated = trip.model_copy(update=changes)
            await self.repository.update(updated)

            if new_status.is_terminal and trip.driver_id:
                await self._release_driver(
                    trip.driver_id, trip_id, completed=new_status == TripStatus.COMPLETED
                )

        await log_info(
            f"Поездка {trip_id}: {old_status} -> {new_status}",
            type_msg=TypeMsg.INFO,
            logger_name="trip_service",
        )
        self._publish_trip_update(updated, old_status)
        return updated

    async def _release_driver(
        self,
        driver_id: str,
        trip_id: str,
        completed: bool = False,
    ) -> DriverState | None:
        try:
            return await self.store.release_trip(
                driver_id,
                trip_id,
                on_commit=lambda state: self.fanout.broadcast_driver_update(
                    DriverStatusChanged.from_state(state)
                ),
                completed=completed,
            )
        except DriverNotFoundError:
            await log_warning(
                f"Водитель {driver_id} уже не привязан к поездке {trip_id}, освобождение пропущено",
                logger_name="trip_service",
            )
            return None

    def _publish_trip_update(self, trip: TripDTO, old_status: TripStatus) -> None:
        event = TripUpdated(
            trip_id=trip.id,
            driver_id=trip.driver_id,
            driver_name=trip.driver_name,
            old_status=old_status,
            status=trip.status,
        )
        topics = [trip_topic(trip.id), customer_topic(trip.customer_id), ADMIN_TOPIC]
        if trip.driver_id:
            topics.append(driver_topic(trip.driver_id))
        self.fanout.send_to_topics(topics, event)

    async def get_tracking(self, trip_id: str) -> TripTrackingResponse:
        """Статус поездки и текущая позиция назначенного водителя."""
        trip = await self.get_trip(trip_id)

        driver: TrackedDriverDTO | None = None
        if trip.driver_id:
            state = await self.store.get(trip.driver_id)
            driver = TrackedDriverDTO(
                id=trip.driver_id,
                name=state.display_name if state else trip.driver_name,
                lat=state.lat if state else None,
                lng=state.lng if state else None,
                last_update=state.last_update if state else None,
            )

        return TripTrackingResponse(
            id=trip.id,
            status=trip.status,
            estimated_duration_min=trip.estimated_duration_min,
            driver=driver,
        )

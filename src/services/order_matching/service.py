# src/services/order_matching/service.py
"""
Диспетчеризация: назначение свободного водителя на новую поездку.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from src.common.constants import ADMIN_TOPIC, TypeMsg, customer_topic, driver_topic, trip_topic
from src.common.exceptions import SwiftRideError, UnavailableError
from src.common.logger import log_error, log_info
from src.services.driver_state.store import DriverStateStore
from src.services.pricing_service.service import PricingService
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.trip_service.repository import TripRepository
from src.shared.events.tracking_events import DriverStatusChanged
from src.shared.events.trip_events import TripAccepted, TripAssigned
from src.shared.models.driver import DriverState, utc_now
from src.shared.models.enums import TripStatus
from src.shared.models.trip_dto import CreateTripRequest, TripDTO

NO_DRIVERS_MESSAGE = "No available drivers at the moment"


@dataclass
class MatchResult:
    """Результат назначения: поездка и зарезервированный водитель."""
    trip: TripDTO
    driver: DriverState


class DispatchMatcher:
    """
    Сервис назначения водителей.

    Алгоритм:
    1. Атомарно зарезервировать первого свободного водителя (CAS в хранилище)
    2. Если свободных нет — UnavailableError, запись о поездке не создаётся
    3. Сохранить поездку со статусом accepted
    4. При ошибке записи освободить водителя
    5. Уведомить водителя, заказчика и администраторов

    Повторных попыток внутри нет: повтор — решение клиента.
    """

    def __init__(
        self,
        store: DriverStateStore,
        repository: TripRepository,
        fanout: ConnectionManager,
        pricing: PricingService,
    ) -> None:
        self._store = store
        self._repository = repository
        self._fanout = fanout
        self._pricing = pricing

        # Статистика
        self._matched = 0
        self._unavailable = 0

    def _publish_driver_status(self, state: DriverState) -> None:
        self._fanout.broadcast_driver_update(DriverStatusChanged.from_state(state))

    async def request_trip(
        self,
        request: CreateTripRequest,
        customer_id: str | None = None,
    ) -> MatchResult:
        """
        Назначить водителя на новую поездку.

        Args:
            request: Параметры доставки
            customer_id: Заказчик (из проверенной идентичности соединения);
                иначе берётся из запроса

        Raises:
            UnavailableError: свободных водителей нет
        """
        customer = customer_id or request.customer_id
        if not customer:
            raise SwiftRideError("Не указан заказчик (customerId)")

        trip_id = uuid.uuid4().hex

        driver = await self._store.reserve_available(trip_id, on_commit=self._publish_driver_status)
        if driver is None:
            self._unavailable += 1
            await log_info(
                f"Нет свободных водителей для заказа клиента {customer}",
                type_msg=TypeMsg.WARNING,
                logger_name="order_matching",
            )
            raise UnavailableError(NO_DRIVERS_MESSAGE)

        distance_km = request.distance_km
        if distance_km is None:
            distance_km = round(self._pricing.route_distance_km(request.pickup, request.destination), 2)
        fare = request.fare
        if fare is None:
            fare = self._pricing.calculate_fare(distance_km).total

        now = utc_now()
        trip = TripDTO(
            id=trip_id,
            customer_id=customer,
            driver_id=driver.driver_id,
            driver_name=driver.display_name,
            pickup=request.pickup,
            destination=request.destination,
            distance_km=distance_km,
            estimated_duration_min=self._pricing.calculate_eta_minutes(distance_km),
            fare=fare,
            currency=self._pricing.currency,
            status=TripStatus.ACCEPTED,
            payment_method=request.payment_method,
            priority=request.priority,
            requested_at=now,
            accepted_at=now,
            notes=request.notes,
        )

        try:
            await self._repository.create(trip)
        except Exception:
            await log_error(
                f"Не удалось сохранить поездку {trip_id}, водитель {driver.driver_id} освобождается",
                logger_name="order_matching",
                exc_info=True,
            )
            await self._store.release_trip(
                driver.driver_id, trip_id, on_commit=self._publish_driver_status
            )
            raise

        self._matched += 1
        await log_info(
            f"Поездка {trip_id} назначена водителю {driver.driver_id}",
            type_msg=TypeMsg.INFO,
            logger_name="order_matching",
            extra={"trip_id": trip_id, "driver_id": driver.driver_id, "customer_id": customer},
        )

        self._fanout.send_to_topics(
            [driver_topic(driver.driver_id), ADMIN_TOPIC], TripAssigned.from_trip(trip)
        )
        self._fanout.send_to_topics(
            [customer_topic(customer), trip_topic(trip.id)], TripAccepted.from_trip(trip)
        )

        return MatchResult(trip=trip, driver=driver)

    def get_stats(self) -> dict[str, int]:
        return {"matched": self._matched, "unavailable": self._unavailable}

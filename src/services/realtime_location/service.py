# src/services/realtime_location/service.py
"""
Бизнес-логика приёма геолокации.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from src.common.exceptions import LocationValidationError
from src.common.logger import get_logger, log_warning
from src.services.driver_state.store import DriverStateStore
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.utils.geo_utils import distance_meters
from src.shared.events.tracking_events import DriverLocationUpdated
from src.shared.models.driver import DriverPatch, DriverState, LocationSample, utc_now

logger = get_logger("realtime_location")


def _as_utc(value: datetime) -> datetime:
    """Naive datetime считается UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LocationIngestService:
    """
    Сервис приёма и обработки геолокации водителей.

    Ответственности:
    - Валидация сэмпла (некорректный отбрасывается с диагностикой)
    - Дневной одометр: накопление расстояния и сброс при смене даты
    - Сохранение позиции в хранилище состояния
    - Рассылка обновления администраторам и подписчикам поездки

    Сэмплы применяются в порядке поступления; устаревшая клиентская
    метка времени только логируется.
    """

    def __init__(
        self,
        store: DriverStateStore,
        fanout: ConnectionManager,
        round_digits: int = 2,
    ) -> None:
        self._store = store
        self._fanout = fanout
        self._round_digits = round_digits

        # Статистика
        self._total_updates = 0
        self._dropped_samples = 0
        self._updates_per_driver: dict[str, int] = {}

    async def ingest(
        self,
        sample: LocationSample,
        received_at: datetime | None = None,
    ) -> DriverState:
        """
        Применить сэмпл геолокации.

        1. Валидация
        2. Эффективная дата — UTC-дата получения
        3. Сброс одометра при смене даты
        4. Прибавка расстояния от предыдущей позиции того же дня
        5. Запись позиции и одометра
        6. Рассылка обогащённого состояния

        Raises:
            LocationValidationError: пустой driver_id или некорректные координаты
        """
        await self._validate(sample)

        driver_id = sample.driver_id.strip()
        lat = float(sample.lat)
        lng = float(sample.lng)
        now = _as_utc(received_at) if received_at is not None else utc_now()
        today = now.date()

        def mutator(current: DriverState | None) -> DriverPatch:
            distance = 0.0
            if current is not None and current.distance_date == today:
                distance = current.daily_distance_meters
                if current.has_position:
                    distance += distance_meters(current.lat, current.lng, lat, lng)
            elif current is not None:
                logger.info(
                    "Смена даты для водителя %s: %s -> %s, одометр сброшен (было %.2f м)",
                    driver_id, current.distance_date, today, current.daily_distance_meters,
                )

            if (
                current is not None
                and current.last_update is not None
                and sample.timestamp is not None
                and _as_utc(sample.timestamp) < current.last_update
            ):
                logger.debug(
                    "Сэмпл водителя %s с устаревшей меткой %s применён в порядке поступления",
                    driver_id, sample.timestamp.isoformat(),
                )

            return DriverPatch(
                lat=lat,
                lng=lng,
                daily_distance_meters=distance,
                distance_date=today,
                last_update=now,
            )

        def publish(state: DriverState) -> None:
            event = DriverLocationUpdated(
                driver_id=state.driver_id,
                lat=state.lat,
                lng=state.lng,
                daily_distance_meters=round(state.daily_distance_meters, self._round_digits),
                effective_date=state.distance_date,
                timestamp=now,
            )
            self._fanout.broadcast_driver_update(event)
            if state.current_trip_id is not None:
                self._fanout.broadcast_to_trip_subscribers(state.current_trip_id, event)

        state = await self._store.update(driver_id, mutator, on_commit=publish)

        self._total_updates += 1
        self._updates_per_driver[driver_id] = self._updates_per_driver.get(driver_id, 0) + 1
        return state

    async def _validate(self, sample: LocationSample) -> None:
        """Проверка сэмпла; при ошибке сэмпл отбрасывается."""
        reason: str | None = None
        if not sample.driver_id or not sample.driver_id.strip():
            reason = "пустой driverId"
        elif sample.lat is None or sample.lng is None:
            reason = "нет координат"
        elif not (math.isfinite(sample.lat) and math.isfinite(sample.lng)):
            reason = "координаты не являются конечными числами"
        elif not (-90 <= sample.lat <= 90 and -180 <= sample.lng <= 180):
            reason = "координаты вне допустимого диапазона"

        if reason is None:
            return

        self._dropped_samples += 1
        await log_warning(
            f"Сэмпл геолокации отброшен: {reason}",
            logger_name="realtime_location",
            extra={"driver_id": sample.driver_id, "lat": sample.lat, "lng": sample.lng},
        )
        raise LocationValidationError(
            f"Некорректный сэмпл геолокации: {reason}",
            driver_id=sample.driver_id,
        )

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "total_updates": self._total_updates,
            "dropped_samples": self._dropped_samples,
            "unique_drivers": len(self._updates_per_driver),
            "top_drivers": sorted(
                self._updates_per_driver.items(),
                key=lambda x: x[1],
                reverse=True,
            )[:10],
        }

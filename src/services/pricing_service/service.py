import math

from src.config.loader import FareSettings
from src.services.utils.geo_utils import calculate_distance
from src.shared.models.location_dto import LocationDTO
from src.shared.models.trip_dto import FareBreakdownDTO


class PricingService:
    """Тарифы и оценка времени в пути."""

    def __init__(self, fares: FareSettings | None = None):
        self._fares = fares or FareSettings()

    @property
    def currency(self) -> str:
        return self._fares.CURRENCY

    def calculate_fare(self, distance_km: float, rate_per_km: float | None = None) -> FareBreakdownDTO:
        """
        Расчет стоимости доставки.

        Логика:
        - Базовая стоимость: BASE_FARE
        - Дистанция: distance_km * rate_per_km (по умолчанию FARE_PER_KM)
        - Сервисный сбор: SERVICE_FEE_PERCENT от суммы базы и дистанции
        """
        rate = self._fares.FARE_PER_KM if rate_per_km is None else rate_per_km

        base_fare = self._fares.BASE_FARE
        distance_fare = distance_km * rate
        service_fee = (base_fare + distance_fare) * self._fares.SERVICE_FEE_PERCENT / 100
        total = base_fare + distance_fare + service_fee

        return FareBreakdownDTO(
            distance_km=round(distance_km, 2),
            base_fare=round(base_fare, 2),
            distance_fare=round(distance_fare, 2),
            service_fee=round(service_fee, 2),
            total=round(total, 2),
            currency=self._fares.CURRENCY,
        )

    def calculate_eta_minutes(self, distance_km: float) -> int:
        """Время в пути при средней скорости AVERAGE_SPEED_KMH, с округлением вверх."""
        return math.ceil(distance_km / self._fares.AVERAGE_SPEED_KMH * 60)

    @staticmethod
    def route_distance_km(pickup: LocationDTO, destination: LocationDTO | None) -> float:
        """Расстояние по прямой (haversine) между точками маршрута."""
        if destination is None:
            return 0.0
        return calculate_distance(pickup.lat, pickup.lng, destination.lat, destination.lng)

# src/shared/models/driver.py
"""
Модели состояния водителя и входящих сэмплов геолокации.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.shared.models.common import CamelModel
from src.shared.models.enums import DriverStatus


def utc_now() -> datetime:
    """Текущее время в UTC (aware)."""
    return datetime.now(timezone.utc)


class DriverState(CamelModel):
    """
    Авторитетная запись о водителе.

    Ключ — стабильный сгенерированный driver_id; display_name не уникален.
    Одометр daily_distance_meters относится к дате distance_date.
    total_trips считает только завершённые (completed) поездки.
    """

    driver_id: str
    display_name: str | None = None
    lat: float | None = None
    lng: float | None = None
    daily_distance_meters: float = Field(default=0.0, ge=0)
    distance_date: date = Field(default_factory=lambda: utc_now().date())
    status: DriverStatus = DriverStatus.OFFLINE
    current_trip_id: str | None = None
    total_trips: int = Field(default=0, ge=0)
    last_update: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_position(self) -> bool:
        """Есть ли хотя бы одна известная позиция."""
        return self.lat is not None and self.lng is not None

    @property
    def is_dispatchable(self) -> bool:
        """Можно ли назначить водителю новую поездку."""
        return self.status == DriverStatus.AVAILABLE and self.current_trip_id is None


class DriverPatch(BaseModel):
    """
    Явный патч записи водителя.

    Меняются только переданные поля (exclude_unset). Поле current_trip_id,
    явно переданное как None, снимает привязку к поездке.
    """

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    daily_distance_meters: float | None = Field(default=None, ge=0)
    distance_date: date | None = None
    status: DriverStatus | None = None
    current_trip_id: str | None = None
    total_trips: int | None = Field(default=None, ge=0)
    last_update: datetime | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> "DriverPatch":
        fields = self.model_fields_set
        if ("lat" in fields) != ("lng" in fields):
            raise ValueError("lat и lng обновляются только вместе")
        for name in ("daily_distance_meters", "distance_date", "status", "total_trips"):
            if name in fields and getattr(self, name) is None:
                raise ValueError(f"Поле {name} не может быть пустым")
        return self

    def changes(self) -> dict[str, Any]:
        """Словарь только явно переданных полей."""
        return self.model_dump(exclude_unset=True)


class LocationSample(CamelModel):
    """
    Входящий сэмпл геолокации от водителя.

    Поля намеренно не ограничены схемой: валидация (пустой id, None, NaN,
    диапазон координат) выполняется сервисом приёма, чтобы отбрасывать
    сэмпл с диагностикой, а не падать на парсинге.
    """

    driver_id: str = ""
    lat: float | None = None
    lng: float | None = None
    timestamp: datetime | None = None


class RegisterDriverRequest(CamelModel):
    """Регистрация водителя."""
    display_name: str = Field(..., min_length=1, max_length=100)


class UpdateDriverStatusRequest(CamelModel):
    """Ручная смена статуса водителя."""
    status: DriverStatus


class DriverLocationResponse(CamelModel):
    """Последняя известная позиция водителя."""
    driver_id: str
    lat: float | None = None
    lng: float | None = None
    timestamp: datetime | None = None


class DriverStatsResponse(CamelModel):
    """Сводка по водителю за текущие сутки."""
    driver_id: str
    display_name: str | None = None
    status: DriverStatus
    daily_distance_meters: float
    distance_date: date
    current_trip_id: str | None = None
    total_trips: int = 0
    last_update: datetime | None = None

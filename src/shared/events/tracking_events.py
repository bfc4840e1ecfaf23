# src/shared/events/tracking_events.py
"""
События трекинга водителей.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import Field

from src.shared.events.base import RealtimeEvent, RealtimeEvents
from src.shared.models.driver import DriverState
from src.shared.models.enums import DriverStatus


class DriverLocationUpdated(RealtimeEvent):
    """Событие: применён новый сэмпл геолокации (admin:driverUpdate)."""

    event_type: Literal["admin:driverUpdate"] = Field(
        default=RealtimeEvents.ADMIN_DRIVER_UPDATE, exclude=True
    )

    driver_id: str
    lat: float
    lng: float
    daily_distance_meters: float
    effective_date: date
    timestamp: datetime


class DriverStatusChanged(RealtimeEvent):
    """Событие: статус водителя изменён."""

    event_type: Literal["admin:driverStatus"] = Field(
        default=RealtimeEvents.ADMIN_DRIVER_STATUS, exclude=True
    )

    driver_id: str
    display_name: str | None = None
    status: DriverStatus
    current_trip_id: str | None = None

    @classmethod
    def from_state(cls, state: DriverState) -> "DriverStatusChanged":
        return cls(
            driver_id=state.driver_id,
            display_name=state.display_name,
            status=state.status,
            current_trip_id=state.current_trip_id,
        )


class DriverOffline(RealtimeEvent):
    """Событие: WebSocket водителя закрыт."""

    event_type: Literal["admin:driverOffline"] = Field(
        default=RealtimeEvents.ADMIN_DRIVER_OFFLINE, exclude=True
    )

    driver_id: str


class AdminSnapshot(RealtimeEvent):
    """Снимок всех известных водителей для нового admin-подключения."""

    event_type: Literal["admin:snapshot"] = Field(
        default=RealtimeEvents.ADMIN_SNAPSHOT, exclude=True
    )

    drivers: list[DriverState] = Field(default_factory=list)

# src/shared/events/base.py
"""
Базовые классы для realtime-событий.

На проводе каждое событие — JSON-кадр {"event": <имя>, "data": {...}},
ключи payload в camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from src.shared.models.common import CamelModel


class RealtimeEvents:
    """Константы имён событий."""
    # Входящие
    DRIVER_LOCATION = "driver:location"
    DRIVER_STATUS = "driver:status"
    REQUEST_TRIP = "request-trip"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"

    # Исходящие
    ADMIN_DRIVER_UPDATE = "admin:driverUpdate"
    ADMIN_DRIVER_STATUS = "admin:driverStatus"
    ADMIN_DRIVER_OFFLINE = "admin:driverOffline"
    ADMIN_SNAPSHOT = "admin:snapshot"
    TRIP_ASSIGNED = "trip-assigned"
    TRIP_ACCEPTED = "trip-accepted"
    TRIP_UPDATED = "trip-updated"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    PONG = "pong"
    ERROR = "error"


class RealtimeEvent(CamelModel):
    """
    Базовый класс для всех realtime-событий.

    Имя события хранится в event_type и не попадает в payload.
    """

    event_type: str = Field(default="", exclude=True)

    def to_message(self) -> dict[str, Any]:
        """Собирает кадр для отправки в WebSocket."""
        return {"event": self.event_type, "data": self.to_payload()}

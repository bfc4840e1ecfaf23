# src/shared/events/__init__.py
"""
Схемы realtime-событий.

События разделены по доменам:
- tracking_events: геолокация и статусы водителей (admin-канал)
- trip_events: назначение и изменение статуса поездок
- system_events: подписки, ping/pong, диагностика
"""

from src.shared.events.base import RealtimeEvent, RealtimeEvents
from src.shared.events.tracking_events import (
    DriverLocationUpdated,
    DriverStatusChanged,
    DriverOffline,
    AdminSnapshot,
)
from src.shared.events.trip_events import (
    TripAssigned,
    TripAccepted,
    TripUpdated,
)
from src.shared.events.system_events import (
    ErrorEvent,
    SubscriptionChanged,
    Pong,
)

__all__ = [
    "RealtimeEvent",
    "RealtimeEvents",
    "DriverLocationUpdated",
    "DriverStatusChanged",
    "DriverOffline",
    "AdminSnapshot",
    "TripAssigned",
    "TripAccepted",
    "TripUpdated",
    "ErrorEvent",
    "SubscriptionChanged",
    "Pong",
]

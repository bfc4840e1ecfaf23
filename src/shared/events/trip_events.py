# src/shared/events/trip_events.py
"""
События домена поездок.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from src.shared.events.base import RealtimeEvent, RealtimeEvents
from src.shared.models.enums import TripStatus
from src.shared.models.trip_dto import TripDTO


class TripMatchEvent(RealtimeEvent):
    """Общая часть событий назначения водителя на поездку."""

    trip_id: str
    driver_id: str
    driver_name: str | None = None
    status: TripStatus
    trip: TripDTO

    @classmethod
    def from_trip(cls, trip: TripDTO):
        return cls(
            trip_id=trip.id,
            driver_id=trip.driver_id,
            driver_name=trip.driver_name,
            status=trip.status,
            trip=trip,
        )


class TripAssigned(TripMatchEvent):
    """Событие для водителя: ему назначена поездка."""

    event_type: Literal["trip-assigned"] = Field(
        default=RealtimeEvents.TRIP_ASSIGNED, exclude=True
    )


class TripAccepted(TripMatchEvent):
    """Событие для заказчика: водитель найден, поездка принята."""

    event_type: Literal["trip-accepted"] = Field(
        default=RealtimeEvents.TRIP_ACCEPTED, exclude=True
    )


class TripUpdated(RealtimeEvent):
    """Событие: статус поездки изменён."""

    event_type: Literal["trip-updated"] = Field(
        default=RealtimeEvents.TRIP_UPDATED, exclude=True
    )

    trip_id: str
    driver_id: str | None = None
    driver_name: str | None = None
    old_status: TripStatus | None = None
    status: TripStatus

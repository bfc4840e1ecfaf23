# src/dependencies.py
"""
Зависимости FastAPI.

Компоненты создаются один раз в lifespan приложения и хранятся
в app.state; здесь только доступ к ним.
"""

from __future__ import annotations

from fastapi.requests import HTTPConnection

from src.services.drivers.service import DriverService
from src.services.pricing_service.service import PricingService
from src.services.realtime_location.service import LocationIngestService
from src.services.trip_service.service import TripService


def get_location_service(conn: HTTPConnection) -> LocationIngestService:
    return conn.app.state.location_service


def get_trip_service(conn: HTTPConnection) -> TripService:
    return conn.app.state.trip_service


def get_driver_service(conn: HTTPConnection) -> DriverService:
    return conn.app.state.driver_service


def get_pricing_service(conn: HTTPConnection) -> PricingService:
    return conn.app.state.pricing_service

# src/services/realtime_location/routes.py
"""
REST-приём геолокации и экран отслеживания поездки.

Endpoints:
- POST /api/v1/tracking/location - сэмпл геолокации (для клиентов без сокета)
- GET /api/v1/tracking/trip/{trip_id} - статус поездки и позиция водителя
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.dependencies import get_location_service, get_trip_service
from src.services.realtime_location.service import LocationIngestService
from src.services.trip_service.service import TripService
from src.shared.models.driver import DriverState, LocationSample
from src.shared.models.trip_dto import TripTrackingResponse

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.post("/location", response_model=DriverState)
async def update_location(
    sample: LocationSample,
    service: LocationIngestService = Depends(get_location_service),
) -> DriverState:
    """Применить сэмпл геолокации водителя."""
    return await service.ingest(sample)


@router.get("/trip/{trip_id}", response_model=TripTrackingResponse)
async def get_trip_tracking(
    trip_id: str,
    service: TripService = Depends(get_trip_service),
) -> TripTrackingResponse:
    """Статус поездки, ETA и текущая позиция назначенного водителя."""
    return await service.get_tracking(trip_id)

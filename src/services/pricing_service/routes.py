from fastapi import APIRouter, Depends

from src.dependencies import get_pricing_service
from src.services.pricing_service.service import PricingService
from src.services.utils.geo_utils import calculate_distance
from src.shared.models.trip_dto import (
    DistanceRequest,
    DistanceResponse,
    FareBreakdownDTO,
    FareRequest,
)

router = APIRouter(prefix="/tracking", tags=["Pricing"])


@router.post("/distance", response_model=DistanceResponse)
async def calculate_route_distance(request: DistanceRequest):
    # Расстояние по прямой (haversine), в км
    distance_km = calculate_distance(request.lat1, request.lon1, request.lat2, request.lon2)
    return DistanceResponse(distance=round(distance_km, 2))


@router.post("/fare", response_model=FareBreakdownDTO)
async def calculate_fare(
    request: FareRequest,
    service: PricingService = Depends(get_pricing_service)
):
    return service.calculate_fare(request.distance, request.rate_per_km)

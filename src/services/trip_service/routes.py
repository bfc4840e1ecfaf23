from fastapi import APIRouter, Depends, Query, status

from src.dependencies import get_trip_service
from src.services.trip_service.service import TripService
from src.shared.models.common import PaginatedResponse, PaginationParams
from src.shared.models.trip_dto import CreateTripRequest, TripDTO, UpdateTripStatusRequest

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripDTO, status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: CreateTripRequest,
    service: TripService = Depends(get_trip_service)
):
    result = await service.create_trip(request)
    return result.trip


@router.get("", response_model=PaginatedResponse[TripDTO])
async def get_all_trips(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    service: TripService = Depends(get_trip_service)
):
    return await service.get_all_trips(PaginationParams(page=page, page_size=page_size))


@router.get("/user/{customer_id}", response_model=list[TripDTO])
async def get_user_trips(
    customer_id: str,
    service: TripService = Depends(get_trip_service)
):
    return await service.get_user_trips(customer_id)


@router.get("/{trip_id}", response_model=TripDTO)
async def get_trip(
    trip_id: str,
    service: TripService = Depends(get_trip_service)
):
    return await service.get_trip(trip_id)


@router.patch("/{trip_id}/status", response_model=TripDTO)
async def update_trip_status(
    trip_id: str,
    request: UpdateTripStatusRequest,
    service: TripService = Depends(get_trip_service)
):
    return await service.update_status(trip_id, request.status)

from typing import Optional

from fastapi import APIRouter, Depends

from src.dependencies import get_driver_service
from src.services.drivers.service import DriverService
from src.shared.models.driver import (
    DriverLocationResponse,
    DriverState,
    DriverStatsResponse,
    RegisterDriverRequest,
    UpdateDriverStatusRequest,
)
from src.shared.models.enums import DriverStatus

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.post("", response_model=DriverState, status_code=201)
async def register_driver(
    request: RegisterDriverRequest,
    service: DriverService = Depends(get_driver_service)
):
    return await service.register(request.display_name)


@router.get("", response_model=list[DriverState])
async def list_drivers(
    status: Optional[DriverStatus] = None,
    service: DriverService = Depends(get_driver_service)
):
    return await service.list(status)


@router.get("/available", response_model=list[DriverState])
async def list_available_drivers(service: DriverService = Depends(get_driver_service)):
    return await service.list_available()


@router.get("/{driver_id}", response_model=DriverState)
async def get_driver(
    driver_id: str,
    service: DriverService = Depends(get_driver_service)
):
    return await service.get(driver_id)


@router.patch("/{driver_id}/status", response_model=DriverState)
async def update_driver_status(
    driver_id: str,
    request: UpdateDriverStatusRequest,
    service: DriverService = Depends(get_driver_service)
):
    return await service.set_status(driver_id, request.status)


@router.get("/{driver_id}/location", response_model=DriverLocationResponse)
async def get_driver_location(
    driver_id: str,
    service: DriverService = Depends(get_driver_service)
):
    return await service.get_location(driver_id)


@router.get("/{driver_id}/stats", response_model=DriverStatsResponse)
async def get_driver_stats(
    driver_id: str,
    service: DriverService = Depends(get_driver_service)
):
    return await service.get_stats(driver_id)

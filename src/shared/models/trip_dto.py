from datetime import datetime
from typing import Optional

from pydantic import Field

from src.shared.models.common import CamelModel
from src.shared.models.enums import TripStatus, PaymentMethod, TripPriority
from src.shared.models.location_dto import LocationDTO


class TripDTO(CamelModel):
    id: str
    customer_id: str
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None

    pickup: LocationDTO
    destination: Optional[LocationDTO] = None

    distance_km: Optional[float] = None
    estimated_duration_min: Optional[int] = None
    fare: Optional[float] = None
    currency: str = "ZAR"

    status: TripStatus = TripStatus.REQUESTED
    payment_method: PaymentMethod = PaymentMethod.CASH
    priority: TripPriority = TripPriority.NORMAL

    requested_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    notes: Optional[str] = None


class CreateTripRequest(CamelModel):
    """Запрос на доставку (REST или событие request-trip)."""
    customer_id: Optional[str] = None
    pickup: LocationDTO
    destination: Optional[LocationDTO] = None
    distance_km: Optional[float] = Field(default=None, ge=0)
    fare: Optional[float] = Field(default=None, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    priority: TripPriority = TripPriority.NORMAL
    notes: Optional[str] = None


class UpdateTripStatusRequest(CamelModel):
    status: TripStatus


class FareBreakdownDTO(CamelModel):
    distance_km: float
    base_fare: float
    distance_fare: float
    service_fee: float
    total: float
    currency: str = "ZAR"


class DistanceRequest(CamelModel):
    lat1: float = Field(..., ge=-90, le=90)
    lon1: float = Field(..., ge=-180, le=180)
    lat2: float = Field(..., ge=-90, le=90)
    lon2: float = Field(..., ge=-180, le=180)


class DistanceResponse(CamelModel):
    distance: float
    unit: str = "km"


class FareRequest(CamelModel):
    distance: float = Field(..., ge=0)
    rate_per_km: Optional[float] = Field(default=None, ge=0)


class TrackedDriverDTO(CamelModel):
    id: str
    name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    last_update: Optional[datetime] = None


class TripTrackingResponse(CamelModel):
    """Состояние поездки для экрана отслеживания у клиента."""
    id: str
    status: TripStatus
    estimated_duration_min: Optional[int] = None
    driver: Optional[TrackedDriverDTO] = None

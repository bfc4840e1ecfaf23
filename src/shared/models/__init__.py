# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели ядра трекинга и диспетчеризации.
"""

from src.shared.models.enums import (
    DriverStatus,
    TripStatus,
    ObserverRole,
    PaymentMethod,
    TripPriority,
)
from src.shared.models.common import (
    CamelModel,
    PaginationParams,
    PaginatedResponse,
    ErrorResponse,
    HealthStatus,
)
from src.shared.models.location_dto import LocationDTO
from src.shared.models.driver import (
    DriverState,
    DriverPatch,
    LocationSample,
)
from src.shared.models.trip_dto import (
    TripDTO,
    CreateTripRequest,
    FareBreakdownDTO,
)

__all__ = [
    # Enums
    "DriverStatus",
    "TripStatus",
    "ObserverRole",
    "PaymentMethod",
    "TripPriority",
    # Common
    "CamelModel",
    "PaginationParams",
    "PaginatedResponse",
    "ErrorResponse",
    "HealthStatus",
    # Driver
    "DriverState",
    "DriverPatch",
    "LocationSample",
    # Trip
    "LocationDTO",
    "TripDTO",
    "CreateTripRequest",
    "FareBreakdownDTO",
]

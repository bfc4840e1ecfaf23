# src/common/__init__.py
"""
Общие утилиты, константы, исключения и логгер.
"""

from src.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from src.common.constants import TypeMsg
from src.common.exceptions import (
    SwiftRideError,
    LocationValidationError,
    NotFoundError,
    DriverNotFoundError,
    TripNotFoundError,
    ConflictError,
    InvalidTransitionError,
    UnavailableError,
    ForbiddenError,
)

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "SwiftRideError",
    "LocationValidationError",
    "NotFoundError",
    "DriverNotFoundError",
    "TripNotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "UnavailableError",
    "ForbiddenError",
]

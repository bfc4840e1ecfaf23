# src/common/exceptions.py
"""
Доменные исключения ядра трекинга и диспетчеризации.

Каждое исключение знает свой HTTP-статус и машинный код,
чтобы REST и WebSocket слой отдавали ошибку единообразно.
"""

from __future__ import annotations

from typing import Any


class SwiftRideError(Exception):
    """Базовое исключение приложения."""

    status_code: int = 400
    error_code: str = "error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or None


class LocationValidationError(SwiftRideError):
    """Некорректный сэмпл геолокации (пустой id, NaN, вне диапазона)."""

    status_code = 422
    error_code = "validation_error"


class NotFoundError(SwiftRideError):
    """Операция ссылается на неизвестную сущность."""

    status_code = 404
    error_code = "not_found"


class DriverNotFoundError(NotFoundError):
    """Водитель не найден или не привязан к поездке."""


class TripNotFoundError(NotFoundError):
    """Поездка не найдена."""


class ConflictError(SwiftRideError):
    """Нарушение инварианта состояния (водитель уже занят и т.п.)."""

    status_code = 409
    error_code = "conflict"


class InvalidTransitionError(ConflictError):
    """Недопустимый переход статуса поездки."""

    error_code = "invalid_transition"


class UnavailableError(SwiftRideError):
    """Нет свободных водителей."""

    status_code = 503
    error_code = "unavailable"


class ForbiddenError(SwiftRideError):
    """Соединение пытается действовать от чужого имени."""

    status_code = 403
    error_code = "forbidden"

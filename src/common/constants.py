# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Топики realtime-рассылки
ADMIN_TOPIC = "admin"
TRIP_TOPIC_PREFIX = "trip:"
DRIVER_TOPIC_PREFIX = "driver:"


def trip_topic(trip_id: str) -> str:
    """Топик подписчиков конкретной поездки."""
    return f"{TRIP_TOPIC_PREFIX}{trip_id}"


def driver_topic(driver_id: str) -> str:
    """Топик персональных сообщений водителю."""
    return f"{DRIVER_TOPIC_PREFIX}{driver_id}"


CUSTOMER_TOPIC_PREFIX = "customer:"


def customer_topic(customer_id: str) -> str:
    """Топик персональных сообщений заказчику."""
    return f"{CUSTOMER_TOPIC_PREFIX}{customer_id}"

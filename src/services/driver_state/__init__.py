# src/services/driver_state/__init__.py
"""
Хранилище состояния водителей.

Единственный источник истины о позиции, дневном пробеге, статусе
и привязке к поездке. Все мутации — атомарный read-modify-write
под блокировкой конкретного driver_id.
"""

from src.services.driver_state.store import DriverStateStore, InMemoryDriverStateStore
from src.services.driver_state.redis_store import RedisDriverStateStore

__all__ = [
    "DriverStateStore",
    "InMemoryDriverStateStore",
    "RedisDriverStateStore",
]

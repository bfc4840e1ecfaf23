# src/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними хранилищами: PostgreSQL (поездки), Redis (состояние водителей).
"""

from src.infra.database import DatabaseManager, init_db
from src.infra.redis_client import RedisClient, init_redis

__all__ = [
    "DatabaseManager",
    "init_db",
    "RedisClient",
    "init_redis",
]

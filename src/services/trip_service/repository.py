# src/services/trip_service/repository.py
"""
Хранилище записей о поездках.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.infra.database import DatabaseManager
from src.shared.models.location_dto import LocationDTO
from src.shared.models.trip_dto import TripDTO


class TripRepository(ABC):
    """Контракт хранилища поездок."""

    @abstractmethod
    async def create(self, trip: TripDTO) -> TripDTO:
        """Сохраняет новую поездку."""

    @abstractmethod
    async def get(self, trip_id: str) -> TripDTO | None:
        """Поездка по id или None."""

    @abstractmethod
    async def update(self, trip: TripDTO) -> TripDTO:
        """Перезаписывает изменяемые поля поездки."""

    @abstractmethod
    async def list_for_customer(self, customer_id: str, limit: int = 50) -> list[TripDTO]:
        """Поездки заказчика, новые первыми."""

    @abstractmethod
    async def list_page(self, offset: int, limit: int) -> tuple[list[TripDTO], int]:
        """Страница всех поездок (новые первыми) и общее количество."""


class InMemoryTripRepository(TripRepository):
    """Поездки в памяти процесса."""

    def __init__(self) -> None:
        self._trips: dict[str, TripDTO] = {}

    async def create(self, trip: TripDTO) -> TripDTO:
        self._trips[trip.id] = trip
        return trip

    async def get(self, trip_id: str) -> TripDTO | None:
        return self._trips.get(trip_id)

    async def update(self, trip: TripDTO) -> TripDTO:
        self._trips[trip.id] = trip
        return trip

    def _newest_first(self) -> list[TripDTO]:
        # При равном времени создания новее та, что добавлена позже
        return sorted(reversed(list(self._trips.values())), key=lambda t: t.requested_at, reverse=True)

    async def list_for_customer(self, customer_id: str, limit: int = 50) -> list[TripDTO]:
        return [t for t in self._newest_first() if t.customer_id == customer_id][:limit]

    async def list_page(self, offset: int, limit: int) -> tuple[list[TripDTO], int]:
        trips = self._newest_first()
        return trips[offset:offset + limit], len(trips)


class PostgresTripRepository(TripRepository):
    """Поездки в PostgreSQL (таблица trips, см. migrations/init.sql)."""

    COLUMNS = (
        "id", "customer_id", "driver_id", "driver_name",
        "pickup", "destination",
        "distance_km", "estimated_duration_min", "fare", "currency",
        "status", "payment_method", "priority",
        "requested_at", "accepted_at", "started_at", "completed_at", "cancelled_at",
        "notes",
    )

    def __init__(self, db: DatabaseManager):
        self.db = db

    @staticmethod
    def _to_params(trip: TripDTO) -> list[Any]:
        return [
            trip.id,
            trip.customer_id,
            trip.driver_id,
            trip.driver_name,
            trip.pickup.model_dump_json(),
            trip.destination.model_dump_json() if trip.destination else None,
            trip.distance_km,
            trip.estimated_duration_min,
            trip.fare,
            trip.currency,
            trip.status.value,
            trip.payment_method.value,
            trip.priority.value,
            trip.requested_at,
            trip.accepted_at,
            trip.started_at,
            trip.completed_at,
            trip.cancelled_at,
            trip.notes,
        ]

    @staticmethod
    def _from_row(row: Any) -> TripDTO:
        data = dict(row)
        data["pickup"] = LocationDTO.model_validate_json(data["pickup"])
        if data.get("destination"):
            data["destination"] = LocationDTO.model_validate_json(data["destination"])
        return TripDTO.model_validate(data)

    async def create(self, trip: TripDTO) -> TripDTO:
        cols = ", ".join(self.COLUMNS)
        placeholders = ", ".join(
            f"${i + 1}::jsonb" if col in ("pickup", "destination") else f"${i + 1}"
            for i, col in enumerate(self.COLUMNS)
        )
        query = f"INSERT INTO trips ({cols}) VALUES ({placeholders})"
        await self.db.execute(query, *self._to_params(trip))
        return trip

    async def get(self, trip_id: str) -> TripDTO | None:
        row = await self.db.fetchrow("SELECT * FROM trips WHERE id = $1", trip_id)
        return self._from_row(row) if row else None

    async def update(self, trip: TripDTO) -> TripDTO:
        query = """
            UPDATE trips
            SET driver_id = $2, driver_name = $3, status = $4,
                accepted_at = $5, started_at = $6, completed_at = $7, cancelled_at = $8
            WHERE id = $1
        """
        await self.db.execute(
            query,
            trip.id,
            trip.driver_id,
            trip.driver_name,
            trip.status.value,
            trip.accepted_at,
            trip.started_at,
            trip.completed_at,
            trip.cancelled_at,
        )
        return trip

    async def list_for_customer(self, customer_id: str, limit: int = 50) -> list[TripDTO]:
        rows = await self.db.fetch(
            "SELECT * FROM trips WHERE customer_id = $1 ORDER BY requested_at DESC LIMIT $2",
            customer_id,
            limit,
        )
        return [self._from_row(row) for row in rows]

    async def list_page(self, offset: int, limit: int) -> tuple[list[TripDTO], int]:
        rows = await self.db.fetch(
            "SELECT * FROM trips ORDER BY requested_at DESC OFFSET $1 LIMIT $2",
            offset,
            limit,
        )
        total = await self.db.fetchval("SELECT COUNT(*) FROM trips")
        return [self._from_row(row) for row in rows], total

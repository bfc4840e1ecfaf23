# tests/services/test_trip_repository.py
"""
Тесты для PostgreSQL-репозитория поездок.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict
from unittest.mock import AsyncMock

import pytest

from src.services.trip_service.repository import PostgresTripRepository
from src.shared.models.enums import PaymentMethod, TripPriority, TripStatus
from src.shared.models.location_dto import LocationDTO
from src.shared.models.trip_dto import TripDTO

REQUESTED_AT = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
ACCEPTED_AT = datetime(2024, 3, 1, 10, 1, tzinfo=timezone.utc)


@pytest.fixture
def repository(mock_db: AsyncMock) -> PostgresTripRepository:
    """Создаёт репозиторий с моком БД."""
    return PostgresTripRepository(db=mock_db)


@pytest.fixture
def sample_trip() -> TripDTO:
    """Принятая поездка с адресами подачи и доставки."""
    return TripDTO(
        id="t-1",
        customer_id="c-1",
        driver_id="d-1",
        driver_name="Alice",
        pickup=LocationDTO(lat=-26.2041, lng=28.0473, address="Braamfontein"),
        destination=LocationDTO(lat=-26.1076, lng=28.0567, address="Sandton", contact_name="Bob"),
        distance_km=10.76,
        estimated_duration_min=22,
        fare=145.86,
        status=TripStatus.ACCEPTED,
        payment_method=PaymentMethod.CARD,
        priority=TripPriority.HIGH,
        requested_at=REQUESTED_AT,
        accepted_at=ACCEPTED_AT,
        notes="Домофон 12",
    )


@pytest.fixture
def sample_trip_row() -> Dict[str, Any]:
    """Строка таблицы trips в виде, в котором её отдаёт asyncpg (jsonb — строка)."""
    return {
        "id": "t-1",
        "customer_id": "c-1",
        "driver_id": "d-1",
        "driver_name": "Alice",
        "pickup": json.dumps({"lat": -26.2041, "lng": 28.0473, "address": "Braamfontein"}),
        "destination": json.dumps({"lat": -26.1076, "lng": 28.0567, "contact_name": "Bob"}),
        "distance_km": 10.76,
        "estimated_duration_min": 22,
        "fare": 145.86,
        "currency": "ZAR",
        "status": "in_progress",
        "payment_method": "cash",
        "priority": "normal",
        "requested_at": REQUESTED_AT,
        "accepted_at": ACCEPTED_AT,
        "started_at": ACCEPTED_AT,
        "completed_at": None,
        "cancelled_at": None,
        "notes": None,
    }


class TestCreate:
    """Тесты для вставки поездки."""

    @pytest.mark.asyncio
    async def test_insert_query(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip: TripDTO,
    ) -> None:
        """Колонки и плейсхолдеры идут в одном порядке, адреса — jsonb."""
        result = await repository.create(sample_trip)

        assert result is sample_trip
        query = mock_db.execute.call_args[0][0]
        assert query.startswith(
            "INSERT INTO trips (id, customer_id, driver_id, driver_name, pickup, destination, "
        )
        assert "VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7," in query
        assert query.endswith("$19)")

    @pytest.mark.asyncio
    async def test_insert_params(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip: TripDTO,
    ) -> None:
        """Параметры соответствуют COLUMNS, перечисления передаются значениями."""
        await repository.create(sample_trip)

        params = mock_db.execute.call_args[0][1:]
        assert len(params) == len(PostgresTripRepository.COLUMNS)
        by_column = dict(zip(PostgresTripRepository.COLUMNS, params))

        assert by_column["id"] == "t-1"
        assert json.loads(by_column["pickup"])["address"] == "Braamfontein"
        assert json.loads(by_column["destination"])["contact_name"] == "Bob"
        assert by_column["status"] == "accepted"
        assert by_column["payment_method"] == "card"
        assert by_column["priority"] == "high"
        assert by_column["requested_at"] == REQUESTED_AT
        assert by_column["started_at"] is None
        assert by_column["notes"] == "Домофон 12"

    @pytest.mark.asyncio
    async def test_insert_without_destination(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip: TripDTO,
    ) -> None:
        await repository.create(sample_trip.model_copy(update={"destination": None}))

        params = mock_db.execute.call_args[0][1:]
        assert params[PostgresTripRepository.COLUMNS.index("destination")] is None


class TestRead:
    """Тесты для чтения поездок."""

    def test_from_row(self, sample_trip_row: Dict[str, Any]) -> None:
        """jsonb-адреса разбираются в LocationDTO, статусы — в перечисления."""
        trip = PostgresTripRepository._from_row(sample_trip_row)

        assert trip.pickup.address == "Braamfontein"
        assert trip.destination.contact_name == "Bob"
        assert trip.status == TripStatus.IN_PROGRESS
        assert trip.payment_method == PaymentMethod.CASH
        assert trip.started_at == ACCEPTED_AT

    def test_from_row_without_destination(self, sample_trip_row: Dict[str, Any]) -> None:
        sample_trip_row["destination"] = None
        assert PostgresTripRepository._from_row(sample_trip_row).destination is None

    @pytest.mark.asyncio
    async def test_get(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip_row: Dict[str, Any],
    ) -> None:
        mock_db.fetchrow.return_value = sample_trip_row

        trip = await repository.get("t-1")

        assert trip.id == "t-1"
        mock_db.fetchrow.assert_called_once_with("SELECT * FROM trips WHERE id = $1", "t-1")

    @pytest.mark.asyncio
    async def test_get_missing(self, repository: PostgresTripRepository, mock_db: AsyncMock) -> None:
        mock_db.fetchrow.return_value = None
        assert await repository.get("missing") is None

    @pytest.mark.asyncio
    async def test_list_for_customer(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip_row: Dict[str, Any],
    ) -> None:
        """Поездки заказчика — новые первыми, с лимитом."""
        mock_db.fetch.return_value = [sample_trip_row]

        trips = await repository.list_for_customer("c-1", limit=5)

        assert [t.id for t in trips] == ["t-1"]
        query, customer_id, limit = mock_db.fetch.call_args[0]
        assert "WHERE customer_id = $1 ORDER BY requested_at DESC LIMIT $2" in query
        assert (customer_id, limit) == ("c-1", 5)

    @pytest.mark.asyncio
    async def test_list_page(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip_row: Dict[str, Any],
    ) -> None:
        mock_db.fetch.return_value = [sample_trip_row]
        mock_db.fetchval.return_value = 41

        items, total = await repository.list_page(offset=20, limit=20)

        assert total == 41
        assert len(items) == 1
        query, offset, limit = mock_db.fetch.call_args[0]
        assert "ORDER BY requested_at DESC OFFSET $1 LIMIT $2" in query
        assert (offset, limit) == (20, 20)
        mock_db.fetchval.assert_called_once_with("SELECT COUNT(*) FROM trips")


class TestUpdate:
    """Тесты для обновления поездки."""

    @pytest.mark.asyncio
    async def test_update_params(
        self,
        repository: PostgresTripRepository,
        mock_db: AsyncMock,
        sample_trip: TripDTO,
    ) -> None:
        """Обновляются водитель, статус и временные метки переходов."""
        completed_at = datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)
        trip = sample_trip.model_copy(update={"status": TripStatus.COMPLETED, "completed_at": completed_at})

        await repository.update(trip)

        query, *params = mock_db.execute.call_args[0]
        assert "UPDATE trips" in query
        assert "WHERE id = $1" in query
        assert params == ["t-1", "d-1", "Alice", "completed", ACCEPTED_AT, None, completed_at, None]

import pytest

from src.common.exceptions import ConflictError, DriverNotFoundError
from src.shared.events.base import RealtimeEvents
from src.shared.models.driver import LocationSample
from src.shared.models.enums import DriverStatus, ObserverRole


@pytest.mark.asyncio
async def test_register_publishes_status(driver_service, manager, ws_factory):
    admin_ws = ws_factory()
    await manager.connect(admin_ws, ObserverRole.ADMIN)

    state = await driver_service.register("Alice")
    await manager.flush()

    [message] = admin_ws.sent
    assert message["event"] == RealtimeEvents.ADMIN_DRIVER_STATUS
    assert message["data"] == {
        "driverId": state.driver_id,
        "displayName": "Alice",
        "status": "offline",
        "currentTripId": None,
    }
    await manager.close()


@pytest.mark.asyncio
async def test_get_unknown(driver_service):
    with pytest.raises(DriverNotFoundError):
        await driver_service.get("missing")


@pytest.mark.asyncio
async def test_set_status_and_list_available(driver_service):
    alice = await driver_service.register("Alice")
    await driver_service.register("Bob")

    updated = await driver_service.set_status(alice.driver_id, DriverStatus("online"))

    assert updated.status == DriverStatus.AVAILABLE
    assert [s.driver_id for s in await driver_service.list_available()] == [alice.driver_id]
    assert len(await driver_service.list()) == 2
    assert len(await driver_service.list(DriverStatus.OFFLINE)) == 1


@pytest.mark.asyncio
async def test_set_status_busy_rejected(driver_service):
    alice = await driver_service.register("Alice")

    with pytest.raises(ConflictError):
        await driver_service.set_status(alice.driver_id, DriverStatus.BUSY)


@pytest.mark.asyncio
async def test_location_and_stats(driver_service, ingest):
    alice = await driver_service.register("Alice")
    assert (await driver_service.get_location(alice.driver_id)).lat is None

    await ingest.ingest(LocationSample(driver_id=alice.driver_id, lat=-26.0, lng=28.0))

    location = await driver_service.get_location(alice.driver_id)
    stats = await driver_service.get_stats(alice.driver_id)

    assert (location.lat, location.lng) == (-26.0, 28.0)
    assert location.timestamp is not None
    assert stats.display_name == "Alice"
    assert stats.daily_distance_meters == 0.0
    assert stats.status == DriverStatus.OFFLINE
    assert stats.total_trips == 0

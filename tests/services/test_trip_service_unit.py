import pytest

from src.common.constants import trip_topic
from src.common.exceptions import InvalidTransitionError, TripNotFoundError
from src.services.trip_service.state_machine import TripStateMachine
from src.shared.events.base import RealtimeEvents
from src.shared.models.common import PaginationParams
from src.shared.models.driver import LocationSample
from src.shared.models.enums import DriverStatus, ObserverRole, TripStatus
from src.shared.models.location_dto import LocationDTO
from src.shared.models.trip_dto import CreateTripRequest


def _request(customer_id="c-1"):
    return CreateTripRequest(
        customer_id=customer_id,
        pickup=LocationDTO(lat=-26.2041, lng=28.0473, address="A"),
        destination=LocationDTO(lat=-26.1076, lng=28.0567, address="B"),
    )


async def _trip_with_driver(trip_service, driver_store, name="Alice", customer_id="c-1"):
    driver = await driver_store.register(name)
    await driver_store.set_status(driver.driver_id, DriverStatus.AVAILABLE)
    result = await trip_service.create_trip(_request(customer_id))
    return result.trip, driver


@pytest.mark.asyncio
async def test_create_trip(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)

    assert trip.status == TripStatus.ACCEPTED
    assert (await trip_service.get_trip(trip.id)).driver_id == driver.driver_id


@pytest.mark.asyncio
async def test_get_unknown_trip(trip_service):
    with pytest.raises(TripNotFoundError):
        await trip_service.get_trip("missing")


@pytest.mark.asyncio
async def test_full_lifecycle_releases_driver(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)

    started = await trip_service.update_status(trip.id, TripStatus.IN_PROGRESS)
    assert started.started_at is not None
    assert (await driver_store.get(driver.driver_id)).status == DriverStatus.BUSY

    completed = await trip_service.update_status(trip.id, TripStatus.COMPLETED)
    assert completed.completed_at is not None

    state = await driver_store.get(driver.driver_id)
    assert state.status == DriverStatus.AVAILABLE
    assert state.current_trip_id is None


@pytest.mark.asyncio
async def test_delivered_alias_completes_trip(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)
    await trip_service.update_status(trip.id, TripStatus.IN_PROGRESS)

    completed = await trip_service.update_status(trip.id, TripStatus("delivered"))

    assert completed.status == TripStatus.COMPLETED
    assert (await driver_store.get(driver.driver_id)).is_dispatchable


@pytest.mark.asyncio
async def test_cancel_accepted_trip_releases_driver(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)

    cancelled = await trip_service.update_status(trip.id, TripStatus.CANCELLED)

    assert cancelled.cancelled_at is not None
    assert (await driver_store.get(driver.driver_id)).status == DriverStatus.AVAILABLE


@pytest.mark.asyncio
async def test_invalid_transition(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)

    with pytest.raises(InvalidTransitionError):
        await trip_service.update_status(trip.id, TripStatus.COMPLETED)

    assert (await trip_service.get_trip(trip.id)).status == TripStatus.ACCEPTED
    assert (await driver_store.get(driver.driver_id)).status == DriverStatus.BUSY


@pytest.mark.asyncio
async def test_terminal_trip_is_final(trip_service, driver_store):
    trip, _ = await _trip_with_driver(trip_service, driver_store)
    await trip_service.update_status(trip.id, TripStatus.CANCELLED)

    with pytest.raises(InvalidTransitionError):
        await trip_service.update_status(trip.id, TripStatus.IN_PROGRESS)


@pytest.mark.asyncio
async def test_terminal_with_unbound_driver_is_not_an_error(trip_service, driver_store):
    trip, driver = await _trip_with_driver(trip_service, driver_store)
    await driver_store.release_trip(driver.driver_id, trip.id)

    cancelled = await trip_service.update_status(trip.id, TripStatus.CANCELLED)

    assert cancelled.status == TripStatus.CANCELLED
    assert (await driver_store.get(driver.driver_id)).status == DriverStatus.AVAILABLE


@pytest.mark.asyncio
async def test_update_broadcasts_once_per_observer(trip_service, driver_store, manager, ws_factory):
    trip, driver = await _trip_with_driver(trip_service, driver_store)
    customer_ws, admin_ws, driver_ws = ws_factory(), ws_factory(), ws_factory()
    customer = await manager.connect(customer_ws, ObserverRole.CUSTOMER, user_id="c-1")
    manager.subscribe(customer.connection_id, trip_topic(trip.id))
    await manager.connect(admin_ws, ObserverRole.ADMIN)
    await manager.connect(driver_ws, ObserverRole.DRIVER, driver_id=driver.driver_id)

    await trip_service.update_status(trip.id, TripStatus.IN_PROGRESS)
    await manager.flush()

    [update] = customer_ws.events(RealtimeEvents.TRIP_UPDATED)
    assert update["data"]["oldStatus"] == "accepted"
    assert update["data"]["status"] == "in_progress"
    assert len(customer_ws.sent) == 1
    assert len(admin_ws.events(RealtimeEvents.TRIP_UPDATED)) == 1
    assert len(driver_ws.events(RealtimeEvents.TRIP_UPDATED)) == 1
    await manager.close()


@pytest.mark.asyncio
async def test_user_trips_newest_first(trip_service, driver_store):
    first, _ = await _trip_with_driver(trip_service, driver_store, "A")
    second, _ = await _trip_with_driver(trip_service, driver_store, "B")
    await _trip_with_driver(trip_service, driver_store, "C", customer_id="c-2")

    trips = await trip_service.get_user_trips("c-1")

    assert [t.id for t in trips] == [second.id, first.id]


@pytest.mark.asyncio
async def test_get_all_trips_paginated(trip_service, driver_store):
    for name in ("A", "B", "C"):
        await _trip_with_driver(trip_service, driver_store, name)

    page = await trip_service.get_all_trips(PaginationParams(page=2, page_size=2))

    assert page.total == 3
    assert page.total_pages == 2
    assert len(page.items) == 1


@pytest.mark.asyncio
async def test_tracking(trip_service, driver_store, ingest):
    trip, driver = await _trip_with_driver(trip_service, driver_store)
    await ingest.ingest(LocationSample(driver_id=driver.driver_id, lat=-26.15, lng=28.05))

    tracking = await trip_service.get_tracking(trip.id)

    assert tracking.status == TripStatus.ACCEPTED
    assert tracking.driver.id == driver.driver_id
    assert tracking.driver.name == "Alice"
    assert (tracking.driver.lat, tracking.driver.lng) == (-26.15, 28.05)


def test_state_machine_transitions():
    assert TripStateMachine.can_transition(TripStatus.REQUESTED, TripStatus.ACCEPTED)
    assert TripStateMachine.can_transition(TripStatus.IN_PROGRESS, TripStatus.CANCELLED)
    assert not TripStateMachine.can_transition(TripStatus.ACCEPTED, TripStatus.COMPLETED)
    assert not TripStateMachine.can_transition(TripStatus.COMPLETED, TripStatus.CANCELLED)
    assert not TripStateMachine.can_transition("unknown", TripStatus.ACCEPTED)


@pytest.mark.asyncio
async def test_status_locks_are_not_retained(trip_service, driver_store):
    driver = await driver_store.register("Alice")
    await driver_store.set_status(driver.driver_id, DriverStatus.AVAILABLE)

    for _ in range(20):
        result = await trip_service.create_trip(_request())
        await trip_service.update_status(result.trip.id, TripStatus.CANCELLED)

    assert len(trip_service._locks) == 0


@pytest.mark.asyncio
async def test_completed_trips_are_counted(trip_service, driver_store):
    first, driver = await _trip_with_driver(trip_service, driver_store)
    await trip_service.update_status(first.id, TripStatus.IN_PROGRESS)
    await trip_service.update_status(first.id, TripStatus.COMPLETED)

    second = (await trip_service.create_trip(_request())).trip
    await trip_service.update_status(second.id, TripStatus.CANCELLED)

    assert (await driver_store.get(driver.driver_id)).total_trips == 1

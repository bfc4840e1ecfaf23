import asyncio

import pytest

from src.common.exceptions import ConflictError, DriverNotFoundError
from src.services.driver_state.store import InMemoryDriverStateStore
from src.shared.models.driver import DriverPatch
from src.shared.models.enums import DriverStatus


async def _available(store, name):
    state = await store.register(name)
    return await store.set_status(state.driver_id, DriverStatus.AVAILABLE)


@pytest.mark.asyncio
async def test_register_creates_offline_record(driver_store):
    state = await driver_store.register("Alice")

    assert state.display_name == "Alice"
    assert state.status == DriverStatus.OFFLINE
    assert state.daily_distance_meters == 0.0
    assert state.current_trip_id is None
    assert not state.has_position
    assert await driver_store.get(state.driver_id) == state


@pytest.mark.asyncio
async def test_register_same_name_gives_distinct_ids(driver_store):
    first = await driver_store.register("Alice")
    second = await driver_store.register("Alice")

    assert first.driver_id != second.driver_id
    assert await driver_store.count() == 2


@pytest.mark.asyncio
async def test_get_unknown_returns_none(driver_store):
    assert await driver_store.get("missing") is None


@pytest.mark.asyncio
async def test_upsert_creates_and_patches(driver_store):
    created = await driver_store.upsert("d-1", DriverPatch(lat=-26.0, lng=28.0))
    patched = await driver_store.upsert("d-1", DriverPatch(display_name="Bob"))

    assert created.status == DriverStatus.OFFLINE
    assert patched.lat == -26.0
    assert patched.display_name == "Bob"


def test_patch_requires_lat_and_lng_together():
    with pytest.raises(ValueError):
        DriverPatch(lat=1.0)


@pytest.mark.asyncio
async def test_set_status_unknown_driver(driver_store):
    with pytest.raises(DriverNotFoundError):
        await driver_store.set_status("missing", DriverStatus.AVAILABLE)


@pytest.mark.asyncio
async def test_set_status_busy_directly_is_conflict(driver_store):
    state = await driver_store.register("Alice")

    with pytest.raises(ConflictError):
        await driver_store.set_status(state.driver_id, DriverStatus.BUSY)


@pytest.mark.asyncio
async def test_set_status_with_active_trip_is_conflict(driver_store):
    state = await _available(driver_store, "Alice")
    await driver_store.bind_trip(state.driver_id, "t-1")

    with pytest.raises(ConflictError):
        await driver_store.set_status(state.driver_id, DriverStatus.OFFLINE)

    current = await driver_store.get(state.driver_id)
    assert current.status == DriverStatus.BUSY
    assert current.current_trip_id == "t-1"


@pytest.mark.asyncio
async def test_set_status_calls_on_commit(driver_store):
    state = await driver_store.register("Alice")
    committed = []

    await driver_store.set_status(state.driver_id, DriverStatus.ON_BREAK, on_commit=committed.append)

    assert [s.status for s in committed] == [DriverStatus.ON_BREAK]


@pytest.mark.asyncio
async def test_bind_trip(driver_store):
    state = await _available(driver_store, "Alice")

    bound = await driver_store.bind_trip(state.driver_id, "t-1")

    assert bound.status == DriverStatus.BUSY
    assert bound.current_trip_id == "t-1"


@pytest.mark.asyncio
async def test_bind_trip_twice_is_conflict(driver_store):
    state = await _available(driver_store, "Alice")
    await driver_store.bind_trip(state.driver_id, "t-1")

    with pytest.raises(ConflictError):
        await driver_store.bind_trip(state.driver_id, "t-2")

    assert (await driver_store.get(state.driver_id)).current_trip_id == "t-1"


@pytest.mark.asyncio
async def test_bind_trip_unknown_driver(driver_store):
    with pytest.raises(DriverNotFoundError):
        await driver_store.bind_trip("missing", "t-1")


@pytest.mark.asyncio
async def test_release_trip(driver_store):
    state = await _available(driver_store, "Alice")
    await driver_store.bind_trip(state.driver_id, "t-1")

    released = await driver_store.release_trip(state.driver_id, "t-1")

    assert released.status == DriverStatus.AVAILABLE
    assert released.current_trip_id is None
    assert released.total_trips == 0


@pytest.mark.asyncio
async def test_release_completed_trip_counts(driver_store):
    state = await _available(driver_store, "Alice")
    await driver_store.bind_trip(state.driver_id, "t-1")

    released = await driver_store.release_trip(state.driver_id, "t-1", completed=True)

    assert released.total_trips == 1


@pytest.mark.asyncio
async def test_release_unbound_driver_is_not_found(driver_store):
    state = await _available(driver_store, "Alice")

    with pytest.raises(DriverNotFoundError):
        await driver_store.release_trip(state.driver_id)


@pytest.mark.asyncio
async def test_release_other_trip_is_not_found(driver_store):
    state = await _available(driver_store, "Alice")
    await driver_store.bind_trip(state.driver_id, "t-1")

    with pytest.raises(DriverNotFoundError):
        await driver_store.release_trip(state.driver_id, "t-2")

    assert (await driver_store.get(state.driver_id)).current_trip_id == "t-1"


@pytest.mark.asyncio
async def test_mutator_error_leaves_record_unchanged(driver_store):
    state = await driver_store.register("Alice")

    def failing(_current):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await driver_store.update(state.driver_id, failing)

    assert await driver_store.get(state.driver_id) == state


@pytest.mark.asyncio
async def test_reserve_available_in_registration_order(driver_store):
    await driver_store.register("Offline")
    first = await _available(driver_store, "First")
    second = await _available(driver_store, "Second")

    reserved = await driver_store.reserve_available("t-1")

    assert reserved.driver_id == first.driver_id
    assert reserved.status == DriverStatus.BUSY
    assert reserved.current_trip_id == "t-1"
    assert (await driver_store.reserve_available("t-2")).driver_id == second.driver_id
    assert await driver_store.reserve_available("t-3") is None


@pytest.mark.asyncio
async def test_reserve_available_skips_on_break(driver_store):
    state = await driver_store.register("Alice")
    await driver_store.set_status(state.driver_id, DriverStatus.ON_BREAK)

    assert await driver_store.reserve_available("t-1") is None


@pytest.mark.asyncio
async def test_concurrent_reserve_never_double_books(driver_store):
    await _available(driver_store, "Only")

    results = await asyncio.gather(*(driver_store.reserve_available(f"t-{i}") for i in range(5)))

    reserved = [r for r in results if r is not None]
    assert len(reserved) == 1
    assert (await driver_store.get(reserved[0].driver_id)).current_trip_id == reserved[0].current_trip_id


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_driver_are_serialized():
    store = InMemoryDriverStateStore()
    await store.upsert("d-1", DriverPatch(daily_distance_meters=0.0))

    async def add_one():
        def mutator(current):
            return DriverPatch(daily_distance_meters=current.daily_distance_meters + 1)
        await store.update("d-1", mutator)

    await asyncio.gather(*(add_one() for _ in range(50)))

    assert (await store.get("d-1")).daily_distance_meters == 50


@pytest.mark.asyncio
async def test_list_filters_by_status(driver_store):
    offline = await driver_store.register("Offline")
    available = await _available(driver_store, "Available")

    assert [s.driver_id for s in await driver_store.list()] == [offline.driver_id, available.driver_id]
    assert [s.driver_id for s in await driver_store.list(DriverStatus.AVAILABLE)] == [available.driver_id]

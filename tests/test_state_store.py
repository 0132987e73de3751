from __future__ import annotations

import pytest

from carlog.exceptions import FuelRecordNotFoundError, InvariantViolationError, VehicleNotFoundError
from carlog.models.fuel import FuelRecord
from carlog.models.vehicle import Vehicle
from carlog.state.events import ChangeEvent, ChangeKind, EntityKind
from carlog.state.store import RecordStore

_DAY_MS = 86_400_000


def _frozen_clock() -> int:
    return 1_000


def _vehicle(vehicle_id: str = "car-1", created_at: int = 1) -> Vehicle:
    return Vehicle(id=vehicle_id, name="Daily", manufacturer="Honda", model="Jazz", year=2019, created_at=created_at)


def _record(record_id: str, vehicle_id: str = "car-1", day: int = 0, created_at: int = 0) -> FuelRecord:
    return FuelRecord(
        id=record_id,
        vehicle_id=vehicle_id,
        date=day * _DAY_MS,
        created_at=created_at,
        odometer=100.0 * (day + 1),
        fuel_added=30,
        total_cost=45,
    )


def _recording_store() -> tuple[RecordStore, list[ChangeEvent]]:
    store = RecordStore(clock=_frozen_clock)
    events: list[ChangeEvent] = []
    store.subscribe(events.append)
    return store, events


def test_insert_emits_one_event_per_write() -> None:
    store, events = _recording_store()

    store.insert_vehicle(_vehicle())
    stored = store.insert_fuel_record(_record("r1"))

    assert [(e.entity, e.kind) for e in events] == [
        (EntityKind.VEHICLE, ChangeKind.INSERT),
        (EntityKind.FUEL_RECORD, ChangeKind.INSERT),
    ]
    assert [e.sequence for e in events] == [1, 2]
    assert events[1].record_id == stored.id
    assert store.sequence == 2


def test_created_at_strictly_increasing_with_coarse_clock() -> None:
    store = RecordStore(clock=_frozen_clock)
    store.insert_vehicle(_vehicle())

    stamps = [store.insert_fuel_record(_record(f"r{i}")).created_at for i in range(3)]

    assert stamps == [1_000, 1_001, 1_002]


def test_fuel_record_requires_known_vehicle() -> None:
    store, events = _recording_store()

    with pytest.raises(VehicleNotFoundError) as exc_info:
        store.insert_fuel_record(_record("r1", vehicle_id="ghost"))

    assert exc_info.value.entity_id == "ghost"
    assert events == []


def test_duplicate_ids_rejected() -> None:
    store = RecordStore(clock=_frozen_clock)
    store.insert_vehicle(_vehicle())
    store.insert_fuel_record(_record("r1"))

    with pytest.raises(InvariantViolationError):
        store.insert_vehicle(_vehicle())
    with pytest.raises(InvariantViolationError):
        store.insert_fuel_record(_record("r1"))


def test_update_preserves_created_at_and_owner() -> None:
    store = RecordStore(clock=_frozen_clock)
    store.insert_vehicle(_vehicle("car-1"))
    store.insert_vehicle(_vehicle("car-2"))
    original = store.insert_fuel_record(_record("r1"))

    updated = store.update_fuel_record(_record("r1", day=5, created_at=42))

    assert updated.created_at == original.created_at
    assert updated.date == 5 * _DAY_MS
    with pytest.raises(InvariantViolationError):
        store.update_fuel_record(_record("r1", vehicle_id="car-2"))
    with pytest.raises(FuelRecordNotFoundError):
        store.update_fuel_record(_record("missing"))


def test_update_unknown_vehicle_raises() -> None:
    store = RecordStore()

    with pytest.raises(VehicleNotFoundError):
        store.update_vehicle(_vehicle())


def test_delete_vehicle_cascades_atomically() -> None:
    store, events = _recording_store()
    store.insert_vehicle(_vehicle("car-1"))
    store.insert_vehicle(_vehicle("car-2"))
    store.insert_fuel_record(_record("a", vehicle_id="car-1"))
    store.insert_fuel_record(_record("b", vehicle_id="car-1"))
    store.insert_fuel_record(_record("c", vehicle_id="car-2"))
    seen_during_delete: list[tuple[object, int]] = []
    store.subscribe(
        lambda event: seen_during_delete.append(
            (store.get_vehicle(event.vehicle_id), len(store.list_fuel_records(event.vehicle_id)))
        )
    )
    events.clear()

    removed = store.delete_vehicle("car-1")

    assert removed == 2
    assert store.get_vehicle("car-1") is None
    assert store.get_fuel_record("a") is None
    assert store.list_fuel_records("car-1") == ()
    assert [r.id for r in store.list_fuel_records("car-2")] == ["c"]
    assert len(events) == 1
    assert events[0].removes_vehicle
    # The listener sees the vehicle and its records gone together.
    assert seen_during_delete == [(None, 0)]


def test_delete_missing_entities_raise() -> None:
    store = RecordStore()

    with pytest.raises(VehicleNotFoundError):
        store.delete_vehicle("nope")
    with pytest.raises(FuelRecordNotFoundError):
        store.delete_fuel_record("nope")


def test_delete_fuel_record_returns_removed() -> None:
    store, events = _recording_store()
    store.insert_vehicle(_vehicle())
    stored = store.insert_fuel_record(_record("r1"))

    removed = store.delete_fuel_record("r1")

    assert removed == stored
    assert store.list_fuel_records("car-1") == ()
    assert events[-1].kind == ChangeKind.DELETE
    assert events[-1].entity == EntityKind.FUEL_RECORD


def test_snapshot_is_consistent_and_immutable() -> None:
    store = RecordStore(clock=_frozen_clock)
    store.insert_vehicle(_vehicle())
    store.insert_fuel_record(_record("r1"))

    snapshot = store.vehicle_snapshot("car-1")
    store.insert_fuel_record(_record("r2"))

    assert snapshot.vehicle is not None
    assert [r.id for r in snapshot.records] == ["r1"]
    assert snapshot.sequence == 2
    assert store.vehicle_snapshot("car-1").sequence == 3
    assert store.vehicle_snapshot("ghost").vehicle is None


def test_insert_all_keeps_created_at_and_emits_per_vehicle() -> None:
    store, events = _recording_store()

    store.insert_all(
        [_vehicle("car-1"), _vehicle("car-2")],
        [
            _record("a", vehicle_id="car-1", created_at=10),
            _record("b", vehicle_id="car-1", created_at=20),
            _record("c", vehicle_id="car-2", created_at=30),
        ],
    )

    assert store.get_fuel_record("b") is not None
    assert store.get_fuel_record("b").created_at == 20  # type: ignore[union-attr]
    assert [(e.vehicle_id, e.kind) for e in events] == [
        ("car-1", ChangeKind.INSERT),
        ("car-2", ChangeKind.INSERT),
    ]
    # Later inserts keep created_at above bulk-loaded records.
    assert store.insert_fuel_record(_record("d", vehicle_id="car-2")).created_at == 1_000


def test_insert_all_replaces_existing_records() -> None:
    store = RecordStore(clock=_frozen_clock)
    store.insert_all([_vehicle()], [_record("a", created_at=10)])

    store.insert_all([], [_record("a", day=3, created_at=10)])

    assert [r.date for r in store.list_fuel_records("car-1")] == [3 * _DAY_MS]


def test_insert_all_rejects_orphans_without_side_effects() -> None:
    store, events = _recording_store()

    with pytest.raises(InvariantViolationError, match="ghost"):
        store.insert_all([_vehicle("car-1")], [_record("a", vehicle_id="ghost")])

    assert store.list_vehicles() == ()
    assert events == []


def test_clear_removes_everything() -> None:
    store, events = _recording_store()
    store.insert_all([_vehicle("car-1"), _vehicle("car-2")], [_record("a")])
    events.clear()

    store.clear()

    assert store.list_vehicles() == ()
    assert store.get_fuel_record("a") is None
    assert sorted(e.vehicle_id for e in events) == ["car-1", "car-2"]
    assert all(e.removes_vehicle for e in events)


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    store = RecordStore()
    received: list[ChangeEvent] = []

    def _boom(event: ChangeEvent) -> None:
        raise RuntimeError("listener exploded")

    store.subscribe(_boom)
    store.subscribe(received.append)

    with caplog.at_level("WARNING", logger="carlog.state.store"):
        store.insert_vehicle(_vehicle())

    assert len(received) == 1
    assert store.get_vehicle("car-1") is not None
    assert "Change listener failed" in caplog.text


def test_unsubscribe_stops_events() -> None:
    store = RecordStore()
    received: list[ChangeEvent] = []
    unsubscribe = store.subscribe(received.append)

    unsubscribe()
    unsubscribe()
    store.insert_vehicle(_vehicle())

    assert received == []

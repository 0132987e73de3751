"""In-memory keyed store for vehicles and fuel records.

This is the only component allowed to mutate logbook data.  Writes are
serialized by a single lock; a vehicle delete removes the vehicle and all
of its records inside one critical section, so no reader ever sees
orphaned records.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from carlog._time import now_ms
from carlog.exceptions import FuelRecordNotFoundError, InvariantViolationError, VehicleNotFoundError
from carlog.models.fuel import FuelRecord
from carlog.models.vehicle import Vehicle
from carlog.state.events import ChangeEvent, ChangeKind, EntityKind

_logger = logging.getLogger(__name__)

ChangeListener = Callable[[ChangeEvent], None]


@dataclass(frozen=True, slots=True)
class VehicleSnapshot:
    """A vehicle and its records, read in one critical section."""

    vehicle: Vehicle | None
    records: tuple[FuelRecord, ...] = ()
    sequence: int = 0
    """Commit sequence of the last write visible in this snapshot."""


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
    """Every vehicle with its records, read in one critical section."""

    vehicles: tuple[Vehicle, ...] = ()
    records: dict[str, tuple[FuelRecord, ...]] = field(default_factory=dict)
    sequence: int = 0


class RecordSource(Protocol):
    """What the read side needs from a record store."""

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...

    def list_fuel_records(self, vehicle_id: str) -> tuple[FuelRecord, ...]: ...

    def vehicle_snapshot(self, vehicle_id: str) -> VehicleSnapshot: ...

    def snapshot(self) -> StoreSnapshot: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


class RecordStore:
    """Keyed store with serialized writes and change notifications.

    Every committed write emits exactly one :class:`ChangeEvent` per
    affected vehicle.  Listeners run on the writing thread while the write
    lock is still held, so they observe post-write state and no later
    write can overtake them.  Listeners may read from the store but must
    not write to it.

    ``created_at`` of an inserted fuel record is stamped by the store and
    is strictly increasing, which keeps ``(date, created_at)`` unique.
    """

    def __init__(self, *, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._vehicles: dict[str, Vehicle] = {}
        self._records: dict[str, FuelRecord] = {}
        self._record_ids: dict[str, list[str]] = {}
        self._listeners: list[ChangeListener] = []
        self._sequence = 0
        self._last_created_at = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        with self._lock:
            return self._vehicles.get(vehicle_id)

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        """All vehicles in insertion order."""
        with self._lock:
            return tuple(self._vehicles.values())

    def get_fuel_record(self, record_id: str) -> FuelRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def list_fuel_records(self, vehicle_id: str) -> tuple[FuelRecord, ...]:
        """A vehicle's records in insertion order (empty for unknown vehicles)."""
        with self._lock:
            return self._records_of(vehicle_id)

    def vehicle_snapshot(self, vehicle_id: str) -> VehicleSnapshot:
        with self._lock:
            return VehicleSnapshot(self._vehicles.get(vehicle_id), self._records_of(vehicle_id), self._sequence)

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                vehicles=tuple(self._vehicles.values()),
                records={vehicle_id: self._records_of(vehicle_id) for vehicle_id in self._vehicles},
                sequence=self._sequence,
            )

    @property
    def sequence(self) -> int:
        """Sequence number of the last committed write."""
        with self._lock:
            return self._sequence

    def _records_of(self, vehicle_id: str) -> tuple[FuelRecord, ...]:
        return tuple(self._records[record_id] for record_id in self._record_ids.get(vehicle_id, ()))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener* for change events; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, vehicle_id: str, entity: EntityKind, kind: ChangeKind, record_id: str | None = None) -> None:
        self._sequence += 1
        event = ChangeEvent(
            sequence=self._sequence,
            vehicle_id=vehicle_id,
            entity=entity,
            kind=kind,
            record_id=record_id,
        )
        _logger.debug("Store change #%d: %s %s vehicle=%s", event.sequence, kind, entity, vehicle_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.warning("Change listener failed for event #%d", event.sequence, exc_info=True)

    # ------------------------------------------------------------------
    # Vehicle writes
    # ------------------------------------------------------------------

    def insert_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            if vehicle.id in self._vehicles:
                raise InvariantViolationError(f"vehicle {vehicle.id} already exists")
            self._vehicles[vehicle.id] = vehicle
            self._record_ids[vehicle.id] = []
            self._emit(vehicle.id, EntityKind.VEHICLE, ChangeKind.INSERT)
            return vehicle

    def update_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            if vehicle.id not in self._vehicles:
                raise VehicleNotFoundError(f"vehicle {vehicle.id} not found", entity_id=vehicle.id)
            self._vehicles[vehicle.id] = vehicle
            self._emit(vehicle.id, EntityKind.VEHICLE, ChangeKind.UPDATE)
            return vehicle

    def delete_vehicle(self, vehicle_id: str) -> int:
        """Delete a vehicle and all its records; returns the number of records removed."""
        with self._lock:
            if vehicle_id not in self._vehicles:
                raise VehicleNotFoundError(f"vehicle {vehicle_id} not found", entity_id=vehicle_id)
            record_ids = self._record_ids.pop(vehicle_id, [])
            for record_id in record_ids:
                del self._records[record_id]
            del self._vehicles[vehicle_id]
            self._emit(vehicle_id, EntityKind.VEHICLE, ChangeKind.DELETE)
            return len(record_ids)

    # ------------------------------------------------------------------
    # Fuel record writes
    # ------------------------------------------------------------------

    def _next_created_at(self) -> int:
        value = max(self._clock(), self._last_created_at + 1)
        self._last_created_at = value
        return value

    def insert_fuel_record(self, record: FuelRecord) -> FuelRecord:
        """Insert *record*, stamping its ``created_at``; returns the stored record."""
        with self._lock:
            if record.vehicle_id not in self._vehicles:
                raise VehicleNotFoundError(
                    f"cannot add fuel record to unknown vehicle {record.vehicle_id}",
                    entity_id=record.vehicle_id,
                )
            if record.id in self._records:
                raise InvariantViolationError(f"fuel record {record.id} already exists")
            stored = record.model_copy(update={"created_at": self._next_created_at()})
            self._records[stored.id] = stored
            self._record_ids[stored.vehicle_id].append(stored.id)
            self._emit(stored.vehicle_id, EntityKind.FUEL_RECORD, ChangeKind.INSERT, stored.id)
            return stored

    def update_fuel_record(self, record: FuelRecord) -> FuelRecord:
        """Replace a record's fields.  ``created_at`` and ownership never change."""
        with self._lock:
            existing = self._records.get(record.id)
            if existing is None:
                raise FuelRecordNotFoundError(f"fuel record {record.id} not found", entity_id=record.id)
            if record.vehicle_id != existing.vehicle_id:
                raise InvariantViolationError(
                    f"fuel record {record.id} cannot move from vehicle {existing.vehicle_id} to {record.vehicle_id}"
                )
            stored = record.model_copy(update={"created_at": existing.created_at})
            self._records[stored.id] = stored
            self._emit(stored.vehicle_id, EntityKind.FUEL_RECORD, ChangeKind.UPDATE, stored.id)
            return stored

    def delete_fuel_record(self, record_id: str) -> FuelRecord:
        with self._lock:
            existing = self._records.pop(record_id, None)
            if existing is None:
                raise FuelRecordNotFoundError(f"fuel record {record_id} not found", entity_id=record_id)
            self._record_ids[existing.vehicle_id].remove(record_id)
            self._emit(existing.vehicle_id, EntityKind.FUEL_RECORD, ChangeKind.DELETE, record_id)
            return existing

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------

    def insert_all(self, vehicles: Iterable[Vehicle], records: Iterable[FuelRecord] = ()) -> None:
        """Insert or replace vehicles and records in one atomic write.

        Records keep their own ``created_at``.  Every record must belong to
        a vehicle that exists after the write; otherwise nothing is applied.
        One event is emitted per vehicle touched.
        """
        vehicle_list = list(vehicles)
        record_list = list(records)
        with self._lock:
            known = set(self._vehicles) | {vehicle.id for vehicle in vehicle_list}
            orphans = sorted({record.vehicle_id for record in record_list if record.vehicle_id not in known})
            if orphans:
                raise InvariantViolationError(f"fuel records reference unknown vehicles: {', '.join(orphans)}")
            for record in record_list:
                existing = self._records.get(record.id)
                if existing is not None and existing.vehicle_id != record.vehicle_id:
                    raise InvariantViolationError(
                        f"fuel record {record.id} cannot move from vehicle {existing.vehicle_id} "
                        f"to {record.vehicle_id}"
                    )

            touched: dict[str, ChangeKind] = {}
            for vehicle in vehicle_list:
                kind = ChangeKind.UPDATE if vehicle.id in self._vehicles else ChangeKind.INSERT
                self._vehicles[vehicle.id] = vehicle
                self._record_ids.setdefault(vehicle.id, [])
                touched.setdefault(vehicle.id, kind)
            for record in record_list:
                if record.id not in self._records:
                    self._record_ids[record.vehicle_id].append(record.id)
                self._records[record.id] = record
                self._last_created_at = max(self._last_created_at, record.created_at)
                touched.setdefault(record.vehicle_id, ChangeKind.UPDATE)

            for vehicle_id, kind in touched.items():
                self._emit(vehicle_id, EntityKind.VEHICLE, kind)

    def clear(self) -> None:
        """Delete every vehicle and record."""
        with self._lock:
            vehicle_ids = list(self._vehicles)
            self._vehicles.clear()
            self._records.clear()
            self._record_ids.clear()
            for vehicle_id in vehicle_ids:
                self._emit(vehicle_id, EntityKind.VEHICLE, ChangeKind.DELETE)

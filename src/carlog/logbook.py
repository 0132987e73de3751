"""High-level fuel logbook facade."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from carlog._time import calendar_date, start_of_day_ms
from carlog.aggregation import (
    build_vehicle_with_stats,
    can_calculate_trip,
    derive_fuel_economy,
    derive_trip,
)
from carlog.config import CarLogConfig
from carlog.exceptions import FuelRecordNotFoundError, VehicleNotFoundError
from carlog.models.fuel import FuelRecord
from carlog.models.requests import FuelRecordInput, VehicleInput
from carlog.models.stats import VehicleWithStats
from carlog.models.vehicle import Vehicle
from carlog.ordering import ReferenceKey, latest_record, predecessor_of, sort_records
from carlog.readmodel import StatsReadModel
from carlog.state.store import RecordStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FuelEntryResult:
    """Outcome of adding or editing a fuel record."""

    record: FuelRecord
    predecessor: FuelRecord | None
    """Record immediately before the saved one, if any."""
    trip_derived: bool
    """Whether ``record.trip`` was computed from the predecessor."""


class FuelLogbook:
    """Vehicle and fuel-record entry plus statistics.

    Usage::

        logbook = FuelLogbook()
        car = logbook.add_vehicle({"name": "Daily", "manufacturer": "Honda", "model": "Jazz", "year": 2019})
        logbook.add_fuel_record(car.id, {"date": date(2025, 3, 1), "odometer": 1800,
                                         "fuel_added": 30, "total_cost": 54.0})
        logbook.compute_stats(car.id)

    Statistics are never stored: :meth:`compute_stats` recomputes from the
    store, and :attr:`read_model` keeps an eagerly refreshed view for
    observers.
    """

    def __init__(self, store: RecordStore | None = None, *, config: CarLogConfig | None = None) -> None:
        self._config = config or CarLogConfig()
        self._store = store if store is not None else RecordStore()
        self._read_model = StatsReadModel(self._store, config=self._config)

    @property
    def config(self) -> CarLogConfig:
        return self._config

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def read_model(self) -> StatsReadModel:
        return self._read_model

    def close(self) -> None:
        """Detach the read model from the store."""
        self._read_model.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self._store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(f"vehicle {vehicle_id} not found", entity_id=vehicle_id)
        return vehicle

    def _date_ms(self, day: dt.date) -> int:
        return start_of_day_ms(day, self._config.zone)

    def _use_auto(self, auto_calculate_trip: bool | None) -> bool:
        return self._config.auto_calculate_trip if auto_calculate_trip is None else auto_calculate_trip

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------

    def add_vehicle(self, data: VehicleInput | Mapping[str, Any]) -> Vehicle:
        """Validate *data* and register a new vehicle."""
        request = VehicleInput.model_validate(data)
        vehicle = Vehicle(**request.model_dump())
        _logger.debug("Adding vehicle %s (%s %s)", vehicle.id, vehicle.manufacturer, vehicle.model)
        return self._store.insert_vehicle(vehicle)

    def update_vehicle(self, vehicle_id: str, data: VehicleInput | Mapping[str, Any]) -> Vehicle:
        """Replace a vehicle's editable fields; id and ``created_at`` are kept."""
        request = VehicleInput.model_validate(data)
        existing = self._require_vehicle(vehicle_id)
        updated = Vehicle(id=existing.id, created_at=existing.created_at, **request.model_dump())
        return self._store.update_vehicle(updated)

    def delete_vehicle(self, vehicle_id: str) -> int:
        """Delete a vehicle and all its fuel records; returns the record count removed."""
        removed = self._store.delete_vehicle(vehicle_id)
        _logger.debug("Deleted vehicle %s with %d fuel records", vehicle_id, removed)
        return removed

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._store.get_vehicle(vehicle_id)

    # ------------------------------------------------------------------
    # Fuel records
    # ------------------------------------------------------------------

    def add_fuel_record(
        self,
        vehicle_id: str,
        data: FuelRecordInput | Mapping[str, Any],
        *,
        auto_calculate_trip: bool | None = None,
    ) -> FuelEntryResult:
        """Validate *data* and append a fuel record to a vehicle.

        When no trip is supplied and auto-calculation is enabled, the trip is
        derived from the record that will precede the new one.  If that is
        not computable the trip stays ``0`` and so does the fuel economy.
        """
        request = FuelRecordInput.model_validate(data)
        self._require_vehicle(vehicle_id)
        date_ms = self._date_ms(request.date)

        predecessor = predecessor_of(
            self._store.list_fuel_records(vehicle_id),
            ReferenceKey(date=date_ms),
            new_record_position=self._config.new_record_position,
        )
        trip, derived = self._resolve_trip(
            request,
            predecessor,
            fallback=0.0,
            auto=self._use_auto(auto_calculate_trip),
        )
        record = FuelRecord(
            vehicle_id=vehicle_id,
            date=date_ms,
            odometer=request.odometer,
            trip=trip,
            fuel_added=request.fuel_added,
            total_cost=request.resolved_total_cost,
            fuel_economy=self._resolve_economy(request, trip),
        )
        stored = self._store.insert_fuel_record(record)
        _logger.debug("Added fuel record %s to vehicle %s (trip derived: %s)", stored.id, vehicle_id, derived)
        return FuelEntryResult(record=stored, predecessor=predecessor, trip_derived=derived)

    def update_fuel_record(
        self,
        record_id: str,
        data: FuelRecordInput | Mapping[str, Any],
        *,
        auto_calculate_trip: bool | None = None,
    ) -> FuelEntryResult:
        """Replace a fuel record's editable fields.

        The predecessor is resolved with the *edited* date, excluding the
        record itself, since an edit may move it within the sequence.  A
        supplied trip is always kept; otherwise the trip is re-derived when
        auto-calculation is enabled and computable, and left unchanged if not.
        Without a new ``fuel_economy`` the stored value, including a manual
        override, is kept while trip and fuel volume stay the same; a change
        to either recomputes it.
        """
        request = FuelRecordInput.model_validate(data)
        existing = self._store.get_fuel_record(record_id)
        if existing is None:
            raise FuelRecordNotFoundError(f"fuel record {record_id} not found", entity_id=record_id)
        date_ms = self._date_ms(request.date)

        predecessor = predecessor_of(
            self._store.list_fuel_records(existing.vehicle_id),
            ReferenceKey(date=date_ms, created_at=existing.created_at, record_id=existing.id),
        )
        trip, derived = self._resolve_trip(
            request,
            predecessor,
            fallback=existing.trip,
            auto=self._use_auto(auto_calculate_trip),
        )
        record = FuelRecord(
            id=existing.id,
            vehicle_id=existing.vehicle_id,
            created_at=existing.created_at,
            date=date_ms,
            odometer=request.odometer,
            trip=trip,
            fuel_added=request.fuel_added,
            total_cost=request.resolved_total_cost,
            fuel_economy=self._resolve_economy(request, trip, existing),
        )
        stored = self._store.update_fuel_record(record)
        _logger.debug("Updated fuel record %s (trip derived: %s)", record_id, derived)
        return FuelEntryResult(record=stored, predecessor=predecessor, trip_derived=derived)

    def delete_fuel_record(self, record_id: str) -> FuelRecord:
        return self._store.delete_fuel_record(record_id)

    def list_fuel_records(self, vehicle_id: str, *, newest_first: bool = True) -> list[FuelRecord]:
        """A vehicle's records in ordering-key order (empty for unknown vehicles)."""
        return sort_records(self._store.list_fuel_records(vehicle_id), newest_first=newest_first)

    @staticmethod
    def _resolve_trip(
        request: FuelRecordInput,
        predecessor: FuelRecord | None,
        *,
        fallback: float,
        auto: bool,
    ) -> tuple[float, bool]:
        if request.trip is not None:
            return request.trip, False
        if auto:
            derived = derive_trip(request.odometer, predecessor)
            if derived is not None:
                return derived, True
        return fallback, False

    @staticmethod
    def _resolve_economy(request: FuelRecordInput, trip: float, existing: FuelRecord | None = None) -> float:
        if request.fuel_economy is not None:
            return request.fuel_economy
        if existing is not None and existing.trip == trip and existing.fuel_added == request.fuel_added:
            return existing.fuel_economy
        economy = derive_fuel_economy(request.fuel_added, trip)
        return economy if economy is not None else 0.0

    # ------------------------------------------------------------------
    # Trip auto-fill
    # ------------------------------------------------------------------

    def _reference(self, vehicle_id: str, day: dt.date | None, record_id: str | None) -> ReferenceKey | None:
        """Reference key for an entry form; ``None`` means a new record appended last."""
        if record_id is None:
            return None if day is None else ReferenceKey(date=self._date_ms(day))
        existing = self._store.get_fuel_record(record_id)
        if existing is None or existing.vehicle_id != vehicle_id:
            raise FuelRecordNotFoundError(f"fuel record {record_id} not found", entity_id=record_id)
        date_ms = existing.date if day is None else self._date_ms(day)
        return ReferenceKey(date=date_ms, created_at=existing.created_at, record_id=existing.id)

    def resolve_predecessor(
        self,
        vehicle_id: str,
        reference: FuelRecord | ReferenceKey | dt.date,
    ) -> FuelRecord | None:
        """Record preceding *reference* among the vehicle's current records.

        A calendar date stands for a new record on that day and is resolved
        in the configured time zone, like the dates of stored records.
        """
        if isinstance(reference, dt.date):
            reference = ReferenceKey(date=self._date_ms(reference))
        return predecessor_of(
            self._store.list_fuel_records(vehicle_id),
            reference,
            new_record_position=self._config.new_record_position,
        )

    def can_calculate_trip(
        self,
        vehicle_id: str,
        odometer: float | None,
        *,
        date: dt.date | None = None,
        record_id: str | None = None,
    ) -> bool:
        """Whether trip auto-fill is available for an entry or edit form."""
        records = self._store.list_fuel_records(vehicle_id)
        reference = self._reference(vehicle_id, date, record_id)
        if reference is None:
            return odometer is not None and bool(records)
        return can_calculate_trip(
            records,
            reference,
            odometer,
            new_record_position=self._config.new_record_position,
        )

    def suggest_trip(
        self,
        vehicle_id: str,
        odometer: float,
        *,
        date: dt.date | None = None,
        record_id: str | None = None,
    ) -> float | None:
        """Trip distance from the previous odometer reading, or ``None``.

        Without a date or record id, the entry is taken to be a new record
        following every existing one.
        """
        reference = self._reference(vehicle_id, date, record_id)
        if reference is None:
            predecessor = latest_record(self._store.list_fuel_records(vehicle_id))
        else:
            predecessor = self.resolve_predecessor(vehicle_id, reference)
        return derive_trip(odometer, predecessor)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def compute_stats(self, vehicle_id: str) -> VehicleWithStats | None:
        """Vehicle with freshly computed stats, or ``None`` if it does not exist."""
        snapshot = self._store.vehicle_snapshot(vehicle_id)
        if snapshot.vehicle is None:
            return None
        return build_vehicle_with_stats(
            snapshot.vehicle,
            snapshot.records,
            tz=self._config.zone,
            warn_on_invariant_violation=self._config.warn_on_invariant_violation,
        )

    def compute_stats_for_all(self) -> list[VehicleWithStats]:
        """Every vehicle with its stats, newest vehicle first."""
        snapshot = self._store.snapshot()
        views = [
            build_vehicle_with_stats(
                vehicle,
                snapshot.records.get(vehicle.id, ()),
                tz=self._config.zone,
                warn_on_invariant_violation=self._config.warn_on_invariant_violation,
            )
            for vehicle in snapshot.vehicles
        ]
        return sorted(views, key=lambda view: (view.vehicle.created_at, view.vehicle.id), reverse=True)

    def record_date(self, record: FuelRecord) -> dt.date:
        """Calendar date of a record in the configured time zone."""
        return calendar_date(record.date, self._config.zone)

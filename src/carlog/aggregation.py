"""Statistics aggregation engine.

Pure functions over a snapshot of one vehicle's fuel records:

* :func:`aggregate` computes the vehicle-level :class:`VehicleStats`;
* :func:`derive_trip` and :func:`derive_fuel_economy` fill in per-record
  trip distance and economy from the ordering predecessor.

Nothing here holds state or mutates its input, so every function is safe
to call concurrently from any number of readers.  Values that cannot be
computed come back as ``None`` (per-record derivation) or as the zero
defaults of :class:`VehicleStats` (aggregates); no function raises for
empty or degenerate input.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, tzinfo

from carlog._time import calendar_date
from carlog.models.fuel import FuelRecord
from carlog.models.stats import VehicleStats, VehicleWithStats
from carlog.models.vehicle import Vehicle
from carlog.ordering import NewRecordPosition, ReferenceKey, find_duplicate_keys, predecessor_of

_logger = logging.getLogger(__name__)


def month_span(first_ms: int, last_ms: int, tz: tzinfo = UTC) -> int:
    """Number of calendar months touched by ``[first_ms, last_ms]``.

    Both ends count, so two dates in the same month span 1.
    """
    first = calendar_date(first_ms, tz)
    last = calendar_date(last_ms, tz)
    return (last.year - first.year) * 12 + (last.month - first.month) + 1


def aggregate(records: Sequence[FuelRecord], *, tz: tzinfo = UTC) -> VehicleStats:
    """Compute vehicle-level statistics from *records*.

    Input order does not matter.  An empty sequence yields
    ``VehicleStats()`` without performing any division.
    """
    count = len(records)
    if count == 0:
        return VehicleStats()

    total_fuel = sum(record.fuel_added for record in records)
    total_spent = sum(record.total_cost for record in records)
    first_date = min(record.date for record in records)
    last_date = max(record.date for record in records)
    span = month_span(first_date, last_date, tz)

    return VehicleStats(
        latest_odometer=max(record.odometer for record in records),
        average_fuel_economy=sum(record.fuel_economy for record in records) / count,
        total_fuel_added=total_fuel,
        total_spent=total_spent,
        refuel_count=count,
        refuel_per_month=count / span,
        avg_fuel_per_refuel=total_fuel / count,
        avg_spent_per_refuel=total_spent / count,
        first_refuel_date=first_date,
        last_refuel_date=last_date,
    )


def derive_trip(candidate_odometer: float, predecessor: FuelRecord | None) -> float | None:
    """Distance driven since *predecessor*, or ``None`` when not computable.

    Not computable means there is no predecessor, or its odometer reading
    is ahead of the candidate's.  Callers fall back to manual entry.
    """
    if predecessor is None:
        return None
    if predecessor.odometer > candidate_odometer:
        return None
    return candidate_odometer - predecessor.odometer


def derive_fuel_economy(fuel_added: float, trip: float | None) -> float | None:
    """``fuel_added / trip`` when the trip is positive, else ``None``."""
    if trip is None or trip <= 0:
        return None
    return fuel_added / trip


def can_calculate_trip(
    records: Sequence[FuelRecord],
    reference: FuelRecord | ReferenceKey,
    odometer: float | None,
    *,
    new_record_position: NewRecordPosition = NewRecordPosition.AFTER,
) -> bool:
    """Whether trip auto-fill is available for an entry form.

    Requires an odometer reading and a predecessor for *reference*
    other than the record itself.  A new record dated before every
    existing one has no predecessor, and neither does a same-day entry
    under ``NewRecordPosition.BEFORE`` when that day opens the log.
    """
    if odometer is None or not records:
        return False
    return predecessor_of(records, reference, new_record_position=new_record_position) is not None


def check_invariants(vehicle_id: str, records: Iterable[FuelRecord]) -> list[str]:
    """Describe invariant violations in a vehicle's record set.

    Violations are reported, never corrected: the aggregate is still
    computed from whatever records exist.
    """
    snapshot = list(records)
    problems: list[str] = []
    foreign = sorted({record.vehicle_id for record in snapshot if record.vehicle_id != vehicle_id})
    if foreign:
        problems.append(f"records owned by other vehicles: {', '.join(foreign)}")
    for date, created_at in find_duplicate_keys(snapshot):
        problems.append(f"duplicate ordering key date={date} created_at={created_at}")
    return problems


def build_vehicle_with_stats(
    vehicle: Vehicle,
    records: Sequence[FuelRecord],
    *,
    tz: tzinfo = UTC,
    warn_on_invariant_violation: bool = True,
) -> VehicleWithStats:
    """Materialize the read-only view for *vehicle*."""
    if warn_on_invariant_violation:
        for problem in check_invariants(vehicle.id, records):
            _logger.warning("Invariant violation for vehicle %s: %s", vehicle.id, problem)
    return VehicleWithStats(vehicle=vehicle, stats=aggregate(records, tz=tz))

"""Derived statistics models.

Nothing here is ever stored.  Both models are materialized from the
live record set each time they are read.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from carlog.models.vehicle import Vehicle


class VehicleStats(BaseModel):
    """Aggregates over one vehicle's fuel records.

    Every field defaults to zero (or ``None`` for the date bounds), which
    is exactly the value reported for a vehicle without records.
    """

    model_config = ConfigDict(frozen=True)

    latest_odometer: float = 0.0
    average_fuel_economy: float = 0.0
    total_fuel_added: float = 0.0
    total_spent: float = 0.0
    refuel_count: int = 0
    refuel_per_month: float = 0.0
    avg_fuel_per_refuel: float = 0.0
    avg_spent_per_refuel: float = 0.0
    first_refuel_date: int | None = None
    """Earliest record date (epoch ms)."""
    last_refuel_date: int | None = None
    """Latest record date (epoch ms)."""


class VehicleWithStats(BaseModel):
    """Read-only view combining a vehicle with its current stats."""

    model_config = ConfigDict(frozen=True)

    vehicle: Vehicle
    stats: VehicleStats

    @property
    def vehicle_id(self) -> str:
        return self.vehicle.id

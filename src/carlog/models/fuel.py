"""Fuel record model."""

from __future__ import annotations

from pydantic import Field

from carlog._time import now_ms
from carlog.models._base import CarLogBaseModel, EpochMillis, new_id


class FuelRecord(CarLogBaseModel):
    """A single refueling event tied to one vehicle.

    Parameters
    ----------
    id : str
        Opaque unique id.
    vehicle_id : str
        Owning vehicle.
    date : int
        Purchase date as epoch ms at midnight of the purchase day.
    created_at : int
        Insertion timestamp (epoch ms).  The store stamps it on insert and
        guarantees it is strictly increasing, so it breaks ties between
        records sharing a ``date``.  Never displayed.
    odometer : float
        Odometer reading at the fill-up.
    trip : float
        Distance since the previous fill-up, derived or user-entered.
    fuel_added : float
        Volume of fuel added.
    total_cost : float
        Amount paid.
    fuel_economy : float
        ``fuel_added / trip`` or a user override; ``0.0`` when it could
        not be computed.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    vehicle_id: str = Field(min_length=1)
    date: EpochMillis
    created_at: EpochMillis = Field(default_factory=now_ms)
    odometer: float = Field(ge=0)
    trip: float = Field(default=0.0, ge=0)
    fuel_added: float = Field(gt=0)
    total_cost: float = Field(ge=0)
    fuel_economy: float = Field(default=0.0, ge=0)

    @property
    def price_per_unit(self) -> float:
        """Cost per unit of fuel."""
        return self.total_cost / self.fuel_added

"""Vehicle model."""

from __future__ import annotations

from pydantic import Field, field_validator

from carlog._time import now_ms
from carlog.models._base import CarLogBaseModel, EpochMillis, new_id


class Vehicle(CarLogBaseModel):
    """A registered vehicle.

    A vehicle owns its fuel records: deleting it deletes all of them.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    """Opaque unique id."""
    name: str
    """Display name."""
    manufacturer: str
    model: str
    year: int
    license_plate: str = ""
    vin: str | None = None
    """Vehicle Identification Number, when known."""
    created_at: EpochMillis = Field(default_factory=now_ms)
    """Creation timestamp (epoch ms); vehicle lists sort on it, newest first."""

    @field_validator("vin")
    @classmethod
    def _blank_vin_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        vin = value.strip().upper()
        return vin or None

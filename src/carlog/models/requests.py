"""Pydantic request models for logbook entrypoints.

These models provide a consistent "validate -> normalize -> execute" flow
for vehicle and fuel entry.  They are used by
:class:`carlog.logbook.FuelLogbook`; invalid input surfaces as a
``pydantic.ValidationError`` before anything reaches the store.
"""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_MIN_MODEL_YEAR = 1886


class _Request(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )


class VehicleInput(_Request):
    """Fields entered when adding or editing a vehicle."""

    name: str
    manufacturer: str
    model: str
    year: int = Field(ge=_MIN_MODEL_YEAR, le=9999)
    license_plate: str = ""
    vin: str | None = None

    @field_validator("name", "manufacturer", "model")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must be non-empty")
        return value


class FuelRecordInput(_Request):
    """Fields entered when adding or editing a fuel record.

    ``trip`` left as ``None`` asks for it to be derived from the previous
    record when auto-calculation is enabled.  ``total_cost`` may be given
    directly or computed from ``price_per_unit``.  ``fuel_economy`` is an
    optional user override.
    """

    date: dt.date
    odometer: float = Field(ge=0)
    fuel_added: float = Field(gt=0)
    trip: float | None = Field(default=None, ge=0)
    price_per_unit: float | None = Field(default=None, ge=0)
    total_cost: float | None = Field(default=None, ge=0)
    fuel_economy: float | None = Field(default=None, ge=0)

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value: object) -> object:
        if isinstance(value, dt.datetime):
            return value.date()
        return value

    @model_validator(mode="after")
    def _require_cost(self) -> FuelRecordInput:
        if self.total_cost is None and self.price_per_unit is None:
            raise ValueError("either total_cost or price_per_unit is required")
        return self

    @property
    def resolved_total_cost(self) -> float:
        """``total_cost`` if given, else ``fuel_added * price_per_unit``."""
        if self.total_cost is not None:
            return self.total_cost
        assert self.price_per_unit is not None  # noqa: S101
        return self.fuel_added * self.price_per_unit

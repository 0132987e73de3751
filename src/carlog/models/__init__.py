"""Data models for the fuel logbook."""

from carlog.models._base import CarLogBaseModel, EpochMillis, new_id
from carlog.models.fuel import FuelRecord
from carlog.models.requests import FuelRecordInput, VehicleInput
from carlog.models.stats import VehicleStats, VehicleWithStats
from carlog.models.vehicle import Vehicle

__all__ = [
    "CarLogBaseModel",
    "EpochMillis",
    "FuelRecord",
    "FuelRecordInput",
    "Vehicle",
    "VehicleInput",
    "VehicleStats",
    "VehicleWithStats",
    "new_id",
]

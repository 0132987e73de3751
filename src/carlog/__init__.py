"""carlog - Fuel logbook with deterministic per-vehicle statistics."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("carlog")
except PackageNotFoundError:
    __version__ = "0+local"
from carlog.aggregation import aggregate, derive_fuel_economy, derive_trip, month_span
from carlog.config import CarLogConfig
from carlog.exceptions import (
    CarLogConfigError,
    CarLogError,
    FuelRecordNotFoundError,
    InvariantViolationError,
    NotFoundError,
    VehicleNotFoundError,
)
from carlog.logbook import FuelEntryResult, FuelLogbook
from carlog.models import (
    FuelRecord,
    FuelRecordInput,
    Vehicle,
    VehicleInput,
    VehicleStats,
    VehicleWithStats,
)
from carlog.ordering import NewRecordPosition, ReferenceKey, predecessor_of, sort_records
from carlog.readmodel import RefreshNotice, StatsReadModel
from carlog.state.events import ChangeEvent, ChangeKind, EntityKind
from carlog.state.store import RecordStore

__all__ = [
    "__version__",
    "CarLogConfig",
    "CarLogConfigError",
    "CarLogError",
    "ChangeEvent",
    "ChangeKind",
    "EntityKind",
    "FuelEntryResult",
    "FuelLogbook",
    "FuelRecord",
    "FuelRecordInput",
    "FuelRecordNotFoundError",
    "InvariantViolationError",
    "NewRecordPosition",
    "NotFoundError",
    "RecordStore",
    "ReferenceKey",
    "RefreshNotice",
    "StatsReadModel",
    "Vehicle",
    "VehicleInput",
    "VehicleNotFoundError",
    "VehicleStats",
    "VehicleWithStats",
    "aggregate",
    "derive_fuel_economy",
    "derive_trip",
    "month_span",
    "predecessor_of",
    "sort_records",
]

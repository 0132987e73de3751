"""Store change events.

The record store emits one :class:`ChangeEvent` per committed write.
Events carry identities only; listeners read post-write state back from
the store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityKind(StrEnum):
    VEHICLE = "vehicle"
    FUEL_RECORD = "fuel_record"


class ChangeKind(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """A committed write to the record store."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=1, description="Store-wide commit sequence number")
    vehicle_id: str = Field(..., description="Vehicle whose aggregates are affected")
    entity: EntityKind
    kind: ChangeKind
    record_id: str | None = Field(default=None, description="Fuel record id for record-level writes")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("vehicle_id")
    @classmethod
    def _vehicle_id_non_empty(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def removes_vehicle(self) -> bool:
        """Whether this event deleted the vehicle (and all its records)."""
        return self.entity == EntityKind.VEHICLE and self.kind == ChangeKind.DELETE

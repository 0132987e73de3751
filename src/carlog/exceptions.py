"""Custom exception hierarchy for carlog."""

from __future__ import annotations


class CarLogError(Exception):
    """Base exception for all carlog errors."""


class CarLogConfigError(CarLogError):
    """Invalid or missing configuration."""


class NotFoundError(CarLogError):
    """A write referenced an entity that does not exist.

    Read operations never raise this; they return ``None`` or an empty
    result instead.
    """

    def __init__(self, message: str, *, entity_id: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message)


class VehicleNotFoundError(NotFoundError):
    """No vehicle with the given id."""


class FuelRecordNotFoundError(NotFoundError):
    """No fuel record with the given id."""


class InvariantViolationError(CarLogError):
    """A write would break a store invariant.

    Covers orphaned fuel records, duplicate ids, and records being moved
    to a different vehicle on update.
    """

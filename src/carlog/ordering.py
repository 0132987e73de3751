"""Deterministic ordering of fuel records and predecessor lookup.

Records of one vehicle are totally ordered by ``(date, created_at, id)``.
``created_at`` is unique per record by construction, so the id only
matters if that invariant is ever broken; it keeps the order
deterministic anyway.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from carlog.models._base import EpochMillis
from carlog.models.fuel import FuelRecord


class NewRecordPosition(StrEnum):
    """Where an unsaved record sorts among existing records of the same date."""

    AFTER = "after"
    BEFORE = "before"


class OrderingKey(NamedTuple):
    date: int
    created_at: float
    id: str


class ReferenceKey(BaseModel):
    """A point in a vehicle's record sequence to look up a predecessor for.

    ``date`` is epoch ms, in the same calendar convention as the stored
    records.  ``created_at=None`` denotes a new, not yet inserted record.
    ``record_id`` is excluded from the candidate set, which is how an
    edited record avoids becoming its own predecessor.
    """

    model_config = ConfigDict(frozen=True)

    date: EpochMillis
    created_at: EpochMillis | None = None
    record_id: str | None = None

    @classmethod
    def for_record(cls, record: FuelRecord) -> ReferenceKey:
        return cls(date=record.date, created_at=record.created_at, record_id=record.id)


def ordering_key(record: FuelRecord) -> OrderingKey:
    return OrderingKey(record.date, record.created_at, record.id)


def sort_records(records: Iterable[FuelRecord], *, newest_first: bool = False) -> list[FuelRecord]:
    """Return *records* in ordering-key order (oldest first by default)."""
    return sorted(records, key=ordering_key, reverse=newest_first)


def latest_record(records: Iterable[FuelRecord]) -> FuelRecord | None:
    """The record with the greatest ordering key, or ``None``."""
    return max(records, key=ordering_key, default=None)


def _reference_ordering_key(reference: ReferenceKey, position: NewRecordPosition) -> OrderingKey:
    if reference.created_at is not None:
        return OrderingKey(reference.date, reference.created_at, reference.record_id or "")
    created_at = math.inf if position == NewRecordPosition.AFTER else -math.inf
    return OrderingKey(reference.date, created_at, "")


def predecessor_of(
    records: Iterable[FuelRecord],
    reference: FuelRecord | ReferenceKey,
    *,
    new_record_position: NewRecordPosition = NewRecordPosition.AFTER,
) -> FuelRecord | None:
    """Return the record immediately preceding *reference*.

    The predecessor is the candidate with the greatest ordering key that
    is strictly less than the reference key.  A reference without a
    ``created_at`` (an unsaved record) sorts after every existing record
    of the same date, or before them under ``NewRecordPosition.BEFORE``.
    """
    if isinstance(reference, FuelRecord):
        reference = ReferenceKey.for_record(reference)
    ref_key = _reference_ordering_key(reference, new_record_position)

    best: FuelRecord | None = None
    best_key: OrderingKey | None = None
    for record in records:
        if reference.record_id is not None and record.id == reference.record_id:
            continue
        key = ordering_key(record)
        if key >= ref_key:
            continue
        if best_key is None or key > best_key:
            best, best_key = record, key
    return best


def find_duplicate_keys(records: Iterable[FuelRecord]) -> list[tuple[int, int]]:
    """Return ``(date, created_at)`` pairs shared by more than one record."""
    counts = Counter((record.date, record.created_at) for record in records)
    return sorted(key for key, count in counts.items() if count > 1)

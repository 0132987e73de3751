"""Base model and shared field types for logbook entities.

Every stored entity inherits from :class:`CarLogBaseModel` which
provides:

* frozen instances, so snapshots handed to the aggregation engine can
  never be mutated by a reader;
* ``extra="forbid"`` so typos in field names fail loudly;
* whitespace stripping on string fields.

Timestamps are plain ``int`` epoch milliseconds.  :data:`EpochMillis`
also accepts ``datetime`` values and converts them; bare ``date`` values
are rejected because their instant depends on the configured time zone.
"""

from __future__ import annotations

import uuid
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from carlog._time import to_epoch_ms

EpochMillis = Annotated[int, BeforeValidator(to_epoch_ms), Field(ge=0)]
"""Annotated type for epoch-millisecond timestamps."""


def new_id() -> str:
    """Opaque unique identifier for a new entity."""
    return uuid.uuid4().hex


class CarLogBaseModel(BaseModel):
    """Base for vehicle and fuel record models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        validate_default=True,
    )

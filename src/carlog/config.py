"""Logbook configuration for carlog."""

from __future__ import annotations

import dataclasses
import os
from datetime import tzinfo
from typing import Any

from carlog._time import resolve_zone
from carlog.exceptions import CarLogConfigError
from carlog.ordering import NewRecordPosition


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class CarLogConfig:
    """Logbook configuration.

    Parameters
    ----------
    time_zone : str
        IANA time zone used to turn stored epoch timestamps into calendar
        dates (month spans, entry dates).  Must match the convention the
        store was populated with.  Defaults to ``"UTC"``.
    new_record_position : NewRecordPosition
        Where an unsaved record sorts among existing records with the same
        date when resolving its predecessor.  ``AFTER`` (default) makes the
        latest existing record of that day the predecessor.
    auto_calculate_trip : bool
        Derive trip distance from the previous odometer reading when a fuel
        entry does not supply one.
    warn_on_invariant_violation : bool
        Log a warning when recomputation finds duplicate ordering keys or
        foreign records in a vehicle's record set.
    """

    time_zone: str = "UTC"
    new_record_position: NewRecordPosition = NewRecordPosition.AFTER
    auto_calculate_trip: bool = True
    warn_on_invariant_violation: bool = True

    def __post_init__(self) -> None:
        try:
            resolve_zone(self.time_zone)
        except ValueError as exc:
            raise CarLogConfigError(str(exc)) from exc
        try:
            position = NewRecordPosition(str(self.new_record_position).strip().lower())
        except ValueError as exc:
            raise CarLogConfigError(f"invalid new_record_position: {self.new_record_position!r}") from exc
        object.__setattr__(self, "new_record_position", position)

    @property
    def zone(self) -> tzinfo:
        """The configured time zone as a ``tzinfo``."""
        return resolve_zone(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> CarLogConfig:
        """Create configuration from ``CARLOG_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        CarLogConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        time_zone = env.get("CARLOG_TIME_ZONE")
        if time_zone is not None:
            config_kwargs["time_zone"] = time_zone

        position = env.get("CARLOG_NEW_RECORD_POSITION")
        if position is not None:
            config_kwargs["new_record_position"] = position

        if "auto_calculate_trip" not in overrides:
            config_kwargs["auto_calculate_trip"] = _env_bool(env.get("CARLOG_AUTO_CALCULATE_TRIP"), True)

        if "warn_on_invariant_violation" not in overrides:
            config_kwargs["warn_on_invariant_violation"] = _env_bool(
                env.get("CARLOG_WARN_ON_INVARIANT_VIOLATION"),
                True,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

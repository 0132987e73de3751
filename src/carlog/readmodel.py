"""Reactive read model for vehicle statistics.

:class:`StatsReadModel` subscribes to the record store and, for every
change event, recomputes the affected vehicle's :class:`VehicleWithStats`
and its visible record list with a full pass over the current records.
There is no incremental maintenance: recomputation is cheap at logbook
scale and a full pass can never drift from the records.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from carlog.aggregation import build_vehicle_with_stats
from carlog.config import CarLogConfig
from carlog.models.fuel import FuelRecord
from carlog.models.stats import VehicleWithStats
from carlog.ordering import sort_records
from carlog.state.events import ChangeEvent
from carlog.state.store import RecordSource, VehicleSnapshot

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RefreshNotice:
    """Outcome of one recomputation pass for a vehicle."""

    vehicle_id: str
    view: VehicleWithStats | None
    """Fresh view, or ``None`` when the vehicle no longer exists."""
    generation: int
    """Refreshes since the vehicle (re)appeared, this one included; counting restarts after removal."""

    @property
    def removed(self) -> bool:
        return self.view is None


RefreshCallback = Callable[[RefreshNotice], None]


@dataclass(slots=True)
class _RefreshWaiter:
    vehicle_id: str
    loop: asyncio.AbstractEventLoop
    future: asyncio.Future[RefreshNotice]


def _resolve(future: asyncio.Future[RefreshNotice], notice: RefreshNotice) -> None:
    if not future.done():
        future.set_result(notice)


class StatsReadModel:
    """Eagerly recomputed per-vehicle statistics.

    Usage::

        store = RecordStore()
        read_model = StatsReadModel(store)
        read_model.subscribe(lambda notice: print(notice.view))
        ...
        read_model.close()
    """

    def __init__(self, source: RecordSource, *, config: CarLogConfig | None = None) -> None:
        self._source = source
        self._config = config or CarLogConfig()
        self._lock = threading.RLock()
        self._views: dict[str, VehicleWithStats] = {}
        self._records: dict[str, tuple[FuelRecord, ...]] = {}
        self._generations: dict[str, int] = {}
        self._applied: dict[str, int] = {}
        self._pending = 0
        self._callbacks: list[RefreshCallback] = []
        self._waiters: list[_RefreshWaiter] = []
        self._unsubscribe: Callable[[], None] | None = source.subscribe(self._on_change)
        self.refresh_all()

    def close(self) -> None:
        """Stop listening to the store and cancel pending waiters."""
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        with self._lock:
            waiters = list(self._waiters)
            self._waiters.clear()
        for waiter in waiters:
            waiter.loop.call_soon_threadsafe(waiter.future.cancel)

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------

    def _on_change(self, event: ChangeEvent) -> None:
        self.refresh(event.vehicle_id)

    def refresh(self, vehicle_id: str) -> VehicleWithStats | None:
        """Recompute one vehicle from the store; returns the new view."""
        self._begin_read()
        try:
            return self._apply(vehicle_id, self._source.vehicle_snapshot(vehicle_id))
        finally:
            self._end_read()

    def refresh_all(self) -> None:
        """Recompute every vehicle currently in the store."""
        self._begin_read()
        try:
            snapshot = self._source.snapshot()
            with self._lock:
                stale = set(self._views) - {vehicle.id for vehicle in snapshot.vehicles}
            for vehicle in snapshot.vehicles:
                self._apply(
                    vehicle.id,
                    VehicleSnapshot(vehicle, snapshot.records.get(vehicle.id, ()), snapshot.sequence),
                )
            for vehicle_id in sorted(stale):
                self._apply(vehicle_id, VehicleSnapshot(None, (), snapshot.sequence))
        finally:
            self._end_read()

    def _begin_read(self) -> None:
        with self._lock:
            self._pending += 1

    def _end_read(self) -> None:
        with self._lock:
            self._pending -= 1
            if self._pending:
                return
            # No snapshot older than a removal is still in flight.
            for vehicle_id in [v for v in self._applied if v not in self._views]:
                del self._applied[vehicle_id]

    def _apply(self, vehicle_id: str, snapshot: VehicleSnapshot) -> VehicleWithStats | None:
        with self._lock:
            # A snapshot read before a newer refresh was applied must not replace it.
            if snapshot.sequence < self._applied.get(vehicle_id, 0):
                return self._views.get(vehicle_id)
            self._applied[vehicle_id] = snapshot.sequence
            if snapshot.vehicle is None:
                view = None
                self._views.pop(vehicle_id, None)
                self._records.pop(vehicle_id, None)
            else:
                view = build_vehicle_with_stats(
                    snapshot.vehicle,
                    snapshot.records,
                    tz=self._config.zone,
                    warn_on_invariant_violation=self._config.warn_on_invariant_violation,
                )
                self._views[vehicle_id] = view
                self._records[vehicle_id] = tuple(sort_records(snapshot.records, newest_first=True))
            generation = self._generations.get(vehicle_id, 0) + 1
            if view is None:
                self._generations.pop(vehicle_id, None)
            else:
                self._generations[vehicle_id] = generation
            notice = RefreshNotice(vehicle_id=vehicle_id, view=view, generation=generation)
            callbacks = list(self._callbacks)
            matched = [w for w in self._waiters if w.vehicle_id == vehicle_id]
            self._waiters = [w for w in self._waiters if w.vehicle_id != vehicle_id]

        _logger.debug("Refreshed vehicle %s (generation %d, removed=%s)", vehicle_id, generation, notice.removed)
        for callback in callbacks:
            try:
                callback(notice)
            except Exception:
                _logger.debug("Refresh callback failed", exc_info=True)
        for waiter in matched:
            waiter.loop.call_soon_threadsafe(_resolve, waiter.future, notice)
        return view

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, vehicle_id: str) -> VehicleWithStats | None:
        with self._lock:
            return self._views.get(vehicle_id)

    def records(self, vehicle_id: str) -> tuple[FuelRecord, ...]:
        """Visible record list for a vehicle, newest first."""
        with self._lock:
            return self._records.get(vehicle_id, ())

    def all(self) -> list[VehicleWithStats]:
        """Every vehicle's view, newest vehicle first."""
        with self._lock:
            views = list(self._views.values())
        return sorted(views, key=lambda view: (view.vehicle.created_at, view.vehicle.id), reverse=True)

    def generation(self, vehicle_id: str) -> int:
        with self._lock:
            return self._generations.get(vehicle_id, 0)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: RefreshCallback) -> Callable[[], None]:
        """Call *callback* after every refresh; returns an unsubscribe callable."""
        with self._lock:
            self._callbacks.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _unsubscribe

    async def wait_for_refresh(self, vehicle_id: str, *, timeout: float | None = None) -> RefreshNotice | None:
        """Wait for the next refresh of *vehicle_id*.

        Returns ``None`` on timeout.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[RefreshNotice] = loop.create_future()
        waiter = _RefreshWaiter(vehicle_id=vehicle_id, loop=loop, future=future)
        with self._lock:
            self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            return None
        finally:
            with self._lock, contextlib.suppress(ValueError):
                self._waiters.remove(waiter)

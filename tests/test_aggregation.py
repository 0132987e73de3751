from __future__ import annotations

from datetime import date
from zoneinfo import ZoneInfo

import pytest

from carlog._time import start_of_day_ms
from carlog.aggregation import (
    aggregate,
    build_vehicle_with_stats,
    can_calculate_trip,
    check_invariants,
    derive_fuel_economy,
    derive_trip,
    month_span,
)
from carlog.models.fuel import FuelRecord
from carlog.models.stats import VehicleStats
from carlog.models.vehicle import Vehicle
from carlog.ordering import NewRecordPosition, ReferenceKey


def _day(year: int, month: int, day: int) -> int:
    return start_of_day_ms(date(year, month, day))


def _record(
    record_id: str,
    day: int,
    *,
    created_at: int = 1,
    odometer: float = 0.0,
    fuel_added: float = 40.0,
    total_cost: float = 60.0,
    fuel_economy: float = 0.0,
    vehicle_id: str = "car-1",
) -> FuelRecord:
    return FuelRecord(
        id=record_id,
        vehicle_id=vehicle_id,
        date=day,
        created_at=created_at,
        odometer=odometer,
        fuel_added=fuel_added,
        total_cost=total_cost,
        fuel_economy=fuel_economy,
    )


class TestAggregate:
    def test_empty_records_yield_zero_stats(self) -> None:
        stats = aggregate([])

        assert stats == VehicleStats()
        assert stats.refuel_count == 0
        assert stats.refuel_per_month == 0
        assert stats.first_refuel_date is None

    def test_totals_and_averages(self) -> None:
        records = [
            _record("a", _day(2025, 1, 1), created_at=1, odometer=1000, fuel_added=40, total_cost=60, fuel_economy=0),
            _record("b", _day(2025, 2, 1), created_at=2, odometer=1500, fuel_added=30, total_cost=54, fuel_economy=6),
            _record("c", _day(2025, 3, 1), created_at=3, odometer=1800, fuel_added=20, total_cost=36, fuel_economy=9),
        ]

        stats = aggregate(records)

        assert stats.refuel_count == 3
        assert stats.latest_odometer == 1800
        assert stats.total_fuel_added == pytest.approx(90)
        assert stats.total_spent == pytest.approx(150)
        assert stats.average_fuel_economy == pytest.approx(5)
        assert stats.avg_fuel_per_refuel == pytest.approx(30)
        assert stats.avg_spent_per_refuel == pytest.approx(50)
        assert stats.refuel_per_month == pytest.approx(1.0)
        assert stats.first_refuel_date == _day(2025, 1, 1)
        assert stats.last_refuel_date == _day(2025, 3, 1)

    def test_input_order_does_not_matter(self) -> None:
        records = [
            _record("a", _day(2025, 1, 1), created_at=1, odometer=1000),
            _record("b", _day(2025, 4, 1), created_at=2, odometer=1900),
            _record("c", _day(2025, 2, 1), created_at=3, odometer=1400),
        ]

        assert aggregate(records) == aggregate(list(reversed(records)))

    def test_latest_odometer_is_max_reading(self) -> None:
        # A later-dated record with a lower reading does not lower the maximum.
        records = [
            _record("a", _day(2025, 1, 1), created_at=1, odometer=5000),
            _record("b", _day(2025, 2, 1), created_at=2, odometer=4000),
        ]

        assert aggregate(records).latest_odometer == 5000

    def test_single_record_counts_one_per_month(self) -> None:
        stats = aggregate([_record("a", _day(2025, 6, 15))])

        assert stats.refuel_count == 1
        assert stats.refuel_per_month == pytest.approx(1.0)

    def test_same_month_records(self) -> None:
        records = [
            _record("a", _day(2025, 1, 5), created_at=1),
            _record("b", _day(2025, 1, 20), created_at=2),
        ]

        assert aggregate(records).refuel_per_month == pytest.approx(2.0)

    def test_refuel_rate_across_year_boundary(self) -> None:
        records = [
            _record("a", _day(2024, 11, 30), created_at=1),
            _record("b", _day(2025, 2, 1), created_at=2),
        ]

        assert aggregate(records).refuel_per_month == pytest.approx(0.5)


class TestMonthSpan:
    def test_same_month(self) -> None:
        assert month_span(_day(2025, 3, 1), _day(2025, 3, 31)) == 1

    def test_adjacent_months(self) -> None:
        assert month_span(_day(2025, 3, 31), _day(2025, 4, 1)) == 2

    def test_across_years(self) -> None:
        assert month_span(_day(2023, 12, 1), _day(2025, 1, 1)) == 14

    def test_time_zone_changes_calendar_month(self) -> None:
        # 2025-02-01T00:00Z is still January 31st in New York.
        first = _day(2025, 1, 10)
        last = _day(2025, 2, 1)

        assert month_span(first, last) == 2
        assert month_span(first, last, ZoneInfo("America/New_York")) == 1


class TestDerivation:
    def test_trip_from_predecessor(self) -> None:
        predecessor = _record("a", _day(2025, 2, 1), odometer=1500)

        assert derive_trip(1800, predecessor) == 300

    def test_trip_without_predecessor(self) -> None:
        assert derive_trip(1800, None) is None

    def test_trip_with_lower_odometer_is_not_computable(self) -> None:
        predecessor = _record("a", _day(2025, 2, 1), odometer=1500)

        assert derive_trip(1200, predecessor) is None

    def test_zero_trip_is_allowed(self) -> None:
        predecessor = _record("a", _day(2025, 2, 1), odometer=1500)

        assert derive_trip(1500, predecessor) == 0

    def test_fuel_economy(self) -> None:
        assert derive_fuel_economy(30, 300) == pytest.approx(0.1)

    @pytest.mark.parametrize("trip", [None, 0.0, -5.0])
    def test_fuel_economy_not_computable(self, trip: float | None) -> None:
        assert derive_fuel_economy(30, trip) is None


class TestCanCalculateTrip:
    def test_requires_odometer(self) -> None:
        records = [_record("a", _day(2025, 1, 1))]

        assert can_calculate_trip(records, ReferenceKey(date=_day(2025, 2, 1)), None) is False

    def test_requires_existing_records(self) -> None:
        assert can_calculate_trip([], ReferenceKey(date=_day(2025, 2, 1)), 1000) is False

    def test_new_record_with_history(self) -> None:
        records = [_record("a", _day(2025, 1, 1))]

        assert can_calculate_trip(records, ReferenceKey(date=_day(2025, 2, 1)), 1000) is True

    def test_new_record_dated_before_history(self) -> None:
        records = [_record("feb", _day(2025, 2, 1), odometer=1500)]

        assert can_calculate_trip(records, ReferenceKey(date=_day(2025, 1, 1)), 1000) is False

    def test_same_day_entry_sorted_first_has_no_predecessor(self) -> None:
        records = [_record("feb", _day(2025, 2, 1), odometer=1500)]
        reference = ReferenceKey(date=_day(2025, 2, 1))

        assert can_calculate_trip(records, reference, 1600) is True
        assert can_calculate_trip(records, reference, 1600, new_record_position=NewRecordPosition.BEFORE) is False

    def test_editing_earliest_record(self) -> None:
        first = _record("a", _day(2025, 1, 1), created_at=1)
        second = _record("b", _day(2025, 2, 1), created_at=2)

        assert can_calculate_trip([first, second], first, 900) is False
        assert can_calculate_trip([first, second], second, 1500) is True


class TestInvariantChecks:
    def test_clean_records(self) -> None:
        records = [_record("a", _day(2025, 1, 1), created_at=1), _record("b", _day(2025, 1, 1), created_at=2)]

        assert check_invariants("car-1", records) == []

    def test_reports_foreign_records_and_duplicate_keys(self) -> None:
        records = [
            _record("a", _day(2025, 1, 1), created_at=1),
            _record("b", _day(2025, 1, 1), created_at=1),
            _record("c", _day(2025, 2, 1), created_at=3, vehicle_id="car-2"),
        ]

        problems = check_invariants("car-1", records)

        assert len(problems) == 2
        assert "car-2" in problems[0]
        assert "duplicate ordering key" in problems[1]

    def test_view_is_built_and_violations_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        vehicle = Vehicle(id="car-1", name="Daily", manufacturer="Honda", model="Jazz", year=2019)
        records = [
            _record("a", _day(2025, 1, 1), created_at=1),
            _record("b", _day(2025, 1, 1), created_at=1),
        ]

        with caplog.at_level("WARNING", logger="carlog.aggregation"):
            view = build_vehicle_with_stats(vehicle, records)

        assert view.vehicle_id == "car-1"
        assert view.stats.refuel_count == 2
        assert "duplicate ordering key" in caplog.text

    def test_violation_warnings_can_be_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        vehicle = Vehicle(id="car-1", name="Daily", manufacturer="Honda", model="Jazz", year=2019)
        records = [
            _record("a", _day(2025, 1, 1), created_at=1),
            _record("b", _day(2025, 1, 1), created_at=1),
        ]

        with caplog.at_level("WARNING", logger="carlog.aggregation"):
            build_vehicle_with_stats(vehicle, records, warn_on_invariant_violation=False)

        assert caplog.text == ""

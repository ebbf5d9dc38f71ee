from __future__ import annotations

import datetime
import sys
from pathlib import Path
from typing import Optional

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from availability import pick_absence, working_hours_for  # noqa: E402
from entities import Absence  # noqa: E402
from errors import DataFetchFailure, NotFoundError  # noqa: E402
from memory_stores import MemoryStores, make_pattern  # noqa: E402

DAY = datetime.date(2024, 1, 2)
REST_DAY = datetime.date(2024, 1, 6)


def _absence(absence_id: int, start: str, end: str, created: Optional[datetime.datetime] = None) -> Absence:
    return Absence(
        id=absence_id,
        porter_id=1,
        start_date=datetime.date.fromisoformat(start),
        end_date=datetime.date.fromisoformat(end),
        absence_type="Annual Leave",
        created_at=created,
    )


def test_pick_absence_prefers_the_shortest_span() -> None:
    week = _absence(1, "2024-01-01", "2024-01-07")
    single = _absence(2, "2024-01-02", "2024-01-02")
    assert pick_absence([week, single], DAY) is single


def test_pick_absence_breaks_ties_by_newest_then_id() -> None:
    older = _absence(5, "2024-01-02", "2024-01-03", datetime.datetime(2023, 12, 1, 9, 0))
    newer = _absence(3, "2024-01-01", "2024-01-02", datetime.datetime(2023, 12, 5, 9, 0))
    assert pick_absence([older, newer], DAY) is newer

    first = _absence(7, "2024-01-02", "2024-01-02")
    second = _absence(8, "2024-01-02", "2024-01-02")
    assert pick_absence([first, second], DAY) is second


def test_pick_absence_ignores_absences_not_covering_the_date() -> None:
    assert pick_absence([_absence(1, "2024-01-03", "2024-01-05")], DAY) is None
    assert pick_absence([], DAY) is None


def test_working_hours_placeholder_without_pattern() -> None:
    assert working_hours_for(None).to_dict() == {"start": "00:00:00", "end": "00:00:00"}
    assert working_hours_for(make_pattern()).to_dict() == {"start": "08:00:00", "end": "20:00:00"}


class TestAvailabilityResolver:
    def setup_method(self) -> None:
        self.stores = MemoryStores()
        self.stores.add_pattern(make_pattern("Day", "A"))
        self.resolver = self.stores.resolver()
        self.porter = self.stores.add_porter("Alice")

    def test_working_porter_is_available(self) -> None:
        availability = self.resolver.resolve(self.porter, DAY)
        assert availability.is_working is True
        assert availability.is_available is True
        assert availability.conflict_reason is None
        assert availability.working_hours.start == "08:00:00"

    def test_rest_day_is_not_available(self) -> None:
        availability = self.resolver.resolve(self.porter, REST_DAY)
        assert availability.is_working is False
        assert availability.is_available is False
        assert availability.conflict_reason is None

    def test_absence_overrides_the_rotation(self) -> None:
        self.stores.add_absence(self.porter, DAY, DAY, "Sickness", notes="Flu")
        availability = self.resolver.resolve(self.porter, DAY)
        assert availability.is_working is True
        assert availability.is_available is False
        assert availability.conflict_reason == "Sickness - Flu"

    def test_absence_reason_without_notes(self) -> None:
        self.stores.add_absence(self.porter, datetime.date(2024, 1, 1), datetime.date(2024, 1, 14), "Annual Leave")
        for offset in range(14):
            day = datetime.date(2024, 1, 1) + datetime.timedelta(days=offset)
            availability = self.resolver.resolve(self.porter, day)
            assert availability.is_available is False
            assert availability.conflict_reason == "Annual Leave"

    def test_most_specific_absence_wins(self) -> None:
        self.stores.add_absence(self.porter, datetime.date(2024, 1, 1), datetime.date(2024, 1, 7), "Annual Leave")
        self.stores.add_absence(self.porter, DAY, DAY, "Training", notes="Manual handling")
        assert self.resolver.resolve(self.porter, DAY).conflict_reason == "Training - Manual handling"

    def test_unresolved_pattern_gives_placeholder_hours(self) -> None:
        stray = self.stores.add_porter("Stray", shift_type="Late C")
        availability = self.resolver.resolve(stray, DAY)
        assert availability.is_working is False
        assert availability.is_available is False
        assert availability.working_hours.to_dict() == {"start": "00:00:00", "end": "00:00:00"}

    def test_store_failure_degrades_to_unavailable(self, monkeypatch) -> None:
        def _boom(*_args, **_kwargs):
            raise DataFetchFailure("list absences", "database is locked")

        monkeypatch.setattr(self.stores, "list_absences", _boom)
        availability = self.resolver.resolve(self.porter, DAY)
        assert availability.is_working is False
        assert availability.is_available is False
        assert availability.conflict_reason.startswith("Error calculating availability:")
        assert "database is locked" in availability.conflict_reason

    def test_overlapping_assignments_are_attached(self) -> None:
        ward = self.stores.add_department("Ward 5")
        inside = self.stores.add_assignment(self.porter, ward, DAY, datetime.time(10, 0), datetime.time(12, 0))
        self.stores.add_assignment(self.porter, ward, DAY, datetime.time(21, 0), datetime.time(23, 0))
        availability = self.resolver.resolve(self.porter, DAY)
        assert availability.is_available is True
        assert availability.assignments == (inside,)
        assert availability.to_dict()["assignments"][0]["start_time"] == "10:00:00"

    def test_get_porter_availability(self) -> None:
        assert self.resolver.get_porter_availability(self.porter.id, "2024-01-02").is_available is True
        with pytest.raises(NotFoundError):
            self.resolver.get_porter_availability(999, DAY)

    def test_all_availabilities_keep_store_order(self) -> None:
        self.stores.add_porter("Bob", shift_offset_days=4)
        self.stores.add_porter("Ann", is_active=False)
        resolver = self.stores.resolver(max_workers=4)
        result = resolver.get_all_porter_availabilities(DAY)
        assert [(item.porter.name, item.is_available) for item in result] == [("Alice", True), ("Bob", False)]

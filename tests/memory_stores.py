"""In-memory stand-ins for the SQLAlchemy stores, used by the engine tests."""

from __future__ import annotations

import datetime
import itertools
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from availability import AvailabilityResolver  # noqa: E402
from entities import (  # noqa: E402
    Absence,
    Department,
    DepartmentSchedule,
    Porter,
    ShiftPattern,
    StaffingAlert,
    TemporaryAssignment,
)
from overview import DailyOverviewBuilder  # noqa: E402
from shift_cycle import ShiftCycleEvaluator  # noqa: E402
from staffing import StaffingAggregator  # noqa: E402

GROUND_ZERO = datetime.date(2024, 1, 1)


def make_pattern(
    shift_type: str = "Day",
    shift_ident: str = "A",
    *,
    days_on: int = 4,
    days_off: int = 4,
    start: datetime.time = datetime.time(8, 0),
    end: datetime.time = datetime.time(20, 0),
    ground_zero: datetime.date = GROUND_ZERO,
) -> ShiftPattern:
    return ShiftPattern(
        id=None,
        name=f"{shift_type} {shift_ident}",
        shift_type=shift_type,
        shift_ident=shift_ident,
        start_time=start,
        end_time=end,
        days_on=days_on,
        days_off=days_off,
        ground_zero=ground_zero,
    )


class MemoryStores:
    """Implements every store interface the engine consumes."""

    def __init__(self) -> None:
        self.patterns: Dict[Tuple[str, str], ShiftPattern] = {}
        self.porters: List[Porter] = []
        self.absences: List[Absence] = []
        self.assignments: List[TemporaryAssignment] = []
        self.departments: List[Department] = []
        self.alerts: List[StaffingAlert] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # shift patterns
    def add_pattern(self, pattern: ShiftPattern) -> ShiftPattern:
        self.patterns[(pattern.shift_type, pattern.shift_ident)] = pattern
        return pattern

    def get_shift_pattern(self, shift_type: str, shift_ident: str) -> Optional[ShiftPattern]:
        return self.patterns.get((shift_type, shift_ident))

    # porters
    def add_porter(self, name: str, shift_type: str = "Day A", **kwargs) -> Porter:
        porter = Porter(id=next(self._ids), name=name, shift_type=shift_type, **kwargs)
        self.porters.append(porter)
        return porter

    def get_porter(self, porter_id: int) -> Optional[Porter]:
        return next((porter for porter in self.porters if porter.id == porter_id), None)

    def list_porters(
        self,
        *,
        floor_staff: Optional[bool] = None,
        department_id: Optional[int] = None,
        include_floor_staff: bool = False,
        shift_prefix: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Porter]:
        result = []
        for porter in self.porters:
            if not include_inactive and not porter.is_active:
                continue
            if floor_staff is not None and porter.is_floor_staff != floor_staff:
                continue
            if department_id is not None:
                in_department = porter.regular_department_id == department_id
                if not (in_department or (include_floor_staff and porter.is_floor_staff)):
                    continue
            if shift_prefix and not porter.shift_type.startswith(shift_prefix):
                continue
            result.append(porter)
        return sorted(result, key=lambda porter: (porter.name, porter.id))

    # absences
    def add_absence(self, porter: Porter, start: datetime.date, end: datetime.date, absence_type: str, **kwargs) -> Absence:
        absence = Absence(
            id=next(self._ids),
            porter_id=porter.id,
            start_date=start,
            end_date=end,
            absence_type=absence_type,
            **kwargs,
        )
        self.absences.append(absence)
        return absence

    def list_absences(self, porter_id: int, start_date: datetime.date, end_date: datetime.date) -> List[Absence]:
        return [
            absence
            for absence in self.absences
            if absence.porter_id == porter_id and absence.start_date <= end_date and absence.end_date >= start_date
        ]

    # temporary assignments
    def add_assignment(
        self,
        porter: Porter,
        department: Department,
        day: datetime.date,
        start: datetime.time,
        end: datetime.time,
        assignment_type: str = "Relief Cover",
    ) -> TemporaryAssignment:
        assignment = TemporaryAssignment(
            id=next(self._ids),
            porter_id=porter.id,
            department_id=department.id,
            assignment_date=day,
            start_time=start,
            end_time=end,
            assignment_type=assignment_type,
            porter_name=porter.name,
        )
        self.assignments.append(assignment)
        return assignment

    def list_temporary_assignments(self, department_id: int, assignment_date: datetime.date) -> List[TemporaryAssignment]:
        return [
            item
            for item in self.assignments
            if item.department_id == department_id and item.assignment_date == assignment_date
        ]

    def list_porter_assignments(self, porter_id: int, assignment_date: datetime.date) -> List[TemporaryAssignment]:
        return [
            item for item in self.assignments if item.porter_id == porter_id and item.assignment_date == assignment_date
        ]

    # departments
    def add_department(
        self,
        name: str,
        *,
        is_24_7: bool = False,
        default_porters_required: int = 0,
        schedules: Tuple[Tuple[str, datetime.time, datetime.time, int], ...] = (),
    ) -> Department:
        department_id = next(self._ids)
        rows = tuple(
            DepartmentSchedule(
                id=next(self._ids),
                department_id=department_id,
                day_of_week=day,
                opens_at=opens,
                closes_at=closes,
                porters_required=required,
            )
            for day, opens, closes, required in schedules
        )
        department = Department(
            id=department_id,
            name=name,
            is_24_7=is_24_7,
            default_porters_required=default_porters_required,
            schedules=rows,
        )
        self.departments.append(department)
        return department

    def get_department(self, department_id: int) -> Optional[Department]:
        return next((item for item in self.departments if item.id == department_id), None)

    def list_departments(self) -> List[Department]:
        return sorted(self.departments, key=lambda item: item.name)

    def list_department_schedules(self, department_id: int, day_of_week: str) -> List[DepartmentSchedule]:
        department = self.get_department(department_id)
        if department is None:
            return []
        rows = [row for row in department.schedules if row.day_of_week == day_of_week]
        return sorted(rows, key=lambda row: row.opens_at)

    def get_department_schedule(self, department_id: int, day_of_week: str) -> Optional[DepartmentSchedule]:
        rows = self.list_department_schedules(department_id, day_of_week)
        return rows[0] if rows else None

    # alerts
    def upsert_staffing_alert(self, alert: StaffingAlert) -> Tuple[StaffingAlert, bool]:
        with self._lock:
            for existing in self.alerts:
                if existing.slot_key == alert.slot_key:
                    return existing, False
            stored = StaffingAlert(
                id=next(self._ids),
                department_id=alert.department_id,
                alert_date=alert.alert_date,
                start_time=alert.start_time,
                end_time=alert.end_time,
                required_porters=alert.required_porters,
                available_porters=alert.available_porters,
                alert_type=alert.alert_type,
                department_name=alert.department_name,
            )
            self.alerts.append(stored)
            return stored, True

    def list_alerts(self, alert_date: datetime.date, *, department_id: Optional[int] = None) -> List[StaffingAlert]:
        return [
            alert
            for alert in self.alerts
            if alert.alert_date == alert_date and (department_id is None or alert.department_id == department_id)
        ]

    def delete_alert(self, alert_id: int) -> bool:
        with self._lock:
            before = len(self.alerts)
            self.alerts = [alert for alert in self.alerts if alert.id != alert_id]
            return len(self.alerts) != before

    # wiring
    def evaluator(self, max_workers: int = 1) -> ShiftCycleEvaluator:
        return ShiftCycleEvaluator(self, self, max_workers=max_workers)

    def resolver(self, max_workers: int = 1) -> AvailabilityResolver:
        return AvailabilityResolver(self.evaluator(max_workers), self, self, self, max_workers=max_workers)

    def aggregator(self, max_workers: int = 1) -> StaffingAggregator:
        return StaffingAggregator(self.resolver(max_workers), self, self, self, self, max_workers=max_workers)

    def overview(self, max_workers: int = 1) -> DailyOverviewBuilder:
        aggregator = self.aggregator(max_workers)
        return DailyOverviewBuilder(aggregator, aggregator.resolver, self, self)

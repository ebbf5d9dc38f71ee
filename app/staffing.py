"""Department staffing levels and low-staff alerts.

A department's requirement comes from its 24/7 default or the schedule row
for the weekday. Its regular porters plus all floor staff are checked for
availability. The ratio of available to required porters decides the level:

* ``>= 1.0`` (or nothing required): Adequate
* ``>= 0.5``: Low
* below that: Critical

Alerts are written per department time slot and never duplicated for the
same (department, date, slot start).
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from availability import AvailabilityResolver
from calendar_math import DateLike, day_of_week_name, parse_date
from entities import (
    ALERT_CRITICAL,
    ALERT_LOW_STAFF,
    STAFFING_ADEQUATE,
    STAFFING_CRITICAL,
    STAFFING_LOW,
    Department,
    DepartmentStaffing,
    StaffingAlert,
)
from errors import NotFoundError
from workers import fan_out

logger = logging.getLogger(__name__)

LOW_RATIO = 0.5
ADEQUATE_RATIO = 1.0
DAY_SLOT = (datetime.time(8, 0), datetime.time(20, 0))
NIGHT_SLOT = (datetime.time(20, 0), datetime.time(8, 0))
DEFAULT_SCHEDULED_SLOT = (datetime.time(8, 0), datetime.time(17, 0))

TimeSlot = Tuple[datetime.time, datetime.time]


def staffing_level(required: int, available: int) -> str:
    if required <= 0:
        return STAFFING_ADEQUATE
    ratio = available / required
    if ratio >= ADEQUATE_RATIO:
        return STAFFING_ADEQUATE
    if ratio >= LOW_RATIO:
        return STAFFING_LOW
    return STAFFING_CRITICAL


def alert_type_for(level: str) -> str:
    return ALERT_CRITICAL if level == STAFFING_CRITICAL else ALERT_LOW_STAFF


class StaffingAggregator:
    def __init__(
        self,
        resolver: AvailabilityResolver,
        department_store,
        porter_store,
        assignment_store,
        alert_store,
        *,
        max_workers: int = 1,
    ) -> None:
        self.resolver = resolver
        self.department_store = department_store
        self.porter_store = porter_store
        self.assignment_store = assignment_store
        self.alert_store = alert_store
        self.max_workers = max_workers

    def get_department(self, department_id: int) -> Department:
        department = self.department_store.get_department(department_id)
        if department is None:
            raise NotFoundError("Department", department_id)
        return department

    def required_porters(self, department: Department, target_date: DateLike) -> int:
        if department.is_24_7:
            return department.default_porters_required
        schedule = self.department_store.get_department_schedule(department.id, day_of_week_name(target_date))
        if schedule is None:
            return department.default_porters_required
        return schedule.porters_required

    def time_slots(self, department: Department, target_date: DateLike) -> List[TimeSlot]:
        if department.is_24_7:
            return [DAY_SLOT, NIGHT_SLOT]
        schedules = self.department_store.list_department_schedules(department.id, day_of_week_name(target_date))
        if not schedules:
            return [DEFAULT_SCHEDULED_SLOT]
        return [(item.opens_at, item.closes_at) for item in schedules]

    def calculate_department_staffing(self, department_id: int, target_date: DateLike) -> DepartmentStaffing:
        department = self.get_department(department_id)
        return self._staffing_for(department, parse_date(target_date))

    def _staffing_for(self, department: Department, target: datetime.date) -> DepartmentStaffing:
        required = self.required_porters(department, target)
        candidates = self.porter_store.list_porters(department_id=department.id, include_floor_staff=True)
        availabilities = self.resolver.resolve_many(candidates, target)
        available = [item for item in availabilities if item.is_available]
        assignments = self.assignment_store.list_temporary_assignments(department.id, target)
        level = staffing_level(required, len(available))
        alerts = self.alert_store.list_alerts(target, department_id=department.id)
        logger.debug(
            "Department %s on %s: %d/%d available (%s)",
            department.name,
            target,
            len(available),
            required,
            level,
        )
        return DepartmentStaffing(
            department=department,
            date=target,
            required_porters=required,
            available_porters=available,
            temporary_assignments=list(assignments),
            staffing_level=level,
            alerts=sorted(alerts, key=lambda alert: (alert.start_time, alert.id or 0)),
        )

    def staffing_for_departments(
        self,
        departments: List[Department],
        target_date: DateLike,
    ) -> List[Tuple[Department, Optional[DepartmentStaffing], Optional[str]]]:
        """Staffing per department; a failing department yields its error message instead."""
        target = parse_date(target_date)

        def _compute(department: Department):
            try:
                return department, self._staffing_for(department, target), None
            except Exception as exc:  # noqa: BLE001
                logger.exception("Staffing calculation failed for department %s on %s", department.id, target)
                return department, None, f"{department.name}: {exc}"

        return fan_out(_compute, departments, max_workers=self.max_workers)

    def generate_staffing_alerts(self, target_date: DateLike) -> List[StaffingAlert]:
        """Write alerts for every under-staffed department slot not alerted yet.

        Returns only the alerts created by this call.
        """
        target = parse_date(target_date)
        created: List[StaffingAlert] = []
        for department, staffing, _error in self.staffing_for_departments(self.department_store.list_departments(), target):
            if staffing is None:
                continue
            if staffing.staffing_level not in (STAFFING_LOW, STAFFING_CRITICAL):
                continue
            try:
                created.extend(self._create_alerts(department, staffing))
            except Exception:  # noqa: BLE001
                logger.exception("Could not write alerts for department %s on %s", department.id, target)
        if created:
            logger.info("Created %d staffing alerts for %s", len(created), target)
        return created

    def _create_alerts(self, department: Department, staffing: DepartmentStaffing) -> List[StaffingAlert]:
        created: List[StaffingAlert] = []
        alert_type = alert_type_for(staffing.staffing_level)
        for start, end in self.time_slots(department, staffing.date):
            candidate = StaffingAlert(
                id=None,
                department_id=department.id,
                alert_date=staffing.date,
                start_time=start,
                end_time=end,
                required_porters=staffing.required_porters,
                available_porters=len(staffing.available_porters),
                alert_type=alert_type,
                department_name=department.name,
            )
            stored, was_created = self.alert_store.upsert_staffing_alert(candidate)
            if was_created:
                created.append(stored)
        return created

    def get_alerts_for_date(self, target_date: DateLike) -> List[StaffingAlert]:
        alerts = self.alert_store.list_alerts(parse_date(target_date))
        # Critical before Low Staff, then chronological.
        return sorted(
            alerts,
            key=lambda alert: (alert.alert_type != ALERT_CRITICAL, alert.start_time, alert.department_id, alert.id or 0),
        )

    def delete_alert(self, alert_id: int) -> None:
        if not self.alert_store.delete_alert(alert_id):
            raise NotFoundError("Staffing alert", alert_id)

    def get_staffing_summary(self, target_date: DateLike) -> Dict[str, Any]:
        target = parse_date(target_date)
        departments = self.department_store.list_departments()
        alerts = self.alert_store.list_alerts(target)
        critical_departments = {alert.department_id for alert in alerts if alert.alert_type == ALERT_CRITICAL}
        low_departments = {
            alert.department_id for alert in alerts if alert.alert_type == ALERT_LOW_STAFF
        } - critical_departments
        critical_alerts = sum(1 for alert in alerts if alert.alert_type == ALERT_CRITICAL)
        low_alerts = sum(1 for alert in alerts if alert.alert_type == ALERT_LOW_STAFF)
        return {
            "date": target.isoformat(),
            "total_departments": len(departments),
            "departments_with_adequate_staffing": len(departments) - len(critical_departments) - len(low_departments),
            "departments_with_low_staffing": len(low_departments),
            "departments_with_critical_staffing": len(critical_departments),
            "total_alerts": critical_alerts + low_alerts,
            "critical_alerts": critical_alerts,
            "low_staff_alerts": low_alerts,
        }

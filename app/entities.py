"""Typed records the staffing engine works with.

Stores convert database rows into these before handing them to the engine, so
nothing past the store boundary sees ORM objects or loose dicts.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

PORTER_TYPES = {"Porter", "Supervisor"}
ASSIGNMENT_TYPES = {"Floor Staff", "Relief Cover"}
ALERT_LOW_STAFF = "Low Staff"
ALERT_CRITICAL = "Critical"
ALERT_TYPES = {ALERT_LOW_STAFF, ALERT_CRITICAL}
STAFFING_ADEQUATE = "Adequate"
STAFFING_LOW = "Low"
STAFFING_CRITICAL = "Critical"


def _fmt_time(value: Optional[datetime.time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%H:%M:%S")


def _fmt_date(value: Optional[datetime.date]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


@dataclass(frozen=True)
class ShiftPattern:
    id: Optional[int]
    name: str
    shift_type: str
    shift_ident: str
    start_time: datetime.time
    end_time: datetime.time
    days_on: int
    days_off: int
    ground_zero: datetime.date
    offset_days: int = 0

    @property
    def key(self) -> str:
        return f"{self.shift_type} {self.shift_ident}"

    @property
    def cycle_length(self) -> int:
        return self.days_on + self.days_off

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "shift_type": self.shift_type,
            "shift_ident": self.shift_ident,
            "start_time": _fmt_time(self.start_time),
            "end_time": _fmt_time(self.end_time),
            "days_on": self.days_on,
            "days_off": self.days_off,
            "offset_days": self.offset_days,
            "ground_zero": _fmt_date(self.ground_zero),
        }


@dataclass(frozen=True)
class Porter:
    id: Optional[int]
    name: str
    shift_type: str
    shift_offset_days: int = 0
    regular_department_id: Optional[int] = None
    is_floor_staff: bool = False
    porter_type: str = "Porter"
    guaranteed_hours: Optional[float] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "shift_type": self.shift_type,
            "shift_offset_days": self.shift_offset_days,
            "regular_department_id": self.regular_department_id,
            "is_floor_staff": self.is_floor_staff,
            "porter_type": self.porter_type,
            "guaranteed_hours": self.guaranteed_hours,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class Absence:
    id: Optional[int]
    porter_id: int
    start_date: datetime.date
    end_date: datetime.date
    absence_type: str
    start_time: Optional[datetime.time] = None
    end_time: Optional[datetime.time] = None
    notes: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    def covers(self, date_value: datetime.date) -> bool:
        return self.start_date <= date_value <= self.end_date

    @property
    def span_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def description(self) -> str:
        if self.notes:
            return f"{self.absence_type} - {self.notes}"
        return self.absence_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "porter_id": self.porter_id,
            "start_date": _fmt_date(self.start_date),
            "end_date": _fmt_date(self.end_date),
            "absence_type": self.absence_type,
            "start_time": _fmt_time(self.start_time),
            "end_time": _fmt_time(self.end_time),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class TemporaryAssignment:
    id: Optional[int]
    porter_id: int
    department_id: int
    assignment_date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    assignment_type: str
    porter_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "porter_id": self.porter_id,
            "porter_name": self.porter_name,
            "department_id": self.department_id,
            "assignment_date": _fmt_date(self.assignment_date),
            "start_time": _fmt_time(self.start_time),
            "end_time": _fmt_time(self.end_time),
            "assignment_type": self.assignment_type,
        }


@dataclass(frozen=True)
class DepartmentSchedule:
    id: Optional[int]
    department_id: int
    day_of_week: str
    opens_at: datetime.time
    closes_at: datetime.time
    porters_required: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "department_id": self.department_id,
            "day_of_week": self.day_of_week,
            "opens_at": _fmt_time(self.opens_at),
            "closes_at": _fmt_time(self.closes_at),
            "porters_required": self.porters_required,
        }


@dataclass(frozen=True)
class Department:
    id: Optional[int]
    name: str
    is_24_7: bool = False
    default_porters_required: int = 0
    schedules: Tuple[DepartmentSchedule, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_24_7": self.is_24_7,
            "default_porters_required": self.default_porters_required,
            "schedules": [schedule.to_dict() for schedule in self.schedules],
        }


@dataclass(frozen=True)
class StaffingAlert:
    id: Optional[int]
    department_id: int
    alert_date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    required_porters: int
    available_porters: int
    alert_type: str
    department_name: Optional[str] = None

    @property
    def slot_key(self) -> Tuple[int, datetime.date, datetime.time]:
        return (self.department_id, self.alert_date, self.start_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "department_id": self.department_id,
            "department_name": self.department_name,
            "alert_date": _fmt_date(self.alert_date),
            "start_time": _fmt_time(self.start_time),
            "end_time": _fmt_time(self.end_time),
            "required_porters": self.required_porters,
            "available_porters": self.available_porters,
            "alert_type": self.alert_type,
        }


@dataclass(frozen=True)
class WorkingHours:
    start: str = "00:00:00"
    end: str = "00:00:00"

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class PorterAvailability:
    porter: Porter
    is_working: bool
    is_available: bool
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    conflict_reason: Optional[str] = None
    assignments: Tuple[TemporaryAssignment, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "porter": self.porter.to_dict(),
            "isWorking": self.is_working,
            "isAvailable": self.is_available,
            "conflictReason": self.conflict_reason,
            "workingHours": self.working_hours.to_dict(),
            "assignments": [item.to_dict() for item in self.assignments],
        }


@dataclass(frozen=True)
class CycleDetails:
    is_working: bool
    cycle_day: int
    cycle_length: int
    next_change_date: Optional[datetime.date]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isWorking": self.is_working,
            "cycleDay": self.cycle_day,
            "cycleLength": self.cycle_length,
            "cyclePosition": "working" if self.is_working else "off",
            "nextChangeDate": _fmt_date(self.next_change_date),
        }


@dataclass
class DepartmentStaffing:
    department: Department
    date: datetime.date
    required_porters: int
    available_porters: List[PorterAvailability]
    temporary_assignments: List[TemporaryAssignment]
    staffing_level: str
    alerts: List[StaffingAlert]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "department": self.department.to_dict(),
            "date": _fmt_date(self.date),
            "requiredPorters": self.required_porters,
            "availablePorters": [item.to_dict() for item in self.available_porters],
            "temporaryAssignments": [item.to_dict() for item in self.temporary_assignments],
            "staffingLevel": self.staffing_level,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


@dataclass
class ShiftBucket:
    floor_staff: List[PorterAvailability] = field(default_factory=list)
    departments: List[DepartmentStaffing] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "floorStaff": [item.to_dict() for item in self.floor_staff],
            "departments": [item.to_dict() for item in self.departments],
        }


@dataclass
class DailyStaffingOverview:
    date: datetime.date
    day_shift: ShiftBucket
    night_shift: ShiftBucket
    alerts: List[StaffingAlert]
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": _fmt_date(self.date),
            "dayShift": self.day_shift.to_dict(),
            "nightShift": self.night_shift.to_dict(),
            "alerts": [alert.to_dict() for alert in self.alerts],
            "errors": list(self.errors),
        }

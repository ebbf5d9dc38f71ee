"""SQLAlchemy-backed stores feeding the staffing engine.

Each call opens its own short-lived session, so a store can be shared by the
worker threads used for bulk scans. Rows are turned into the typed records in
``entities`` before they leave the session; driver errors surface as
``DataFetchFailure``.
"""

from __future__ import annotations

import datetime
import logging
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database import (
    AbsenceRecord,
    DepartmentRecord,
    DepartmentScheduleRecord,
    PorterRecord,
    ShiftRecord,
    StaffingAlertRecord,
    TemporaryAssignmentRecord,
    delete_staffing_alert,
    get_absences_for_porter,
    get_all_departments,
    get_all_shifts,
    get_department_by_id,
    get_department_schedules,
    get_existing_alert,
    get_porters,
    get_shift_by_type,
    get_staffing_alerts,
    get_temporary_assignments,
)
from entities import (
    Absence,
    Department,
    DepartmentSchedule,
    Porter,
    ShiftPattern,
    StaffingAlert,
    TemporaryAssignment,
)
from errors import DataFetchFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def shift_from_record(record: ShiftRecord) -> ShiftPattern:
    return ShiftPattern(
        id=record.id,
        name=record.name,
        shift_type=record.shift_type,
        shift_ident=record.shift_ident,
        start_time=record.start_time,
        end_time=record.end_time,
        days_on=int(record.days_on or 0),
        days_off=int(record.days_off or 0),
        offset_days=int(record.offset_days or 0),
        ground_zero=record.ground_zero,
    )


def porter_from_record(record: PorterRecord) -> Porter:
    return Porter(
        id=record.id,
        name=record.name,
        shift_type=record.shift_type,
        shift_offset_days=int(record.shift_offset_days or 0),
        regular_department_id=record.regular_department_id,
        is_floor_staff=bool(record.is_floor_staff),
        porter_type=record.porter_type,
        guaranteed_hours=record.guaranteed_hours,
        is_active=bool(record.is_active),
    )


def schedule_from_record(record: DepartmentScheduleRecord) -> DepartmentSchedule:
    return DepartmentSchedule(
        id=record.id,
        department_id=record.department_id,
        day_of_week=record.day_of_week,
        opens_at=record.opens_at,
        closes_at=record.closes_at,
        porters_required=int(record.porters_required or 0),
    )


def department_from_record(record: DepartmentRecord) -> Department:
    return Department(
        id=record.id,
        name=record.name,
        is_24_7=bool(record.is_24_7),
        default_porters_required=int(record.default_porters_required or 0),
        schedules=tuple(schedule_from_record(item) for item in record.schedules),
    )


def absence_from_record(record: AbsenceRecord) -> Absence:
    return Absence(
        id=record.id,
        porter_id=record.porter_id,
        start_date=record.start_date,
        end_date=record.end_date,
        absence_type=record.absence_type,
        start_time=record.start_time,
        end_time=record.end_time,
        notes=record.notes,
        created_at=record.created_at,
    )


def assignment_from_record(record: TemporaryAssignmentRecord) -> TemporaryAssignment:
    return TemporaryAssignment(
        id=record.id,
        porter_id=record.porter_id,
        department_id=record.department_id,
        assignment_date=record.assignment_date,
        start_time=record.start_time,
        end_time=record.end_time,
        assignment_type=record.assignment_type,
        porter_name=record.porter.name if record.porter else None,
    )


def alert_from_record(record: StaffingAlertRecord) -> StaffingAlert:
    return StaffingAlert(
        id=record.id,
        department_id=record.department_id,
        alert_date=record.alert_date,
        start_time=record.start_time,
        end_time=record.end_time,
        required_porters=int(record.required_porters),
        available_porters=int(record.available_porters),
        alert_type=record.alert_type,
        department_name=record.department.name if record.department else None,
    )


class _SessionStore:
    def __init__(self, session_factory: Callable) -> None:
        self.session_factory = session_factory

    def _read(self, operation: str, func: Callable[..., T]) -> T:
        try:
            with self.session_factory() as session:
                return func(session)
        except SQLAlchemyError as exc:
            raise DataFetchFailure(operation, str(exc)) from exc


class ShiftPatternStore(_SessionStore):
    def get_shift_pattern(self, shift_type: str, shift_ident: str) -> Optional[ShiftPattern]:
        def _load(session):
            record = get_shift_by_type(session, shift_type, shift_ident)
            return shift_from_record(record) if record else None

        return self._read("get_shift_pattern", _load)

    def list_shift_patterns(self) -> List[ShiftPattern]:
        return self._read(
            "list_shift_patterns",
            lambda session: [shift_from_record(item) for item in get_all_shifts(session)],
        )


class PorterStore(_SessionStore):
    def get_porter(self, porter_id: int) -> Optional[Porter]:
        def _load(session):
            record = session.get(PorterRecord, porter_id)
            return porter_from_record(record) if record else None

        return self._read("get_porter", _load)

    def list_porters(
        self,
        *,
        floor_staff: Optional[bool] = None,
        department_id: Optional[int] = None,
        include_floor_staff: bool = False,
        shift_prefix: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Porter]:
        def _load(session):
            records = get_porters(
                session,
                floor_staff=floor_staff,
                department_id=department_id,
                include_floor_staff=include_floor_staff,
                shift_prefix=shift_prefix,
                include_inactive=include_inactive,
            )
            return [porter_from_record(item) for item in records]

        return self._read("list_porters", _load)


class AbsenceStore(_SessionStore):
    def list_absences(
        self,
        porter_id: int,
        start_date: datetime.date,
        end_date: datetime.date,
    ) -> List[Absence]:
        return self._read(
            "list_absences",
            lambda session: [
                absence_from_record(item)
                for item in get_absences_for_porter(session, porter_id, start_date, end_date)
            ],
        )


class AssignmentStore(_SessionStore):
    def list_temporary_assignments(self, department_id: int, assignment_date: datetime.date) -> List[TemporaryAssignment]:
        return self._read(
            "list_temporary_assignments",
            lambda session: [
                assignment_from_record(item)
                for item in get_temporary_assignments(session, assignment_date, department_id=department_id)
            ],
        )

    def list_porter_assignments(self, porter_id: int, assignment_date: datetime.date) -> List[TemporaryAssignment]:
        return self._read(
            "list_porter_assignments",
            lambda session: [
                assignment_from_record(item)
                for item in get_temporary_assignments(session, assignment_date, porter_id=porter_id)
            ],
        )


class DepartmentStore(_SessionStore):
    def get_department(self, department_id: int) -> Optional[Department]:
        def _load(session):
            record = get_department_by_id(session, department_id)
            return department_from_record(record) if record else None

        return self._read("get_department", _load)

    def list_departments(self) -> List[Department]:
        return self._read(
            "list_departments",
            lambda session: [department_from_record(item) for item in get_all_departments(session)],
        )

    def list_department_schedules(self, department_id: int, day_of_week: str) -> List[DepartmentSchedule]:
        return self._read(
            "list_department_schedules",
            lambda session: [
                schedule_from_record(item)
                for item in get_department_schedules(session, department_id, day_of_week)
            ],
        )

    def get_department_schedule(self, department_id: int, day_of_week: str) -> Optional[DepartmentSchedule]:
        schedules = self.list_department_schedules(department_id, day_of_week)
        return schedules[0] if schedules else None


class AlertStore(_SessionStore):
    def list_alerts(self, alert_date: datetime.date, *, department_id: Optional[int] = None) -> List[StaffingAlert]:
        return self._read(
            "list_alerts",
            lambda session: [
                alert_from_record(item)
                for item in get_staffing_alerts(session, alert_date, department_id=department_id)
            ],
        )

    def get_alert(self, department_id: int, alert_date: datetime.date, start_time: datetime.time) -> Optional[StaffingAlert]:
        def _load(session):
            record = get_existing_alert(session, department_id, alert_date, start_time)
            return alert_from_record(record) if record else None

        return self._read("get_alert", _load)

    def upsert_staffing_alert(self, alert: StaffingAlert) -> Tuple[StaffingAlert, bool]:
        """Insert ``alert`` unless its (department, date, start) slot is taken.

        Returns the stored alert and whether this call created it.
        """
        try:
            with self.session_factory() as session, session.begin():
                existing = get_existing_alert(session, alert.department_id, alert.alert_date, alert.start_time)
                if existing:
                    return alert_from_record(existing), False
                record = StaffingAlertRecord(
                    department_id=alert.department_id,
                    alert_date=alert.alert_date,
                    start_time=alert.start_time,
                    end_time=alert.end_time,
                    required_porters=alert.required_porters,
                    available_porters=alert.available_porters,
                    alert_type=alert.alert_type,
                )
                session.add(record)
                session.flush()
                return alert_from_record(record), True
        except IntegrityError:
            # Another writer filled the slot between our check and insert.
            logger.warning(
                "Alert slot department=%s date=%s start=%s already taken",
                alert.department_id,
                alert.alert_date,
                alert.start_time,
            )
            stored = self.get_alert(alert.department_id, alert.alert_date, alert.start_time)
            if stored is None:
                raise DataFetchFailure("upsert_staffing_alert", "slot conflict but no stored alert") from None
            return stored, False
        except SQLAlchemyError as exc:
            raise DataFetchFailure("upsert_staffing_alert", str(exc)) from exc

    def delete_alert(self, alert_id: int) -> bool:
        try:
            with self.session_factory() as session:
                return delete_staffing_alert(session, alert_id)
        except SQLAlchemyError as exc:
            raise DataFetchFailure("delete_alert", str(exc)) from exc

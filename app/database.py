from __future__ import annotations

import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, selectinload, sessionmaker
from sqlalchemy.types import Time

from calendar_math import DAY_NAMES
from config import load_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Metadata for every porter staffing table."""

    pass


class ShiftRecord(Base):
    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    shift_type: Mapped[str] = mapped_column(String(16), nullable=False)
    shift_ident: Mapped[str] = mapped_column(String(8), nullable=False)
    days_on: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    days_off: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ground_zero: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("shift_type", "shift_ident", name="uq_shift_type_ident"),)


class DepartmentRecord(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    is_24_7: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_porters_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    schedules: Mapped[List["DepartmentScheduleRecord"]] = relationship(
        back_populates="department", cascade="all, delete-orphan"
    )


class DepartmentScheduleRecord(Base):
    __tablename__ = "department_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[str] = mapped_column(String(12), nullable=False)
    opens_at: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    closes_at: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    porters_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    department: Mapped[DepartmentRecord] = relationship(back_populates="schedules")


class PorterRecord(Base):
    __tablename__ = "porters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    shift_type: Mapped[str] = mapped_column(String(40), nullable=False)
    shift_offset_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    regular_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    is_floor_staff: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    porter_type: Mapped[str] = mapped_column(String(16), nullable=False, default="Porter")
    guaranteed_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class AbsenceRecord(Base):
    __tablename__ = "absences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    porter_id: Mapped[int] = mapped_column(ForeignKey("porters.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    absence_type: Mapped[str] = mapped_column(String(40), nullable=False)
    start_time: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class TemporaryAssignmentRecord(Base):
    __tablename__ = "temporary_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    porter_id: Mapped[int] = mapped_column(ForeignKey("porters.id", ondelete="CASCADE"), nullable=False)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    assignment_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    assignment_type: Mapped[str] = mapped_column(String(24), nullable=False, default="Relief Cover")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    porter: Mapped[PorterRecord] = relationship()


class StaffingAlertRecord(Base):
    __tablename__ = "staffing_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    alert_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    required_porters: Mapped[int] = mapped_column(Integer, nullable=False)
    available_porters: Mapped[int] = mapped_column(Integer, nullable=False)
    alert_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    department: Mapped[DepartmentRecord] = relationship()

    __table_args__ = (
        UniqueConstraint("department_id", "alert_date", "start_time", name="uq_staffing_alert_slot"),
    )


def create_database_engine(database_url: Optional[str] = None, *, echo: Optional[bool] = None) -> Engine:
    if database_url is None or echo is None:
        settings = load_settings()
        database_url = database_url or settings.database_url
        echo = settings.sql_echo if echo is None else echo
    url = database_url
    connect_args = {}
    if url.startswith("sqlite"):
        # Worker threads share the pool; give writers time to wait on the file lock.
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(
        url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_database(engine: Engine) -> None:
    Base.metadata.create_all(engine)
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        columns = {row[1]: True for row in conn.execute(text("PRAGMA table_info(porters)"))}
        if "is_active" not in columns:
            conn.execute(text("ALTER TABLE porters ADD COLUMN is_active BOOLEAN NOT NULL DEFAULT 1"))
        if "guaranteed_hours" not in columns:
            conn.execute(text("ALTER TABLE porters ADD COLUMN guaranteed_hours FLOAT"))
    logger.info("Database initialised at %s", engine.url.render_as_string(hide_password=True))


def get_shift_by_type(session, shift_type: str, shift_ident: str) -> ShiftRecord | None:
    stmt = select(ShiftRecord).where(
        ShiftRecord.shift_type == shift_type,
        ShiftRecord.shift_ident == shift_ident,
    )
    return session.scalars(stmt).first()


def get_all_shifts(session) -> List[ShiftRecord]:
    stmt = select(ShiftRecord).order_by(ShiftRecord.shift_type, ShiftRecord.shift_ident)
    return list(session.scalars(stmt))


def upsert_shift(
    session,
    *,
    shift_type: str,
    shift_ident: str,
    start_time: datetime.time,
    end_time: datetime.time,
    days_on: int,
    days_off: int,
    ground_zero: datetime.date,
    offset_days: int = 0,
    name: str | None = None,
) -> ShiftRecord:
    if days_on + days_off <= 0:
        raise ValueError("days_on + days_off must be greater than zero.")
    shift = get_shift_by_type(session, shift_type, shift_ident)
    if shift is None:
        shift = ShiftRecord(shift_type=shift_type, shift_ident=shift_ident)
        session.add(shift)
    shift.name = name or f"{shift_type} {shift_ident}"
    shift.start_time = start_time
    shift.end_time = end_time
    shift.days_on = days_on
    shift.days_off = days_off
    shift.offset_days = offset_days
    shift.ground_zero = ground_zero
    session.commit()
    session.refresh(shift)
    return shift


def get_porters(
    session,
    *,
    floor_staff: Optional[bool] = None,
    department_id: Optional[int] = None,
    include_floor_staff: bool = False,
    shift_prefix: Optional[str] = None,
    include_inactive: bool = False,
) -> List[PorterRecord]:
    stmt = select(PorterRecord)
    if not include_inactive:
        stmt = stmt.where(PorterRecord.is_active.is_(True))
    if floor_staff is not None:
        stmt = stmt.where(PorterRecord.is_floor_staff.is_(floor_staff))
    if department_id is not None:
        if include_floor_staff:
            stmt = stmt.where(
                (PorterRecord.regular_department_id == department_id) | PorterRecord.is_floor_staff.is_(True)
            )
        else:
            stmt = stmt.where(PorterRecord.regular_department_id == department_id)
    if shift_prefix:
        stmt = stmt.where(PorterRecord.shift_type.like(f"{shift_prefix}%"))
    stmt = stmt.order_by(PorterRecord.name, PorterRecord.id)
    return list(session.scalars(stmt))


def add_porter(
    session,
    *,
    name: str,
    shift_type: str,
    shift_offset_days: int = 0,
    regular_department_id: Optional[int] = None,
    is_floor_staff: bool = False,
    porter_type: str = "Porter",
    guaranteed_hours: Optional[float] = None,
) -> PorterRecord:
    porter = PorterRecord(
        name=name,
        shift_type=shift_type,
        shift_offset_days=shift_offset_days,
        regular_department_id=regular_department_id,
        is_floor_staff=is_floor_staff,
        porter_type=porter_type if porter_type in {"Porter", "Supervisor"} else "Porter",
        guaranteed_hours=guaranteed_hours,
    )
    session.add(porter)
    session.commit()
    session.refresh(porter)
    return porter


def deactivate_porter(session, porter_id: int) -> PorterRecord:
    porter = session.get(PorterRecord, porter_id)
    if not porter:
        raise ValueError("Porter not found.")
    porter.is_active = False
    session.commit()
    session.refresh(porter)
    return porter


def get_department_by_id(session, department_id: int) -> DepartmentRecord | None:
    stmt = (
        select(DepartmentRecord)
        .options(selectinload(DepartmentRecord.schedules))
        .where(DepartmentRecord.id == department_id)
    )
    return session.scalars(stmt).first()


def get_all_departments(session) -> List[DepartmentRecord]:
    stmt = select(DepartmentRecord).options(selectinload(DepartmentRecord.schedules)).order_by(DepartmentRecord.name)
    return list(session.scalars(stmt))


def add_department(
    session,
    *,
    name: str,
    is_24_7: bool = False,
    default_porters_required: int = 0,
    schedules: Iterable[dict] = (),
) -> DepartmentRecord:
    department = DepartmentRecord(
        name=name,
        is_24_7=is_24_7,
        default_porters_required=max(0, int(default_porters_required)),
    )
    for entry in schedules:
        day = str(entry.get("day_of_week", "")).strip().title()
        if day not in DAY_NAMES:
            raise ValueError(f"Unknown day of week: {entry.get('day_of_week')!r}")
        department.schedules.append(
            DepartmentScheduleRecord(
                day_of_week=day,
                opens_at=entry["opens_at"],
                closes_at=entry["closes_at"],
                porters_required=max(0, int(entry.get("porters_required") or 0)),
            )
        )
    session.add(department)
    session.commit()
    session.refresh(department)
    return department


def get_department_schedules(session, department_id: int, day_of_week: str) -> List[DepartmentScheduleRecord]:
    stmt = (
        select(DepartmentScheduleRecord)
        .where(
            DepartmentScheduleRecord.department_id == department_id,
            DepartmentScheduleRecord.day_of_week == day_of_week,
        )
        .order_by(DepartmentScheduleRecord.opens_at, DepartmentScheduleRecord.id)
    )
    return list(session.scalars(stmt))


def get_absences_for_porter(
    session,
    porter_id: int,
    start_date: datetime.date,
    end_date: datetime.date,
) -> List[AbsenceRecord]:
    stmt = (
        select(AbsenceRecord)
        .where(
            AbsenceRecord.porter_id == porter_id,
            AbsenceRecord.start_date <= end_date,
            AbsenceRecord.end_date >= start_date,
        )
        .order_by(AbsenceRecord.start_date, AbsenceRecord.id)
    )
    return list(session.scalars(stmt))


def add_absence(
    session,
    *,
    porter_id: int,
    start_date: datetime.date,
    end_date: datetime.date,
    absence_type: str,
    start_time: Optional[datetime.time] = None,
    end_time: Optional[datetime.time] = None,
    notes: Optional[str] = None,
) -> AbsenceRecord:
    if end_date < start_date:
        raise ValueError("Absence end_date must not precede start_date.")
    absence = AbsenceRecord(
        porter_id=porter_id,
        start_date=start_date,
        end_date=end_date,
        absence_type=absence_type,
        start_time=start_time,
        end_time=end_time,
        notes=notes or None,
    )
    session.add(absence)
    session.commit()
    session.refresh(absence)
    return absence


def get_temporary_assignments(
    session,
    assignment_date: datetime.date,
    *,
    department_id: Optional[int] = None,
    porter_id: Optional[int] = None,
) -> List[TemporaryAssignmentRecord]:
    stmt = (
        select(TemporaryAssignmentRecord)
        .options(selectinload(TemporaryAssignmentRecord.porter))
        .where(TemporaryAssignmentRecord.assignment_date == assignment_date)
    )
    if department_id is not None:
        stmt = stmt.where(TemporaryAssignmentRecord.department_id == department_id)
    if porter_id is not None:
        stmt = stmt.where(TemporaryAssignmentRecord.porter_id == porter_id)
    stmt = stmt.order_by(TemporaryAssignmentRecord.start_time, TemporaryAssignmentRecord.id)
    return list(session.scalars(stmt))


def add_temporary_assignment(
    session,
    *,
    porter_id: int,
    department_id: int,
    assignment_date: datetime.date,
    start_time: datetime.time,
    end_time: datetime.time,
    assignment_type: str = "Relief Cover",
) -> TemporaryAssignmentRecord:
    assignment = TemporaryAssignmentRecord(
        porter_id=porter_id,
        department_id=department_id,
        assignment_date=assignment_date,
        start_time=start_time,
        end_time=end_time,
        assignment_type=assignment_type if assignment_type in {"Floor Staff", "Relief Cover"} else "Relief Cover",
    )
    session.add(assignment)
    session.commit()
    session.refresh(assignment)
    return assignment


def get_staffing_alerts(
    session,
    alert_date: datetime.date,
    *,
    department_id: Optional[int] = None,
) -> List[StaffingAlertRecord]:
    stmt = (
        select(StaffingAlertRecord)
        .options(selectinload(StaffingAlertRecord.department))
        .where(StaffingAlertRecord.alert_date == alert_date)
    )
    if department_id is not None:
        stmt = stmt.where(StaffingAlertRecord.department_id == department_id)
    stmt = stmt.order_by(StaffingAlertRecord.start_time, StaffingAlertRecord.department_id, StaffingAlertRecord.id)
    return list(session.scalars(stmt))


def get_existing_alert(
    session,
    department_id: int,
    alert_date: datetime.date,
    start_time: datetime.time,
) -> StaffingAlertRecord | None:
    stmt = select(StaffingAlertRecord).where(
        StaffingAlertRecord.department_id == department_id,
        StaffingAlertRecord.alert_date == alert_date,
        StaffingAlertRecord.start_time == start_time,
    )
    return session.scalars(stmt).first()


def delete_staffing_alert(session, alert_id: int) -> bool:
    alert = session.get(StaffingAlertRecord, alert_id)
    if not alert:
        return False
    session.delete(alert)
    session.commit()
    return True

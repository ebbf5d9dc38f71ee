from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from availability import AvailabilityResolver
from config import Settings, load_settings
from database import create_database_engine, create_session_factory, init_database
from overview import DailyOverviewBuilder
from shift_cycle import ShiftCycleEvaluator
from staffing import StaffingAggregator
from stores import (
    AbsenceStore,
    AlertStore,
    AssignmentStore,
    DepartmentStore,
    PorterStore,
    ShiftPatternStore,
)


@dataclass
class StaffingServices:
    porters: PorterStore
    departments: DepartmentStore
    evaluator: ShiftCycleEvaluator
    resolver: AvailabilityResolver
    aggregator: StaffingAggregator
    overview: DailyOverviewBuilder


def build_services(session_factory: Callable, *, max_workers: int = 1) -> StaffingServices:
    """Wire the engine components onto SQLAlchemy stores sharing ``session_factory``."""
    patterns = ShiftPatternStore(session_factory)
    porters = PorterStore(session_factory)
    absences = AbsenceStore(session_factory)
    assignments = AssignmentStore(session_factory)
    departments = DepartmentStore(session_factory)
    alerts = AlertStore(session_factory)
    evaluator = ShiftCycleEvaluator(patterns, porters, max_workers=max_workers)
    resolver = AvailabilityResolver(evaluator, absences, assignments, porters, max_workers=max_workers)
    aggregator = StaffingAggregator(resolver, departments, porters, assignments, alerts, max_workers=max_workers)
    overview = DailyOverviewBuilder(aggregator, resolver, porters, departments)
    return StaffingServices(
        porters=porters,
        departments=departments,
        evaluator=evaluator,
        resolver=resolver,
        aggregator=aggregator,
        overview=overview,
    )


def build_services_from_settings(settings: Optional[Settings] = None) -> StaffingServices:
    settings = settings or load_settings()
    engine = create_database_engine(settings.database_url, echo=settings.sql_echo)
    init_database(engine)
    return build_services(create_session_factory(engine), max_workers=settings.max_workers)

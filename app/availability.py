from __future__ import annotations

import datetime
import logging
from typing import Iterable, List, Optional, Sequence

from calendar_math import DateLike, calculate_time_overlap, format_time, parse_date
from entities import Absence, Porter, PorterAvailability, ShiftPattern, TemporaryAssignment, WorkingHours
from errors import NotFoundError
from shift_cycle import ShiftCycleEvaluator, is_working
from workers import fan_out

logger = logging.getLogger(__name__)

UNRESOLVED_HOURS = WorkingHours("00:00:00", "00:00:00")


def _absence_rank(absence: Absence):
    created = absence.created_at
    created_key = created.timestamp() if isinstance(created, datetime.datetime) else float("-inf")
    return (absence.span_days, -created_key, -(absence.id or 0))


def pick_absence(absences: Iterable[Absence], target: datetime.date) -> Optional[Absence]:
    """Most specific absence covering ``target``: shortest span, then newest, then highest id."""
    covering = [absence for absence in absences if absence.covers(target)]
    if not covering:
        return None
    return min(covering, key=_absence_rank)


def working_hours_for(pattern: Optional[ShiftPattern]) -> WorkingHours:
    if pattern is None:
        return UNRESOLVED_HOURS
    return WorkingHours(format_time(pattern.start_time), format_time(pattern.end_time))


class AvailabilityResolver:
    def __init__(
        self,
        evaluator: ShiftCycleEvaluator,
        absence_store,
        assignment_store,
        porter_store,
        *,
        max_workers: int = 1,
    ) -> None:
        self.evaluator = evaluator
        self.absence_store = absence_store
        self.assignment_store = assignment_store
        self.porter_store = porter_store
        self.max_workers = max_workers

    def resolve(self, porter: Porter, target_date: DateLike) -> PorterAvailability:
        try:
            return self._resolve(porter, parse_date(target_date))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Falling back to unavailable for porter %s on %r", porter.id, target_date)
            return PorterAvailability(
                porter=porter,
                is_working=False,
                is_available=False,
                working_hours=UNRESOLVED_HOURS,
                conflict_reason=f"Error calculating availability: {exc}",
            )

    def _resolve(self, porter: Porter, target: datetime.date) -> PorterAvailability:
        pattern = self.evaluator.find_shift_pattern(porter)
        working = pattern is not None and is_working(pattern, porter.shift_offset_days, target)
        hours = working_hours_for(pattern)

        absence = pick_absence(self.absence_store.list_absences(porter.id, target, target), target)
        if absence is not None:
            return PorterAvailability(
                porter=porter,
                is_working=working,
                is_available=False,
                working_hours=hours,
                conflict_reason=absence.description,
            )

        assignments: Sequence[TemporaryAssignment] = ()
        if working and porter.id is not None:
            assignments = tuple(
                item
                for item in self.assignment_store.list_porter_assignments(porter.id, target)
                if calculate_time_overlap(hours.start, hours.end, item.start_time, item.end_time) > 0
            )
        return PorterAvailability(
            porter=porter,
            is_working=working,
            is_available=working,
            working_hours=hours,
            assignments=tuple(assignments),
        )

    def resolve_many(self, porters: Sequence[Porter], target_date: DateLike) -> List[PorterAvailability]:
        target = parse_date(target_date)
        return fan_out(lambda porter: self.resolve(porter, target), porters, max_workers=self.max_workers)

    def get_porter_availability(self, porter_id: int, target_date: DateLike) -> PorterAvailability:
        porter = self.porter_store.get_porter(porter_id)
        if porter is None:
            raise NotFoundError("Porter", porter_id)
        return self.resolve(porter, target_date)

    def get_all_porter_availabilities(self, target_date: DateLike) -> List[PorterAvailability]:
        return self.resolve_many(self.porter_store.list_porters(), target_date)

"""Rotation arithmetic: is a porter on shift on a given civil date?

Every pattern is a repeating block of ``days_on`` working days followed by
``days_off`` rest days, counted from the pattern's ground-zero date. Each
porter slides that cycle by their own ``shift_offset_days``.
"""

from __future__ import annotations

import datetime
import logging
from typing import List, Optional, Tuple

from calendar_math import DateLike, days_between, parse_date
from entities import CycleDetails, Porter, ShiftPattern
from errors import PatternResolutionFailure
from workers import fan_out

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_DAYS = 30


def cycle_position(pattern: ShiftPattern, individual_offset_days: int, target_date: DateLike) -> Optional[int]:
    """Zero-based index into the cycle, or None when the cycle is degenerate."""
    cycle_length = pattern.days_on + pattern.days_off
    if cycle_length <= 0:
        return None
    adjusted = days_between(pattern.ground_zero, target_date) - int(individual_offset_days or 0)
    # Positive divisor: the result is in [0, cycle_length) even for negative ``adjusted``.
    return adjusted % cycle_length


def is_working(pattern: ShiftPattern, individual_offset_days: int, target_date: DateLike) -> bool:
    position = cycle_position(pattern, individual_offset_days, target_date)
    if position is None:
        return False
    return 0 <= position < pattern.days_on


def cycle_details(pattern: ShiftPattern, individual_offset_days: int, target_date: DateLike) -> CycleDetails:
    """Position of ``target_date`` in the cycle and the next date the on/off state flips."""
    target = parse_date(target_date)
    position = cycle_position(pattern, individual_offset_days, target)
    if position is None:
        return CycleDetails(is_working=False, cycle_day=0, cycle_length=0, next_change_date=None)
    working = position < pattern.days_on
    if working:
        remaining = pattern.days_on - position
        next_change = target + datetime.timedelta(days=remaining) if pattern.days_off > 0 else None
    else:
        remaining = pattern.cycle_length - position
        next_change = target + datetime.timedelta(days=remaining) if pattern.days_on > 0 else None
    return CycleDetails(
        is_working=working,
        cycle_day=position + 1,
        cycle_length=pattern.cycle_length,
        next_change_date=next_change,
    )


def parse_shift_type(shift_type: Optional[str]) -> Tuple[str, str]:
    """Split "Day A" into ("Day", "A")."""
    if not isinstance(shift_type, str):
        raise PatternResolutionFailure(shift_type, "shift type is not text")
    parts = shift_type.strip().split(" ")
    if len(parts) != 2 or not all(parts):
        raise PatternResolutionFailure(shift_type, 'expected "<Type> <Ident>", e.g. "Day A"')
    return parts[0], parts[1]


class ShiftCycleEvaluator:
    def __init__(self, pattern_store, porter_store, *, max_workers: int = 1) -> None:
        self.pattern_store = pattern_store
        self.porter_store = porter_store
        self.max_workers = max_workers

    def get_shift_pattern(self, shift_type: Optional[str]) -> ShiftPattern:
        kind, ident = parse_shift_type(shift_type)
        pattern = self.pattern_store.get_shift_pattern(kind, ident)
        if pattern is None:
            raise PatternResolutionFailure(shift_type, "no matching shift pattern")
        return pattern

    def find_shift_pattern(self, porter: Porter) -> Optional[ShiftPattern]:
        try:
            return self.get_shift_pattern(porter.shift_type)
        except PatternResolutionFailure as exc:
            logger.warning(
                "No shift pattern for porter %s (%s): %s",
                porter.id,
                porter.name,
                exc,
            )
            return None

    def is_porter_working_on_date(self, porter: Porter, target_date: DateLike) -> bool:
        pattern = self.find_shift_pattern(porter)
        if pattern is None:
            return False
        try:
            return is_working(pattern, porter.shift_offset_days, target_date)
        except ValueError as exc:
            logger.warning("Cannot evaluate porter %s on %r: %s", porter.id, target_date, exc)
            return False

    def get_cycle_details(self, porter: Porter, target_date: DateLike) -> CycleDetails:
        pattern = self.find_shift_pattern(porter)
        if pattern is None:
            return CycleDetails(is_working=False, cycle_day=0, cycle_length=0, next_change_date=None)
        return cycle_details(pattern, porter.shift_offset_days, target_date)

    def get_porters_working_on_date(self, target_date: DateLike) -> List[Porter]:
        target = parse_date(target_date)
        porters = self.porter_store.list_porters()

        def _check(porter: Porter) -> bool:
            try:
                return self.is_porter_working_on_date(porter, target)
            except Exception:  # noqa: BLE001
                logger.exception("Skipping porter %s while listing working porters for %s", porter.id, target)
                return False

        verdicts = fan_out(_check, porters, max_workers=self.max_workers)
        return [porter for porter, working in zip(porters, verdicts) if working]

    def get_next_working_day(
        self,
        porter: Porter,
        from_date: DateLike,
        max_days_to_check: int = DEFAULT_LOOKAHEAD_DAYS,
    ) -> Optional[datetime.date]:
        """First working date strictly after ``from_date`` inside the lookahead window."""
        start = parse_date(from_date)
        pattern = self.find_shift_pattern(porter)
        if pattern is None:
            return None
        for step in range(1, int(max_days_to_check) + 1):
            candidate = start + datetime.timedelta(days=step)
            if is_working(pattern, porter.shift_offset_days, candidate):
                return candidate
        return None

    def get_working_days_in_range(
        self,
        porter: Porter,
        start_date: DateLike,
        end_date: DateLike,
    ) -> List[datetime.date]:
        start = parse_date(start_date)
        end = parse_date(end_date)
        if end < start:
            return []
        pattern = self.find_shift_pattern(porter)
        if pattern is None:
            return []
        days: List[datetime.date] = []
        current = start
        while current <= end:
            if is_working(pattern, porter.shift_offset_days, current):
                days.append(current)
            current += datetime.timedelta(days=1)
        return days

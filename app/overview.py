from __future__ import annotations

import logging
from typing import List

from availability import AvailabilityResolver
from calendar_math import DateLike, parse_date
from entities import DailyStaffingOverview, PorterAvailability, ShiftBucket
from staffing import StaffingAggregator

logger = logging.getLogger(__name__)

DAY_PREFIX = "Day"
NIGHT_PREFIX = "Night"


class DailyOverviewBuilder:
    def __init__(
        self,
        aggregator: StaffingAggregator,
        resolver: AvailabilityResolver,
        porter_store,
        department_store,
    ) -> None:
        self.aggregator = aggregator
        self.resolver = resolver
        self.porter_store = porter_store
        self.department_store = department_store

    def floor_staff_for_shift(self, target_date: DateLike, prefix: str) -> List[PorterAvailability]:
        """Working floor staff whose shift text starts with ``prefix``."""
        porters = [
            porter
            for porter in self.porter_store.list_porters(floor_staff=True, shift_prefix=prefix)
            if (porter.shift_type or "").strip().startswith(prefix)
        ]
        return [item for item in self.resolver.resolve_many(porters, target_date) if item.is_working]

    def get_daily_staffing_overview(self, target_date: DateLike) -> DailyStaffingOverview:
        target = parse_date(target_date)
        day_shift = ShiftBucket(floor_staff=self.floor_staff_for_shift(target, DAY_PREFIX))
        night_shift = ShiftBucket(floor_staff=self.floor_staff_for_shift(target, NIGHT_PREFIX))
        errors: List[str] = []
        departments = self.department_store.list_departments()
        for department, staffing, error in self.aggregator.staffing_for_departments(departments, target):
            if staffing is None:
                errors.append(error or f"{department.name}: staffing unavailable")
                continue
            day_shift.departments.append(staffing)
            if department.is_24_7:
                night_shift.departments.append(staffing)
        if errors:
            logger.warning("Daily overview for %s is missing %d department(s)", target, len(errors))
        return DailyStaffingOverview(
            date=target,
            day_shift=day_shift,
            night_shift=night_shift,
            alerts=self.aggregator.get_alerts_for_date(target),
            errors=errors,
        )

from __future__ import annotations

import datetime
import sys
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from calendar_math import parse_time  # noqa: E402
from config import load_env  # noqa: E402
from database import (  # noqa: E402
    DepartmentRecord,
    PorterRecord,
    add_department,
    add_porter,
    create_database_engine,
    create_session_factory,
    init_database,
    upsert_shift,
)

GROUND_ZERO = datetime.date(2024, 1, 1)
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

SAMPLE_SHIFTS: List[Dict] = [
    {"shift_type": "Day", "shift_ident": "A", "start": "08:00", "end": "20:00", "offset": 0},
    {"shift_type": "Day", "shift_ident": "B", "start": "08:00", "end": "20:00", "offset": 4},
    {"shift_type": "Night", "shift_ident": "A", "start": "20:00", "end": "08:00", "offset": 0},
    {"shift_type": "Night", "shift_ident": "B", "start": "20:00", "end": "08:00", "offset": 4},
]

SAMPLE_DEPARTMENTS: List[Dict] = [
    {"name": "Emergency Department", "is_24_7": True, "default_porters_required": 2},
    {"name": "Main Theatres", "is_24_7": True, "default_porters_required": 2},
    {
        "name": "Outpatients",
        "is_24_7": False,
        "default_porters_required": 1,
        "schedules": [
            {"day_of_week": day, "opens_at": "08:00", "closes_at": "17:00", "porters_required": 2}
            for day in WEEKDAYS
        ],
    },
    {
        "name": "Radiology",
        "is_24_7": False,
        "default_porters_required": 1,
        "schedules": [
            {"day_of_week": day, "opens_at": "07:30", "closes_at": "19:30", "porters_required": 1}
            for day in WEEKDAYS
        ],
    },
]

SAMPLE_PORTERS: List[Dict] = [
    {"name": "Alan Price", "shift_type": "Day A", "department": "Emergency Department"},
    {"name": "Beth Carter", "shift_type": "Day B", "department": "Emergency Department"},
    {"name": "Colin Dunn", "shift_type": "Night A", "department": "Emergency Department"},
    {"name": "Dina Ellis", "shift_type": "Night B", "department": "Main Theatres"},
    {"name": "Evan Ford", "shift_type": "Day A", "department": "Main Theatres", "offset": 2},
    {"name": "Fay Grant", "shift_type": "Day B", "department": "Outpatients"},
    {"name": "Gus Hale", "shift_type": "Day A", "department": "Radiology", "porter_type": "Supervisor"},
    {"name": "Hana Irwin", "shift_type": "Day A", "floor_staff": True},
    {"name": "Ian Jones", "shift_type": "Day B", "floor_staff": True},
    {"name": "Jo Kemp", "shift_type": "Night A", "floor_staff": True},
    {"name": "Kai Lowe", "shift_type": "Night B", "floor_staff": True, "guaranteed_hours": 37.5},
]


def seed_porters(database_url: Optional[str] = None) -> None:
    load_env()
    engine = create_database_engine(database_url)
    init_database(engine)
    session_factory = create_session_factory(engine)
    created_departments = 0
    created_porters = 0
    with session_factory() as session:
        for entry in SAMPLE_SHIFTS:
            upsert_shift(
                session,
                shift_type=entry["shift_type"],
                shift_ident=entry["shift_ident"],
                start_time=parse_time(entry["start"]),
                end_time=parse_time(entry["end"]),
                days_on=4,
                days_off=4,
                ground_zero=GROUND_ZERO + datetime.timedelta(days=entry["offset"]),
            )

        department_ids: Dict[str, int] = {}
        for entry in SAMPLE_DEPARTMENTS:
            existing = session.scalars(select(DepartmentRecord).where(DepartmentRecord.name == entry["name"])).first()
            if existing:
                department_ids[entry["name"]] = existing.id
                continue
            schedules = [
                {**row, "opens_at": parse_time(row["opens_at"]), "closes_at": parse_time(row["closes_at"])}
                for row in entry.get("schedules", [])
            ]
            department = add_department(
                session,
                name=entry["name"],
                is_24_7=entry["is_24_7"],
                default_porters_required=entry["default_porters_required"],
                schedules=schedules,
            )
            department_ids[entry["name"]] = department.id
            created_departments += 1

        for entry in SAMPLE_PORTERS:
            existing = session.scalars(select(PorterRecord).where(PorterRecord.name == entry["name"])).first()
            if existing:
                continue
            add_porter(
                session,
                name=entry["name"],
                shift_type=entry["shift_type"],
                shift_offset_days=entry.get("offset", 0),
                regular_department_id=department_ids.get(entry.get("department", "")),
                is_floor_staff=bool(entry.get("floor_staff")),
                porter_type=entry.get("porter_type", "Porter"),
                guaranteed_hours=entry.get("guaranteed_hours"),
            )
            created_porters += 1
    engine.dispose()
    print(f"Seed complete. Created {created_departments} departments and {created_porters} porters.")


if __name__ == "__main__":
    seed_porters(sys.argv[1] if len(sys.argv) > 1 else None)

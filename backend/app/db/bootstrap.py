from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "academic_years": {"id", "year_code"},
    "courses": {"id", "course_code", "course_name", "credits", "semester"},
    "buildings": {"id", "name"},
    "classrooms": {"id", "name", "building_id"},
    "timetables": {
        "id",
        "class_name",
        "semester",
        "course_id",
        "academic_year_id",
        "standard_hours",
        "is_standard",
    },
    "timetable_slots": {
        "id",
        "timetable_id",
        "day_of_week",
        "time_slot",
        "room_name",
        "building_name",
        "classroom_id",
        "start_date",
        "end_date",
    },
    "teaching_standards": {"id", "class_name", "semester", "standard_hours", "source_timetable_id"},
}


def missing_schema(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    """Tables and columns of ``REQUIRED_COLUMNS`` absent from the connected database."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _ensure_slot_classroom_column() -> None:
    # Slot tables created before rooms were materialized lack the classroom link.
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "timetable_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("timetable_slots")}
        if "classroom_id" in column_names:
            return
        connection.execute(text("ALTER TABLE timetable_slots ADD COLUMN classroom_id VARCHAR(36)"))
        logger.info("Added timetable_slots.classroom_id")


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = missing_schema(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_slot_classroom_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc

from __future__ import annotations

import logging

from sqlalchemy import Connection, inspect

import campus.models  # noqa: F401
from campus.db.base import Base
from campus.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "hashed_password"},
    "departments": {"id", "external_id", "code"},
    "courses": {"id", "external_id", "department_id"},
    "lecturers": {"id", "external_id", "department_id", "version"},
    "students": {"id", "external_id", "department_id", "enrollment_year", "version"},
    "class_sessions": {
        "id",
        "external_id",
        "course_id",
        "lecturer_id",
        "day",
        "start_time",
        "end_time",
        "max_capacity",
        "enrolled_count",
        "version",
    },
    "course_assignments": {"lecturer_id", "course_id"},
    "enrollments": {"student_id", "class_session_id"},
    "external_id_sequences": {"name", "next_value", "version"},
}


def find_schema_gaps(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
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


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = find_schema_gaps(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc

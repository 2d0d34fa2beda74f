from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import SQLAlchemyError

from campus_scheduler.db.bootstrap import DEFAULT_LESSON_TYPES
from campus_scheduler.db.session import engine
from campus_scheduler.models.lesson_type import LessonType

router = APIRouter()

REQUIRED_TABLES = (
    "lesson_types",
    "groups",
    "modules",
    "module_plans",
    "time_slots",
    "schedule_items",
    "teacher_draft_items",
)


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Ready once the scheduling tables exist and the service lesson types are seeded."""
    db_ok = True
    missing_tables: list[str] = []
    missing_lesson_types: list[str] = []
    db_error: str | None = None

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            table_names = set(inspect(connection).get_table_names())
            missing_tables = [name for name in REQUIRED_TABLES if name not in table_names]
            if "lesson_types" in table_names:
                seeded = set(connection.execute(select(LessonType.code)).scalars())
                missing_lesson_types = sorted(set(DEFAULT_LESSON_TYPES) - seeded)
    except SQLAlchemyError as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    schema_ok = not missing_tables and not missing_lesson_types
    ready = db_ok and schema_ok
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": {
                "ok": db_ok,
                "schema_ok": schema_ok,
                "missing_tables": missing_tables,
                "missing_lesson_types": missing_lesson_types,
                "error": db_error,
            },
        },
    )

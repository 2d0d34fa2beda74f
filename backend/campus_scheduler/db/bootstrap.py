from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.db.base import Base
from campus_scheduler.db.session import SessionLocal, engine
from campus_scheduler.models.lesson_type import BREAK_CODE, CANCELED_CODE, RESCHEDULED_CODE, LessonType
import campus_scheduler.models  # noqa: F401

logger = logging.getLogger(__name__)

DEFAULT_LESSON_TYPES: dict[str, str] = {
    BREAK_CODE: "Break",
    CANCELED_CODE: "Canceled",
    RESCHEDULED_CODE: "Rescheduled",
}


def seed_default_lesson_types(db: Session) -> int:
    """Insert the service lesson types that have no behaviour flags. Returns the number created."""
    existing = set(db.execute(select(LessonType.code)).scalars())
    created = 0
    for code, name in DEFAULT_LESSON_TYPES.items():
        if code in existing:
            continue
        db.add(
            LessonType(
                code=code,
                name=name,
                is_active=True,
                requires_room=False,
                requires_teacher=False,
                blocks_room=False,
                blocks_teacher=False,
                count_in_plan=False,
                count_in_load=False,
                preferred_first_in_week=False,
            )
        )
        created += 1
    if created:
        db.commit()
        logger.info("DEFAULT LESSON TYPES SEEDED | created=%s", created)
    return created


def ensure_runtime_schema() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        with SessionLocal() as db:
            seed_default_lesson_types(db)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc

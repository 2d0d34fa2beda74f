from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LessonTypeChangedToRescheduled:
    schedule_item_id: int
    previous_lesson_type_id: int
    previous_room_id: int | None = None


RescheduledHandler = Callable[[Session, LessonTypeChangedToRescheduled], object]

_rescheduled_handlers: list[RescheduledHandler] = []


def on_lesson_type_changed_to_rescheduled(handler: RescheduledHandler) -> RescheduledHandler:
    if handler not in _rescheduled_handlers:
        _rescheduled_handlers.append(handler)
    return handler


def dispatch_rescheduled(db: Session, event: LessonTypeChangedToRescheduled) -> None:
    """Run post-commit handlers. A failing handler never undoes the committed change."""
    for handler in list(_rescheduled_handlers):
        try:
            handler(db, event)
        except Exception:
            db.rollback()
            logger.exception(
                "RESCHEDULE HANDLER FAILED | handler=%s | item_id=%s",
                getattr(handler, "__name__", repr(handler)),
                event.schedule_item_id,
            )

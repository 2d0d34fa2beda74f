from __future__ import annotations

import logging
from datetime import date, time, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.models.course import Group
from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.module import ModuleSequenceItem
from campus_scheduler.models.schedule import DraftStatus, ScheduleItem, TeacherDraftItem
from campus_scheduler.schemas.common import format_clock
from campus_scheduler.schemas.schedule import DraftUpsert
from campus_scheduler.services.events import LessonTypeChangedToRescheduled, on_lesson_type_changed_to_rescheduled
from campus_scheduler.services.rules import RulesService
from campus_scheduler.services.time_grid import SlotWindow, effective_slots, is_working_day, start_of_week, week_dates

logger = logging.getLogger(__name__)

RESCHEDULE_BATCH_PREFIX = "rescheduled"


def reschedule_batch_key(source_item_id: int, previous_lesson_type_id: int) -> str:
    return f"{RESCHEDULE_BATCH_PREFIX}:{source_item_id}:{previous_lesson_type_id}"


def parse_reschedule_batch_key(batch_key: str | None) -> tuple[int, int] | None:
    if not batch_key:
        return None
    parts = batch_key.split(":")
    if len(parts) != 3 or parts[0] != RESCHEDULE_BATCH_PREFIX:
        return None
    try:
        return int(parts[1]), int(parts[2])
    except ValueError:
        return None


def _predecessor_modules(db: Session, course_id: int, module_id: int) -> set[int]:
    sequence = list(
        db.execute(
            select(ModuleSequenceItem.module_id)
            .where(ModuleSequenceItem.course_id == course_id)
            .order_by(ModuleSequenceItem.order, ModuleSequenceItem.id)
        ).scalars()
    )
    if module_id not in sequence:
        return set()
    return set(sequence[: sequence.index(module_id)])


def _predecessor_end(db: Session, *, group_id: int, day: date, predecessors: set[int]) -> time | None:
    if not predecessors:
        return None
    latest: time | None = None
    for model in (ScheduleItem, TeacherDraftItem):
        ends = db.execute(
            select(model.end_time).where(
                model.group_id == group_id,
                model.date == day,
                model.module_id.in_(predecessors),
            )
        ).scalars()
        for end in ends:
            if latest is None or end > latest:
                latest = end
    return latest


def _candidate_windows(original: SlotWindow, slots: list[SlotWindow]) -> list[SlotWindow]:
    return [original, *[slot for slot in slots if slot != original]]


@on_lesson_type_changed_to_rescheduled
def create_rescheduled_copy(db: Session, event: LessonTypeChangedToRescheduled) -> TeacherDraftItem | None:
    """Place a locked replacement draft in the week after a rescheduled lesson."""
    item = db.get(ScheduleItem, event.schedule_item_id)
    if item is None:
        logger.warning("RESCHEDULE SOURCE MISSING | item_id=%s", event.schedule_item_id)
        return None
    group = db.get(Group, item.group_id)
    if group is None:
        return None

    batch_key = reschedule_batch_key(item.id, event.previous_lesson_type_id)
    duplicate = db.execute(
        select(TeacherDraftItem.id).where(TeacherDraftItem.batch_key == batch_key).limit(1)
    ).scalar_one_or_none()
    if duplicate is not None:
        logger.info("RESCHEDULE COPY EXISTS | item_id=%s | draft_id=%s", item.id, duplicate)
        return None

    previous_type = db.get(LessonType, event.previous_lesson_type_id)
    # The source row lost its room when it became RESCHEDULED.
    source_room_id = event.previous_room_id if event.previous_room_id is not None else item.room_id
    room_id = source_room_id if previous_type is not None and previous_type.requires_room else None
    windows = _candidate_windows(SlotWindow(item.start_time, item.end_time), effective_slots(db, group.course_id))
    predecessors = _predecessor_modules(db, group.course_id, item.module_id)
    rules = RulesService(db)
    target_week = start_of_week(item.date) + timedelta(days=7)

    for day in week_dates(target_week):
        if not is_working_day(db, day, group.course_id):
            continue
        earliest = _predecessor_end(db, group_id=group.id, day=day, predecessors=predecessors)
        for window in windows:
            if earliest is not None and window.start < earliest:
                continue
            candidate = DraftUpsert(
                date=day,
                start_time=format_clock(window.start),
                end_time=format_clock(window.end),
                lesson_type_id=event.previous_lesson_type_id,
                group_id=item.group_id,
                module_id=item.module_id,
                module_topic_id=item.module_topic_id,
                teacher_id=item.teacher_id,
                room_id=room_id,
                is_self_study=item.is_self_study,
                is_locked=True,
                batch_key=batch_key,
            )
            outcome = rules.validate_draft(candidate)
            if outcome.errors:
                continue
            draft = TeacherDraftItem(
                date=day,
                day_of_week=day.weekday(),
                start_time=window.start,
                end_time=window.end,
                lesson_type_id=event.previous_lesson_type_id,
                group_id=item.group_id,
                module_id=item.module_id,
                module_topic_id=item.module_topic_id,
                teacher_id=item.teacher_id,
                room_id=room_id,
                is_self_study=item.is_self_study,
                is_locked=True,
                status=DraftStatus.draft,
                batch_key=batch_key,
                validation_warnings=(
                    outcome.report.model_dump_json() if outcome.report is not None and outcome.report.issues else None
                ),
            )
            db.add(draft)
            db.commit()
            logger.info(
                "RESCHEDULE COPY CREATED | item_id=%s | draft_id=%s | date=%s | window=%s",
                item.id,
                draft.id,
                day,
                window.label,
            )
            return draft

    logger.warning("RESCHEDULE COPY NOT PLACED | item_id=%s | week_start=%s", item.id, target_week)
    return None

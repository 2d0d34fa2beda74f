from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.core.exceptions import ResourceNotFoundError, ValidationFailedError
from campus_scheduler.models.course import Group
from campus_scheduler.models.lesson_type import RESCHEDULED_CODE, LessonType
from campus_scheduler.models.schedule import ScheduleItem
from campus_scheduler.schemas.schedule import (
    ClearWeekResult,
    PlacementBase,
    ScheduleItemUpsert,
    UpsertResult,
    WeekScopeRequest,
)
from campus_scheduler.services.aggregates import affected_keys, recalc_aggregates
from campus_scheduler.services import reschedule  # noqa: F401  registers the rescheduled-copy handler
from campus_scheduler.services.events import LessonTypeChangedToRescheduled, dispatch_rescheduled
from campus_scheduler.services.rules import RulesService

logger = logging.getLogger(__name__)


def normalize_room(db: Session, payload: PlacementBase) -> PlacementBase:
    """Drop the room when the lesson type does not take one."""
    lesson_type = db.get(LessonType, payload.lesson_type_id)
    if lesson_type is not None and not lesson_type.requires_room and payload.room_id is not None:
        return payload.model_copy(update={"room_id": None})
    return payload


def apply_placement(target, payload: PlacementBase) -> None:
    target.date = payload.date
    target.day_of_week = payload.date.weekday()
    target.start_time = payload.start_clock
    target.end_time = payload.end_clock
    target.lesson_type_id = payload.lesson_type_id
    target.group_id = payload.group_id
    target.module_id = payload.module_id
    target.module_topic_id = payload.module_topic_id
    target.teacher_id = payload.teacher_id
    target.room_id = payload.room_id
    target.is_self_study = payload.is_self_study
    target.is_locked = payload.is_locked


def upsert_schedule_item(db: Session, payload: ScheduleItemUpsert) -> UpsertResult:
    payload = normalize_room(db, payload)
    existing: ScheduleItem | None = None
    if payload.id is not None:
        existing = db.get(ScheduleItem, payload.id)
        if existing is None:
            raise ResourceNotFoundError("Schedule item", payload.id)

    outcome = RulesService(db).validate_upsert(payload)
    if outcome.errors:
        logger.warning(
            "SCHEDULE UPSERT REJECTED | item_id=%s | group_id=%s | errors=%s",
            payload.id,
            payload.group_id,
            len(outcome.errors),
        )
        raise ValidationFailedError(outcome.errors, outcome.warnings)

    event: LessonTypeChangedToRescheduled | None = None
    try:
        placements = [(payload.group_id, payload.module_id, payload.teacher_id)]
        if existing is None:
            item = ScheduleItem()
            apply_placement(item, payload)
            db.add(item)
        else:
            item = existing
            placements.append((item.group_id, item.module_id, item.teacher_id))
            previous_type_id = item.lesson_type_id
            previous_room_id = item.room_id
            apply_placement(item, payload)
            if previous_type_id != payload.lesson_type_id:
                new_type = db.get(LessonType, payload.lesson_type_id)
                if new_type is not None and new_type.code.upper() == RESCHEDULED_CODE:
                    event = LessonTypeChangedToRescheduled(item.id, previous_type_id, previous_room_id)
        db.flush()
        plan_keys, load_keys = affected_keys(db, placements)
        recalc_aggregates(db, plan_keys=plan_keys, load_keys=load_keys)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("SCHEDULE UPSERT FAILED | item_id=%s", payload.id)
        raise

    logger.info("SCHEDULE ITEM SAVED | item_id=%s | created=%s", item.id, existing is None)
    if event is not None:
        dispatch_rescheduled(db, event)
    return UpsertResult(id=item.id, warnings=outcome.warnings)


def delete_schedule_item(db: Session, item_id: int) -> None:
    item = db.get(ScheduleItem, item_id)
    if item is None:
        raise ResourceNotFoundError("Schedule item", item_id)
    plan_keys, load_keys = affected_keys(db, [(item.group_id, item.module_id, item.teacher_id)])
    db.delete(item)
    db.flush()
    recalc_aggregates(db, plan_keys=plan_keys, load_keys=load_keys)
    db.commit()
    logger.info("SCHEDULE ITEM DELETED | item_id=%s", item_id)


def week_scope_query(model, scope: WeekScopeRequest):
    """Unlocked rows of ``model`` in the week, narrowed by course or group."""
    query = select(model).where(
        model.date >= scope.week_start,
        model.date < scope.week_start + timedelta(days=7),
        model.is_locked.is_(False),
    )
    if scope.group_id is not None:
        query = query.where(model.group_id == scope.group_id)
    if scope.course_id is not None:
        query = query.join(Group, Group.id == model.group_id).where(Group.course_id == scope.course_id)
    return query


def clear_schedule_week(db: Session, scope: WeekScopeRequest) -> ClearWeekResult:
    items = list(db.execute(week_scope_query(ScheduleItem, scope)).scalars())
    plan_keys, load_keys = affected_keys(db, ((item.group_id, item.module_id, item.teacher_id) for item in items))
    for item in items:
        db.delete(item)
    db.flush()
    recalc_aggregates(db, plan_keys=plan_keys, load_keys=load_keys)
    db.commit()
    logger.info(
        "SCHEDULE WEEK CLEARED | week_start=%s | course_id=%s | group_id=%s | deleted=%s",
        scope.week_start,
        scope.course_id,
        scope.group_id,
        len(items),
    )
    return ClearWeekResult(deleted=len(items))


def list_schedule(
    db: Session,
    *,
    date_from: date,
    date_to: date,
    group_id: int | None = None,
    teacher_id: int | None = None,
    room_id: int | None = None,
) -> list[ScheduleItem]:
    query = select(ScheduleItem).where(ScheduleItem.date >= date_from, ScheduleItem.date <= date_to)
    if group_id is not None:
        query = query.where(ScheduleItem.group_id == group_id)
    if teacher_id is not None:
        query = query.where(ScheduleItem.teacher_id == teacher_id)
    if room_id is not None:
        query = query.where(ScheduleItem.room_id == room_id)
    return list(db.execute(query.order_by(ScheduleItem.date, ScheduleItem.start_time, ScheduleItem.id)).scalars())


def recalc_all(db: Session) -> None:
    recalc_aggregates(db)
    db.commit()
    logger.info("AGGREGATES RECOMPUTED | scope=all")

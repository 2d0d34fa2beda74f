from __future__ import annotations

import logging
from datetime import timedelta
from time import perf_counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.schedule import DraftStatus, ScheduleItem, TeacherDraftItem
from campus_scheduler.schemas.common import format_clock
from campus_scheduler.schemas.schedule import (
    ApproveWeekRequest,
    ApproveWeekResult,
    PublishWeekRequest,
    PublishWeekResult,
    ScheduleItemUpsert,
)
from campus_scheduler.services.aggregates import affected_keys, recalc_aggregates
from campus_scheduler.services.rules import RulesService
from campus_scheduler.services.time_grid import load_calendar_exceptions, resolve_working_day

logger = logging.getLogger(__name__)


def _week_drafts(db: Session, week_start, teacher_id: int | None) -> list[TeacherDraftItem]:
    query = (
        select(TeacherDraftItem)
        .where(
            TeacherDraftItem.date >= week_start,
            TeacherDraftItem.date < week_start + timedelta(days=7),
        )
        .order_by(TeacherDraftItem.date, TeacherDraftItem.start_time, TeacherDraftItem.id)
    )
    if teacher_id is not None:
        query = query.where(TeacherDraftItem.teacher_id == teacher_id)
    return list(db.execute(query).scalars())


def publish_week(db: Session, request: PublishWeekRequest) -> PublishWeekResult:
    started = perf_counter()
    logger.info("PUBLISH WEEK START | week_start=%s | teacher_id=%s", request.week_start, request.teacher_id)
    result = PublishWeekResult()
    try:
        drafts = _week_drafts(db, request.week_start, request.teacher_id)
        calendar = load_calendar_exceptions(db, request.week_start, request.week_start + timedelta(days=7))
        rules = RulesService(db)
        published: list[TeacherDraftItem] = []

        for draft in drafts:
            lesson_type = db.get(LessonType, draft.lesson_type_id)
            room_id = draft.room_id if lesson_type is not None and lesson_type.requires_room else None
            candidate = ScheduleItemUpsert(
                date=draft.date,
                start_time=format_clock(draft.start_time),
                end_time=format_clock(draft.end_time),
                lesson_type_id=draft.lesson_type_id,
                group_id=draft.group_id,
                module_id=draft.module_id,
                module_topic_id=draft.module_topic_id,
                teacher_id=draft.teacher_id,
                room_id=room_id,
                is_locked=draft.is_locked,
                override_non_working_day=not resolve_working_day(draft.date, calendar),
            )
            outcome = rules.validate_upsert(candidate)
            if outcome.errors:
                result.skipped += 1
                result.warnings.append(
                    f"[{draft.date.isoformat()} {candidate.start_time}-{candidate.end_time}] {'; '.join(outcome.errors)}"
                )
                continue

            db.add(
                ScheduleItem(
                    date=draft.date,
                    day_of_week=draft.date.weekday(),
                    start_time=draft.start_time,
                    end_time=draft.end_time,
                    lesson_type_id=draft.lesson_type_id,
                    group_id=draft.group_id,
                    module_id=draft.module_id,
                    module_topic_id=draft.module_topic_id,
                    teacher_id=draft.teacher_id,
                    room_id=room_id,
                    is_self_study=draft.is_self_study,
                    is_locked=draft.is_locked,
                )
            )
            # Later drafts in the loop must see this item as committed.
            db.flush()
            published.append(draft)
            result.created += 1

        plan_keys, load_keys = affected_keys(
            db, ((draft.group_id, draft.module_id, draft.teacher_id) for draft in published)
        )
        for draft in published:
            db.delete(draft)
        db.flush()
        recalc_aggregates(db, plan_keys=plan_keys, load_keys=load_keys)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("PUBLISH WEEK FAILED | week_start=%s | teacher_id=%s", request.week_start, request.teacher_id)
        raise

    logger.info(
        "PUBLISH WEEK COMPLETE | week_start=%s | teacher_id=%s | created=%s | skipped=%s | wall_ms=%s",
        request.week_start,
        request.teacher_id,
        result.created,
        result.skipped,
        int((perf_counter() - started) * 1000),
    )
    return result


def approve_week(db: Session, request: ApproveWeekRequest) -> ApproveWeekResult:
    drafts = _week_drafts(db, request.week_start, request.teacher_id)
    for draft in drafts:
        draft.status = DraftStatus.published
    db.commit()
    logger.info(
        "DRAFT WEEK APPROVED | week_start=%s | teacher_id=%s | drafts=%s",
        request.week_start,
        request.teacher_id,
        len(drafts),
    )
    return ApproveWeekResult(updated=len(drafts))

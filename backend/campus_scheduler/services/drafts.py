from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.core.exceptions import LockedItemError, ResourceNotFoundError, ValidationFailedError
from campus_scheduler.models.course import Group
from campus_scheduler.models.schedule import DraftStatus, TeacherDraftItem
from campus_scheduler.schemas.schedule import (
    ClearWeekResult,
    DraftOut,
    DraftUpsert,
    RescheduleInfo,
    UpsertResult,
    WeekScopeRequest,
)
from campus_scheduler.services.reschedule import parse_reschedule_batch_key
from campus_scheduler.services.rules import RulesService
from campus_scheduler.services.schedule_service import apply_placement, normalize_room, week_scope_query

logger = logging.getLogger(__name__)


def upsert_draft(db: Session, payload: DraftUpsert) -> UpsertResult:
    payload = normalize_room(db, payload)
    existing: TeacherDraftItem | None = None
    if payload.id is not None:
        existing = db.get(TeacherDraftItem, payload.id)
        if existing is None:
            raise ResourceNotFoundError("Draft", payload.id)

    outcome = RulesService(db).validate_draft(payload)
    report = outcome.report
    if outcome.errors and not payload.ignore_validation_errors:
        logger.warning(
            "DRAFT UPSERT REJECTED | draft_id=%s | group_id=%s | errors=%s",
            payload.id,
            payload.group_id,
            len(outcome.errors),
        )
        raise ValidationFailedError(
            outcome.errors,
            outcome.warnings,
            report.model_dump(mode="json") if report is not None else None,
        )

    draft = existing or TeacherDraftItem()
    apply_placement(draft, payload)
    draft.status = DraftStatus.draft
    draft.batch_key = payload.batch_key
    draft.validation_warnings = report.model_dump_json() if report is not None and report.issues else None
    if existing is None:
        db.add(draft)
    db.commit()
    logger.info(
        "DRAFT SAVED | draft_id=%s | created=%s | forced=%s",
        draft.id,
        existing is None,
        bool(outcome.errors),
    )
    return UpsertResult(id=draft.id, warnings=outcome.warnings)


def delete_draft(db: Session, draft_id: int, *, unrestricted: bool = False) -> None:
    draft = db.get(TeacherDraftItem, draft_id)
    if draft is None:
        raise ResourceNotFoundError("Draft", draft_id)
    if draft.is_locked and not unrestricted:
        raise LockedItemError("Draft", draft_id)
    db.delete(draft)
    db.commit()
    logger.info("DRAFT DELETED | draft_id=%s | unrestricted=%s", draft_id, unrestricted)


def clear_draft_week(db: Session, scope: WeekScopeRequest) -> ClearWeekResult:
    drafts = list(db.execute(week_scope_query(TeacherDraftItem, scope)).scalars())
    for draft in drafts:
        db.delete(draft)
    db.commit()
    logger.info(
        "DRAFT WEEK CLEARED | week_start=%s | course_id=%s | group_id=%s | deleted=%s",
        scope.week_start,
        scope.course_id,
        scope.group_id,
        len(drafts),
    )
    return ClearWeekResult(deleted=len(drafts))


def to_draft_out(draft: TeacherDraftItem) -> DraftOut:
    out = DraftOut.model_validate(draft)
    parsed = parse_reschedule_batch_key(draft.batch_key)
    if parsed is not None:
        out.reschedule = RescheduleInfo(source_item_id=parsed[0], previous_lesson_type_id=parsed[1])
    return out


def list_drafts(
    db: Session,
    *,
    week_start: date,
    teacher_id: int | None = None,
    group_id: int | None = None,
    course_id: int | None = None,
) -> list[DraftOut]:
    query = select(TeacherDraftItem).where(
        TeacherDraftItem.date >= week_start,
        TeacherDraftItem.date < week_start + timedelta(days=7),
    )
    if teacher_id is not None:
        query = query.where(TeacherDraftItem.teacher_id == teacher_id)
    if group_id is not None:
        query = query.where(TeacherDraftItem.group_id == group_id)
    if course_id is not None:
        query = query.join(Group, Group.id == TeacherDraftItem.group_id).where(Group.course_id == course_id)
    query = query.order_by(TeacherDraftItem.date, TeacherDraftItem.start_time, TeacherDraftItem.id)
    return [to_draft_out(draft) for draft in db.execute(query).scalars()]

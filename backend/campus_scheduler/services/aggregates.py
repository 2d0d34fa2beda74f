from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from campus_scheduler.models.course import Group
from campus_scheduler.models.lesson_type import CANCELED_CODE, LessonType
from campus_scheduler.models.module import ModulePlan
from campus_scheduler.models.schedule import ScheduleItem
from campus_scheduler.models.teacher import TeacherCourseLoad

logger = logging.getLogger(__name__)

PlanKey = tuple[int, int]
LoadKey = tuple[int, int]


def affected_keys(
    db: Session,
    placements: Iterable[tuple[int, int, int | None]],
) -> tuple[set[PlanKey], set[LoadKey]]:
    """(course, module) and (teacher, course) keys touched by (group, module, teacher) placements."""
    plan_keys: set[PlanKey] = set()
    load_keys: set[LoadKey] = set()
    for group_id, module_id, teacher_id in placements:
        group = db.get(Group, group_id)
        if group is None:
            continue
        plan_keys.add((group.course_id, module_id))
        if teacher_id is not None:
            load_keys.add((teacher_id, group.course_id))
    return plan_keys, load_keys


def _plan_counts(db: Session) -> Counter[PlanKey]:
    statement = (
        select(Group.course_id, ScheduleItem.module_id, func.count())
        .join(Group, Group.id == ScheduleItem.group_id)
        .join(LessonType, LessonType.id == ScheduleItem.lesson_type_id)
        .where(or_(LessonType.count_in_plan.is_(True), func.upper(LessonType.code) == CANCELED_CODE))
        .group_by(Group.course_id, ScheduleItem.module_id)
    )
    return Counter({(course_id, module_id): count for course_id, module_id, count in db.execute(statement).all()})


def _load_counts(db: Session) -> Counter[LoadKey]:
    statement = (
        select(ScheduleItem.teacher_id, Group.course_id, func.count())
        .join(Group, Group.id == ScheduleItem.group_id)
        .join(LessonType, LessonType.id == ScheduleItem.lesson_type_id)
        .where(ScheduleItem.teacher_id.is_not(None), LessonType.count_in_load.is_(True))
        .group_by(ScheduleItem.teacher_id, Group.course_id)
    )
    return Counter({(teacher_id, course_id): count for teacher_id, course_id, count in db.execute(statement).all()})


def recalc_aggregates(
    db: Session,
    *,
    plan_keys: Iterable[PlanKey] | None = None,
    load_keys: Iterable[LoadKey] | None = None,
) -> None:
    """Re-derive ScheduledHours of plans and teacher loads from committed items.

    ``None`` for a key set means every row. The caller owns the transaction.
    """
    plan_counts = _plan_counts(db)
    plan_query = select(ModulePlan)
    if plan_keys is not None:
        wanted_plans = set(plan_keys)
        if not wanted_plans:
            plan_query = None
        else:
            plan_query = plan_query.where(ModulePlan.course_id.in_({course for course, _ in wanted_plans}))
    if plan_query is not None:
        for plan in db.execute(plan_query).scalars():
            if plan_keys is not None and (plan.course_id, plan.module_id) not in wanted_plans:
                continue
            plan.scheduled_hours = plan_counts[(plan.course_id, plan.module_id)]

    load_counts = _load_counts(db)
    load_query = select(TeacherCourseLoad)
    if load_keys is not None:
        wanted_loads = set(load_keys)
        if not wanted_loads:
            load_query = None
        else:
            load_query = load_query.where(TeacherCourseLoad.teacher_id.in_({teacher for teacher, _ in wanted_loads}))
    if load_query is not None:
        for load in db.execute(load_query).scalars():
            if load_keys is not None and (load.teacher_id, load.course_id) not in wanted_loads:
                continue
            load.scheduled_hours = load_counts[(load.teacher_id, load.course_id)] if load.is_active else 0

    db.flush()
    logger.debug(
        "AGGREGATES RECOMPUTED | plans=%s | loads=%s",
        "all" if plan_keys is None else len(wanted_plans),
        "all" if load_keys is None else len(wanted_loads),
    )

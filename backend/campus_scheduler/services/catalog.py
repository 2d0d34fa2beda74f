"""Reference data edited from the admin screens: lesson types, courses, groups, rooms, modules and teachers."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from campus_scheduler.core.exceptions import ResourceInUseError, ResourceNotFoundError, SchedulerError
from campus_scheduler.models.course import Course, Group
from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.module import Module, ModuleBuilding, ModuleCourse, ModuleRoom, ModuleTopic
from campus_scheduler.models.room import Building, Room
from campus_scheduler.models.schedule import ScheduleItem, TeacherDraftItem
from campus_scheduler.models.teacher import ModuleSupervisor, Teacher, TeacherCourseLoad, TeacherModule
from campus_scheduler.schemas.admin import (
    CourseUpsert,
    GroupUpsert,
    LessonTypeUpsert,
    ModuleOut,
    ModuleTopicUpsert,
    ModuleUpsert,
    RoomUpsert,
    TeacherLoadOut,
    TeacherOut,
    TeacherUpsert,
)
from campus_scheduler.services.aggregates import recalc_aggregates

logger = logging.getLogger(__name__)


def _get_or_404(db: Session, model, resource_id: int, label: str):
    row = db.get(model, resource_id)
    if row is None:
        raise ResourceNotFoundError(label, resource_id)
    return row


def _require_all(db: Session, model, ids: Iterable[int], label: str) -> list[int]:
    """Deduplicate ids keeping their order; every id must exist."""
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return wanted
    found = set(db.execute(select(model.id).where(model.id.in_(wanted))).scalars())
    missing = [resource_id for resource_id in wanted if resource_id not in found]
    if missing:
        raise SchedulerError(f"Unknown {label} ids", details={"ids": missing})
    return wanted


# Lesson types


def upsert_lesson_type(db: Session, payload: LessonTypeUpsert) -> LessonType:
    code = payload.code.strip()
    clash = db.execute(
        select(LessonType.id).where(func.upper(LessonType.code) == code.upper(), LessonType.id != (payload.id or 0))
    ).scalar_one_or_none()
    if clash is not None:
        raise SchedulerError(f"Lesson type code '{code}' already exists")

    if payload.id is None:
        row = LessonType(code=code)
        db.add(row)
    else:
        row = _get_or_404(db, LessonType, payload.id, "Lesson type")
        row.code = code
    for field in (
        "name",
        "is_active",
        "requires_room",
        "requires_teacher",
        "blocks_room",
        "blocks_teacher",
        "count_in_plan",
        "count_in_load",
        "preferred_first_in_week",
        "css_key",
    ):
        setattr(row, field, getattr(payload, field))
    db.commit()
    db.refresh(row)
    logger.info("LESSON TYPE SAVED | lesson_type_id=%s | code=%s", row.id, row.code)
    return row


# Courses and groups


def upsert_course(db: Session, payload: CourseUpsert) -> Course:
    if payload.id is None:
        row = Course()
        db.add(row)
    else:
        row = _get_or_404(db, Course, payload.id, "Course")
    row.name = payload.name.strip()
    row.duration_weeks = payload.duration_weeks
    db.commit()
    db.refresh(row)
    return row


def upsert_group(db: Session, payload: GroupUpsert) -> Group:
    _get_or_404(db, Course, payload.course_id, "Course")
    if payload.id is None:
        row = Group()
        db.add(row)
    else:
        row = _get_or_404(db, Group, payload.id, "Group")
    row.name = payload.name.strip()
    row.students_count = payload.students_count
    row.course_id = payload.course_id
    db.commit()
    db.refresh(row)
    return row


# Rooms


def upsert_room(db: Session, payload: RoomUpsert) -> Room:
    _get_or_404(db, Building, payload.building_id, "Building")
    if payload.id is None:
        row = Room()
        db.add(row)
    else:
        row = _get_or_404(db, Room, payload.id, "Room")
    row.name = payload.name.strip()
    row.capacity = payload.capacity
    row.building_id = payload.building_id
    db.commit()
    db.refresh(row)
    return row


# Modules and topics


def module_out(db: Session, module: Module) -> ModuleOut:
    def linked(model, column) -> list[int]:
        return list(db.execute(select(column).where(model.module_id == module.id).order_by(model.id)).scalars())

    return ModuleOut(
        id=module.id,
        code=module.code,
        title=module.title,
        credits=module.credits,
        course_id=module.course_id,
        extra_course_ids=linked(ModuleCourse, ModuleCourse.course_id),
        building_ids=linked(ModuleBuilding, ModuleBuilding.building_id),
        room_ids=linked(ModuleRoom, ModuleRoom.room_id),
    )


def upsert_module(db: Session, payload: ModuleUpsert) -> ModuleOut:
    _get_or_404(db, Course, payload.course_id, "Course")
    extra_courses = [
        course_id for course_id in _require_all(db, Course, payload.extra_course_ids, "course")
        if course_id != payload.course_id
    ]
    building_ids = _require_all(db, Building, payload.building_ids, "building")
    room_ids = _require_all(db, Room, payload.room_ids, "room")

    if payload.id is None:
        module = Module(credits=0)
        db.add(module)
    else:
        module = _get_or_404(db, Module, payload.id, "Module")
    module.code = payload.code.strip()
    module.title = payload.title.strip()
    module.course_id = payload.course_id
    db.flush()

    db.execute(delete(ModuleCourse).where(ModuleCourse.module_id == module.id))
    db.execute(delete(ModuleBuilding).where(ModuleBuilding.module_id == module.id))
    db.execute(delete(ModuleRoom).where(ModuleRoom.module_id == module.id))
    db.add_all(ModuleCourse(module_id=module.id, course_id=course_id) for course_id in extra_courses)
    db.add_all(ModuleBuilding(module_id=module.id, building_id=building_id) for building_id in building_ids)
    db.add_all(ModuleRoom(module_id=module.id, room_id=room_id) for room_id in room_ids)
    db.commit()
    db.refresh(module)
    logger.info(
        "MODULE SAVED | module_id=%s | code=%s | buildings=%s | rooms=%s",
        module.id,
        module.code,
        len(building_ids),
        len(room_ids),
    )
    return module_out(db, module)


def list_topics(db: Session, module_id: int) -> list[ModuleTopic]:
    _get_or_404(db, Module, module_id, "Module")
    return list(
        db.execute(
            select(ModuleTopic).where(ModuleTopic.module_id == module_id).order_by(ModuleTopic.order, ModuleTopic.id)
        ).scalars()
    )


def upsert_topic(db: Session, module_id: int, payload: ModuleTopicUpsert) -> ModuleTopic:
    _get_or_404(db, Module, module_id, "Module")
    if payload.lesson_type_id is not None:
        _get_or_404(db, LessonType, payload.lesson_type_id, "Lesson type")
    code = payload.topic_code.strip()
    clash = db.execute(
        select(ModuleTopic.id).where(
            ModuleTopic.module_id == module_id,
            ModuleTopic.topic_code == code,
            ModuleTopic.id != (payload.id or 0),
        )
    ).scalar_one_or_none()
    if clash is not None:
        raise SchedulerError(f"Topic code '{code}' already exists in the module")

    if payload.id is None:
        last = db.execute(select(func.max(ModuleTopic.order)).where(ModuleTopic.module_id == module_id)).scalar()
        topic = ModuleTopic(module_id=module_id, order=payload.order or (last or 0) + 1)
        db.add(topic)
    else:
        topic = db.get(ModuleTopic, payload.id)
        if topic is None or topic.module_id != module_id:
            raise ResourceNotFoundError("Topic", payload.id)
        if payload.order:
            topic.order = payload.order
    topic.topic_code = code
    topic.title = payload.title.strip()
    topic.lesson_type_id = payload.lesson_type_id
    topic.auditorium_hours = payload.auditorium_hours
    topic.self_study_hours = payload.self_study_hours
    topic.total_hours = payload.auditorium_hours + payload.self_study_hours
    topic.self_study_by_supervisor = payload.self_study_by_supervisor
    topic.is_inter_assembly = payload.is_inter_assembly
    db.commit()
    db.refresh(topic)
    return topic


def reorder_topics(db: Session, module_id: int, topic_ids: list[int]) -> list[ModuleTopic]:
    topics = {topic.id: topic for topic in list_topics(db, module_id)}
    if len(topic_ids) != len(set(topic_ids)) or set(topic_ids) != set(topics):
        raise SchedulerError("Order does not match the topics of the module", details={"module_id": module_id})
    for index, topic_id in enumerate(topic_ids, start=1):
        topics[topic_id].order = index
    db.commit()
    return [topics[topic_id] for topic_id in topic_ids]


def delete_topic(db: Session, module_id: int, topic_id: int) -> None:
    topic = db.get(ModuleTopic, topic_id)
    if topic is None or topic.module_id != module_id:
        raise ResourceNotFoundError("Topic", topic_id)
    for model in (ScheduleItem, TeacherDraftItem):
        used = db.execute(select(model.id).where(model.module_topic_id == topic_id).limit(1)).scalar_one_or_none()
        if used is not None:
            raise ResourceInUseError("Topic is already used in the schedule", details={"topic_id": topic_id})
    db.delete(topic)
    db.commit()


# Teachers


def teacher_out(db: Session, teacher: Teacher) -> TeacherOut:
    modules = db.execute(
        select(TeacherModule.module_id).where(TeacherModule.teacher_id == teacher.id).order_by(TeacherModule.id)
    ).scalars()
    supervised = db.execute(
        select(ModuleSupervisor.module_id).where(ModuleSupervisor.teacher_id == teacher.id).order_by(ModuleSupervisor.id)
    ).scalars()
    loads = db.execute(
        select(TeacherCourseLoad).where(TeacherCourseLoad.teacher_id == teacher.id).order_by(TeacherCourseLoad.course_id)
    ).scalars()
    return TeacherOut(
        id=teacher.id,
        full_name=teacher.full_name,
        scientific_degree=teacher.scientific_degree,
        academic_title=teacher.academic_title,
        module_ids=list(modules),
        supervised_module_ids=list(supervised),
        loads=[TeacherLoadOut.model_validate(load) for load in loads],
    )


def upsert_teacher(db: Session, payload: TeacherUpsert) -> TeacherOut:
    """Save a teacher with module links, supervised modules and per-course loads.

    Links are replaced. Loads keep the row of a course that stays so ScheduledHours survive.
    """
    module_ids = _require_all(db, Module, payload.module_ids, "module")
    supervised_ids = _require_all(db, Module, payload.supervised_module_ids, "module")
    loads = {entry.course_id: entry for entry in payload.loads}
    _require_all(db, Course, loads, "course")

    if payload.id is None:
        teacher = Teacher()
        db.add(teacher)
    else:
        teacher = _get_or_404(db, Teacher, payload.id, "Teacher")
    teacher.full_name = payload.full_name.strip()
    teacher.scientific_degree = payload.scientific_degree
    teacher.academic_title = payload.academic_title
    db.flush()

    db.execute(delete(TeacherModule).where(TeacherModule.teacher_id == teacher.id))
    db.execute(delete(ModuleSupervisor).where(ModuleSupervisor.teacher_id == teacher.id))
    db.add_all(TeacherModule(teacher_id=teacher.id, module_id=module_id) for module_id in module_ids)
    db.add_all(ModuleSupervisor(teacher_id=teacher.id, module_id=module_id) for module_id in supervised_ids)

    existing = {
        load.course_id: load
        for load in db.execute(select(TeacherCourseLoad).where(TeacherCourseLoad.teacher_id == teacher.id)).scalars()
    }
    for course_id, load in existing.items():
        if course_id not in loads:
            db.delete(load)
    for course_id, entry in loads.items():
        load = existing.get(course_id)
        if load is None:
            load = TeacherCourseLoad(teacher_id=teacher.id, course_id=course_id, scheduled_hours=0)
            db.add(load)
        load.target_hours = entry.target_hours
        load.is_active = entry.is_active
    db.flush()
    recalc_aggregates(db, plan_keys=[], load_keys=[(teacher.id, course_id) for course_id in loads])
    db.commit()
    db.refresh(teacher)
    logger.info(
        "TEACHER SAVED | teacher_id=%s | modules=%s | supervised=%s | loads=%s",
        teacher.id,
        len(module_ids),
        len(supervised_ids),
        len(loads),
    )
    return teacher_out(db, teacher)

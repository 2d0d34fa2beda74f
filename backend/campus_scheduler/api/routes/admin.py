from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.api.deps import get_db
from campus_scheduler.models.calendar import LunchConfig
from campus_scheduler.models.course import Course, Group
from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.module import Module, ModulePlan
from campus_scheduler.models.room import Building, BuildingTravel, Room
from campus_scheduler.models.teacher import Teacher, TeacherWorkingHour
from campus_scheduler.schemas.admin import (
    BuildingOut,
    BuildingTravelOut,
    BuildingTravelUpsert,
    BuildingUpsert,
    CalendarExceptionOut,
    CalendarExceptionUpsert,
    CourseOut,
    CourseUpsert,
    GroupOut,
    GroupUpsert,
    LessonTypeOut,
    LessonTypeUpsert,
    LunchConfigOut,
    LunchConfigUpsert,
    ModuleOut,
    ModulePlanOut,
    ModulePlanUpsert,
    ModuleSequenceOut,
    ModuleSequenceSave,
    ModuleTopicOut,
    ModuleTopicUpsert,
    ModuleUpsert,
    RoomOut,
    RoomUpsert,
    TeacherOut,
    TeacherUpsert,
    TeacherWorkingHoursSave,
    TimeSlotBulkSave,
    TimeSlotOut,
    TopicReorder,
    WorkingHourOut,
)
from campus_scheduler.services import admin_config, catalog
from campus_scheduler.services.travel import upsert_travel

router = APIRouter()


@router.get("/buildings", response_model=list[BuildingOut])
def list_buildings(db: Session = Depends(get_db)) -> list[BuildingOut]:
    return list(db.execute(select(Building).order_by(Building.name)).scalars())


@router.post("/buildings", response_model=BuildingOut)
def save_building(payload: BuildingUpsert, db: Session = Depends(get_db)) -> BuildingOut:
    return admin_config.upsert_building(db, payload)


@router.delete("/buildings/{building_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_building(building_id: int, db: Session = Depends(get_db)) -> None:
    admin_config.delete_building(db, building_id)


@router.get("/travels", response_model=list[BuildingTravelOut])
def list_travels(db: Session = Depends(get_db)) -> list[BuildingTravelOut]:
    return list(
        db.execute(select(BuildingTravel).order_by(BuildingTravel.from_building_id, BuildingTravel.to_building_id)).scalars()
    )


@router.post("/travels", response_model=BuildingTravelOut)
def save_travel(payload: BuildingTravelUpsert, db: Session = Depends(get_db)) -> BuildingTravelOut:
    row = upsert_travel(db, payload.from_building_id, payload.to_building_id, payload.minutes)
    db.commit()
    db.refresh(row)
    return row


@router.get("/slots", response_model=list[TimeSlotOut])
def get_effective_slots(course_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> list[TimeSlotOut]:
    return admin_config.list_effective_slot_rows(db, course_id)


@router.put("/slots", response_model=list[TimeSlotOut])
def save_slots(payload: TimeSlotBulkSave, db: Session = Depends(get_db)) -> list[TimeSlotOut]:
    return admin_config.save_time_slots(db, payload)


@router.delete("/slots")
def clear_slots(course_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> dict:
    return {"deleted": admin_config.clear_time_slots(db, course_id)}


@router.post("/slots/clone-global/{course_id}", response_model=list[TimeSlotOut])
def clone_slots(course_id: int, db: Session = Depends(get_db)) -> list[TimeSlotOut]:
    return admin_config.clone_global_slots(db, course_id)


@router.get("/calendar", response_model=list[CalendarExceptionOut])
def list_calendar(
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: Session = Depends(get_db),
) -> list[CalendarExceptionOut]:
    return admin_config.list_calendar_exceptions(db, date_from, date_to)


@router.post("/calendar", response_model=CalendarExceptionOut)
def save_calendar_exception(payload: CalendarExceptionUpsert, db: Session = Depends(get_db)) -> CalendarExceptionOut:
    return admin_config.upsert_calendar_exception(db, payload)


@router.delete("/calendar/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_calendar_exception(exception_id: int, db: Session = Depends(get_db)) -> None:
    admin_config.delete_calendar_exception(db, exception_id)


@router.get("/lunch", response_model=list[LunchConfigOut])
def list_lunch(db: Session = Depends(get_db)) -> list[LunchConfigOut]:
    return list(db.execute(select(LunchConfig).order_by(LunchConfig.id)).scalars())


@router.post("/lunch", response_model=LunchConfigOut)
def save_lunch(payload: LunchConfigUpsert, db: Session = Depends(get_db)) -> LunchConfigOut:
    return admin_config.upsert_lunch(db, payload)


@router.delete("/lunch/{lunch_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_lunch(lunch_id: int, db: Session = Depends(get_db)) -> None:
    admin_config.delete_lunch(db, lunch_id)


@router.get("/plans", response_model=list[ModulePlanOut])
def list_plans(course_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> list[ModulePlanOut]:
    query = select(ModulePlan).order_by(ModulePlan.course_id, ModulePlan.module_id)
    if course_id is not None:
        query = query.where(ModulePlan.course_id == course_id)
    return list(db.execute(query).scalars())


@router.post("/plans", response_model=ModulePlanOut)
def save_plan(payload: ModulePlanUpsert, db: Session = Depends(get_db)) -> ModulePlanOut:
    return admin_config.upsert_module_plan(db, payload)


@router.get("/courses/{course_id}/sequence", response_model=ModuleSequenceOut)
def get_sequence(course_id: int, db: Session = Depends(get_db)) -> ModuleSequenceOut:
    return admin_config.get_module_sequence(db, course_id)


@router.put("/courses/{course_id}/sequence", response_model=ModuleSequenceOut)
def save_sequence(course_id: int, payload: ModuleSequenceSave, db: Session = Depends(get_db)) -> ModuleSequenceOut:
    return admin_config.save_module_sequence(db, course_id, payload)


@router.get("/teachers/{teacher_id}/working-hours", response_model=list[WorkingHourOut])
def get_working_hours(teacher_id: int, db: Session = Depends(get_db)) -> list[WorkingHourOut]:
    return list(
        db.execute(
            select(TeacherWorkingHour)
            .where(TeacherWorkingHour.teacher_id == teacher_id)
            .order_by(TeacherWorkingHour.day_of_week, TeacherWorkingHour.start_time)
        ).scalars()
    )


@router.put("/teachers/{teacher_id}/working-hours", response_model=list[WorkingHourOut])
def save_working_hours(
    teacher_id: int,
    payload: TeacherWorkingHoursSave,
    db: Session = Depends(get_db),
) -> list[WorkingHourOut]:
    return admin_config.save_teacher_working_hours(db, teacher_id, payload)


@router.get("/lesson-types", response_model=list[LessonTypeOut])
def list_lesson_types(db: Session = Depends(get_db)) -> list[LessonTypeOut]:
    return list(db.execute(select(LessonType).order_by(LessonType.id)).scalars())


@router.post("/lesson-types", response_model=LessonTypeOut)
def save_lesson_type(payload: LessonTypeUpsert, db: Session = Depends(get_db)) -> LessonTypeOut:
    return catalog.upsert_lesson_type(db, payload)


@router.get("/courses", response_model=list[CourseOut])
def list_courses(db: Session = Depends(get_db)) -> list[CourseOut]:
    return list(db.execute(select(Course).order_by(Course.name)).scalars())


@router.post("/courses", response_model=CourseOut)
def save_course(payload: CourseUpsert, db: Session = Depends(get_db)) -> CourseOut:
    return catalog.upsert_course(db, payload)


@router.get("/groups", response_model=list[GroupOut])
def list_groups(course_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> list[GroupOut]:
    query = select(Group).order_by(Group.name)
    if course_id is not None:
        query = query.where(Group.course_id == course_id)
    return list(db.execute(query).scalars())


@router.post("/groups", response_model=GroupOut)
def save_group(payload: GroupUpsert, db: Session = Depends(get_db)) -> GroupOut:
    return catalog.upsert_group(db, payload)


@router.get("/rooms", response_model=list[RoomOut])
def list_rooms(building_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> list[RoomOut]:
    query = select(Room).order_by(Room.name)
    if building_id is not None:
        query = query.where(Room.building_id == building_id)
    return list(db.execute(query).scalars())


@router.post("/rooms", response_model=RoomOut)
def save_room(payload: RoomUpsert, db: Session = Depends(get_db)) -> RoomOut:
    return catalog.upsert_room(db, payload)


@router.get("/modules", response_model=list[ModuleOut])
def list_modules(course_id: int | None = Query(default=None), db: Session = Depends(get_db)) -> list[ModuleOut]:
    query = select(Module).order_by(Module.code)
    if course_id is not None:
        query = query.where(Module.course_id == course_id)
    return [catalog.module_out(db, module) for module in db.execute(query).scalars()]


@router.post("/modules", response_model=ModuleOut)
def save_module(payload: ModuleUpsert, db: Session = Depends(get_db)) -> ModuleOut:
    return catalog.upsert_module(db, payload)


@router.get("/modules/{module_id}/topics", response_model=list[ModuleTopicOut])
def list_topics(module_id: int, db: Session = Depends(get_db)) -> list[ModuleTopicOut]:
    return catalog.list_topics(db, module_id)


@router.post("/modules/{module_id}/topics", response_model=ModuleTopicOut)
def save_topic(module_id: int, payload: ModuleTopicUpsert, db: Session = Depends(get_db)) -> ModuleTopicOut:
    return catalog.upsert_topic(db, module_id, payload)


@router.put("/modules/{module_id}/topics/order", response_model=list[ModuleTopicOut])
def reorder_topics(module_id: int, payload: TopicReorder, db: Session = Depends(get_db)) -> list[ModuleTopicOut]:
    return catalog.reorder_topics(db, module_id, payload.topic_ids)


@router.delete("/modules/{module_id}/topics/{topic_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_topic(module_id: int, topic_id: int, db: Session = Depends(get_db)) -> None:
    catalog.delete_topic(db, module_id, topic_id)


@router.get("/teachers", response_model=list[TeacherOut])
def list_teachers(db: Session = Depends(get_db)) -> list[TeacherOut]:
    return [catalog.teacher_out(db, teacher) for teacher in db.execute(select(Teacher).order_by(Teacher.full_name)).scalars()]


@router.post("/teachers", response_model=TeacherOut)
def save_teacher(payload: TeacherUpsert, db: Session = Depends(get_db)) -> TeacherOut:
    return catalog.upsert_teacher(db, payload)

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from campus_scheduler.core.config import get_settings
from campus_scheduler.core.exceptions import ResourceNotFoundError, SchedulerError
from campus_scheduler.models.calendar import CalendarException, LunchConfig, TimeSlot
from campus_scheduler.models.course import Course
from campus_scheduler.models.module import Module, ModuleBuilding, ModuleCourse, ModuleFiller, ModulePlan, ModuleSequenceItem
from campus_scheduler.models.room import Building, BuildingTravel, Room
from campus_scheduler.models.teacher import Teacher, TeacherWorkingHour
from campus_scheduler.schemas.admin import (
    BuildingUpsert,
    CalendarExceptionUpsert,
    LunchConfigUpsert,
    ModulePlanUpsert,
    ModuleSequenceOut,
    ModuleSequenceSave,
    TeacherWorkingHoursSave,
    TimeSlotBulkSave,
)
from campus_scheduler.schemas.common import parse_clock
from campus_scheduler.services.aggregates import recalc_aggregates
from campus_scheduler.services.time_grid import windows_overlap
from campus_scheduler.services.travel import ensure_default_travels_for_building

logger = logging.getLogger(__name__)


def _require_course(db: Session, course_id: int | None) -> None:
    if course_id is not None and db.get(Course, course_id) is None:
        raise ResourceNotFoundError("Course", course_id)


# Buildings


def upsert_building(db: Session, payload: BuildingUpsert) -> Building:
    clash = db.execute(
        select(Building.id).where(Building.name == payload.name, Building.id != (payload.id or 0))
    ).scalar_one_or_none()
    if clash is not None:
        raise SchedulerError(f"Building name '{payload.name}' already exists")

    if payload.id is None:
        building = Building(name=payload.name, address=payload.address)
        db.add(building)
        db.flush()
        created = ensure_default_travels_for_building(db, building.id)
        logger.info("BUILDING CREATED | building_id=%s | default_travels=%s", building.id, created)
    else:
        building = db.get(Building, payload.id)
        if building is None:
            raise ResourceNotFoundError("Building", payload.id)
        building.name = payload.name
        building.address = payload.address
    db.commit()
    db.refresh(building)
    return building


def delete_building(db: Session, building_id: int) -> None:
    building = db.get(Building, building_id)
    if building is None:
        raise ResourceNotFoundError("Building", building_id)
    in_use = db.execute(select(Room.id).where(Room.building_id == building_id).limit(1)).scalar_one_or_none()
    if in_use is not None:
        raise SchedulerError("Building still has rooms", details={"building_id": building_id})
    db.execute(
        delete(BuildingTravel).where(
            or_(BuildingTravel.from_building_id == building_id, BuildingTravel.to_building_id == building_id)
        )
    )
    db.execute(delete(ModuleBuilding).where(ModuleBuilding.building_id == building_id))
    db.delete(building)
    db.commit()
    logger.info("BUILDING DELETED | building_id=%s", building_id)


# Time slots


def list_effective_slot_rows(db: Session, course_id: int | None) -> list[TimeSlot]:
    order = (TimeSlot.sort_order, TimeSlot.start_time)
    if course_id is not None:
        rows = list(db.execute(select(TimeSlot).where(TimeSlot.course_id == course_id).order_by(*order)).scalars())
        if rows:
            return rows
    return list(db.execute(select(TimeSlot).where(TimeSlot.course_id.is_(None)).order_by(*order)).scalars())


def _scope_filter(course_id: int | None):
    return TimeSlot.course_id.is_(None) if course_id is None else TimeSlot.course_id == course_id


def save_time_slots(db: Session, payload: TimeSlotBulkSave) -> list[TimeSlot]:
    """Replace the slots of one scope; sort order follows start time."""
    _require_course(db, payload.course_id)
    windows = sorted(
        ((parse_clock(entry.start_time), parse_clock(entry.end_time), entry.is_active) for entry in payload.slots),
        key=lambda window: window[0],
    )
    for (start_a, end_a, _), (start_b, end_b, _) in zip(windows, windows[1:]):
        if windows_overlap(start_a, end_a, start_b, end_b):
            raise SchedulerError(
                "Time slots overlap",
                details={"first": f"{start_a:%H:%M}-{end_a:%H:%M}", "second": f"{start_b:%H:%M}-{end_b:%H:%M}"},
            )

    db.execute(delete(TimeSlot).where(_scope_filter(payload.course_id)))
    rows = [
        TimeSlot(course_id=payload.course_id, start_time=start, end_time=end, sort_order=index, is_active=active)
        for index, (start, end, active) in enumerate(windows, start=1)
    ]
    db.add_all(rows)
    db.commit()
    logger.info("TIME SLOTS SAVED | course_id=%s | slots=%s", payload.course_id, len(rows))
    return rows


def clear_time_slots(db: Session, course_id: int | None) -> int:
    deleted = db.execute(delete(TimeSlot).where(_scope_filter(course_id))).rowcount or 0
    db.commit()
    logger.info("TIME SLOTS CLEARED | course_id=%s | deleted=%s", course_id, deleted)
    return deleted


def clone_global_slots(db: Session, course_id: int) -> list[TimeSlot]:
    _require_course(db, course_id)
    global_rows = list(
        db.execute(
            select(TimeSlot).where(TimeSlot.course_id.is_(None)).order_by(TimeSlot.sort_order, TimeSlot.start_time)
        ).scalars()
    )
    if not global_rows:
        raise SchedulerError("There are no global time slots to clone")
    db.execute(delete(TimeSlot).where(TimeSlot.course_id == course_id))
    clones = [
        TimeSlot(
            course_id=course_id,
            start_time=row.start_time,
            end_time=row.end_time,
            sort_order=row.sort_order,
            is_active=row.is_active,
        )
        for row in global_rows
    ]
    db.add_all(clones)
    db.commit()
    logger.info("TIME SLOTS CLONED | course_id=%s | slots=%s", course_id, len(clones))
    return clones


# Calendar and lunch


def list_calendar_exceptions(db: Session, date_from: date, date_to: date) -> list[CalendarException]:
    return list(
        db.execute(
            select(CalendarException)
            .where(CalendarException.date >= date_from, CalendarException.date <= date_to)
            .order_by(CalendarException.date)
        ).scalars()
    )


def upsert_calendar_exception(db: Session, payload: CalendarExceptionUpsert) -> CalendarException:
    row = db.execute(select(CalendarException).where(CalendarException.date == payload.date)).scalar_one_or_none()
    if row is None:
        row = CalendarException(date=payload.date)
        db.add(row)
    row.is_working_day = payload.is_working_day
    row.name = payload.name
    db.commit()
    db.refresh(row)
    return row


def delete_calendar_exception(db: Session, exception_id: int) -> None:
    row = db.get(CalendarException, exception_id)
    if row is None:
        raise ResourceNotFoundError("Calendar exception", exception_id)
    db.delete(row)
    db.commit()


def upsert_lunch(db: Session, payload: LunchConfigUpsert) -> LunchConfig:
    _require_course(db, payload.course_id)
    scope = LunchConfig.course_id.is_(None) if payload.course_id is None else LunchConfig.course_id == payload.course_id
    row = db.execute(select(LunchConfig).where(scope)).scalar_one_or_none()
    if row is None:
        row = LunchConfig(course_id=payload.course_id)
        db.add(row)
    row.start_time = parse_clock(payload.start_time)
    row.end_time = parse_clock(payload.end_time)
    db.commit()
    db.refresh(row)
    return row


def delete_lunch(db: Session, lunch_id: int) -> None:
    row = db.get(LunchConfig, lunch_id)
    if row is None:
        raise ResourceNotFoundError("Lunch config", lunch_id)
    db.delete(row)
    db.commit()


# Plans and sequence


def upsert_module_plan(db: Session, payload: ModulePlanUpsert) -> ModulePlan:
    _require_course(db, payload.course_id)
    module = db.get(Module, payload.module_id)
    if module is None:
        raise ResourceNotFoundError("Module", payload.module_id)
    plan = db.execute(
        select(ModulePlan).where(ModulePlan.course_id == payload.course_id, ModulePlan.module_id == payload.module_id)
    ).scalar_one_or_none()
    if plan is None:
        plan = ModulePlan(course_id=payload.course_id, module_id=payload.module_id, scheduled_hours=0)
        db.add(plan)
    plan.target_hours = payload.target_hours
    plan.is_active = payload.is_active
    module.credits = round(payload.target_hours / get_settings().hours_per_credit, 2)
    db.flush()
    recalc_aggregates(db, plan_keys=[(payload.course_id, payload.module_id)], load_keys=[])
    db.commit()
    db.refresh(plan)
    logger.info(
        "MODULE PLAN SAVED | course_id=%s | module_id=%s | target_hours=%s | credits=%s",
        payload.course_id,
        payload.module_id,
        payload.target_hours,
        module.credits,
    )
    return plan


def _course_module_ids(db: Session, course_id: int) -> set[int]:
    owned = set(db.execute(select(Module.id).where(Module.course_id == course_id)).scalars())
    linked = set(db.execute(select(ModuleCourse.module_id).where(ModuleCourse.course_id == course_id)).scalars())
    return owned | linked


def get_module_sequence(db: Session, course_id: int) -> ModuleSequenceOut:
    main = db.execute(
        select(ModuleSequenceItem.module_id)
        .where(ModuleSequenceItem.course_id == course_id)
        .order_by(ModuleSequenceItem.order, ModuleSequenceItem.id)
    ).scalars()
    fillers = db.execute(
        select(ModuleFiller.module_id).where(ModuleFiller.course_id == course_id).order_by(ModuleFiller.id)
    ).scalars()
    return ModuleSequenceOut(course_id=course_id, main_module_ids=list(main), filler_module_ids=list(fillers))


def save_module_sequence(db: Session, course_id: int, payload: ModuleSequenceSave) -> ModuleSequenceOut:
    _require_course(db, course_id)
    main = list(dict.fromkeys(payload.main_module_ids))
    fillers = list(dict.fromkeys(payload.filler_module_ids))
    foreign = sorted(set(main + fillers) - _course_module_ids(db, course_id))
    if foreign:
        raise SchedulerError("Modules do not belong to the course", details={"module_ids": foreign})

    db.execute(delete(ModuleSequenceItem).where(ModuleSequenceItem.course_id == course_id))
    db.execute(delete(ModuleFiller).where(ModuleFiller.course_id == course_id))
    db.add_all(
        ModuleSequenceItem(course_id=course_id, module_id=module_id, order=index)
        for index, module_id in enumerate(main, start=1)
    )
    db.add_all(ModuleFiller(course_id=course_id, module_id=module_id) for module_id in fillers)
    db.commit()
    logger.info("MODULE SEQUENCE SAVED | course_id=%s | main=%s | fillers=%s", course_id, len(main), len(fillers))
    return ModuleSequenceOut(course_id=course_id, main_module_ids=main, filler_module_ids=fillers)


# Teacher working hours


def save_teacher_working_hours(db: Session, teacher_id: int, payload: TeacherWorkingHoursSave) -> list[TeacherWorkingHour]:
    if db.get(Teacher, teacher_id) is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    db.execute(delete(TeacherWorkingHour).where(TeacherWorkingHour.teacher_id == teacher_id))
    rows = [
        TeacherWorkingHour(
            teacher_id=teacher_id,
            day_of_week=window.day_of_week,
            start_time=parse_clock(window.start_time),
            end_time=parse_clock(window.end_time),
        )
        for window in sorted(payload.windows, key=lambda entry: (entry.day_of_week, entry.start_time))
    ]
    db.add_all(rows)
    db.commit()
    logger.info("WORKING HOURS SAVED | teacher_id=%s | windows=%s", teacher_id, len(rows))
    return rows

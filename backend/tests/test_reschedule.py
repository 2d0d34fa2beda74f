from datetime import date, time
from types import SimpleNamespace

import pytest

from campus_scheduler.models import ScheduleItem, TeacherDraftItem
from campus_scheduler.schemas.schedule import ScheduleItemUpsert
from campus_scheduler.services import events
from campus_scheduler.services.drafts import list_drafts
from campus_scheduler.services.events import LessonTypeChangedToRescheduled
from campus_scheduler.services.reschedule import (
    create_rescheduled_copy,
    parse_reschedule_batch_key,
    reschedule_batch_key,
)
from campus_scheduler.services.schedule_service import upsert_schedule_item

MONDAY = date(2025, 3, 10)
NEXT_MONDAY = date(2025, 3, 17)


@pytest.fixture()
def world(seed):
    course = seed.course()
    group = seed.group(course, "SE-1", students=25)
    main = seed.building("Main")
    room = seed.room(main, "M-101", capacity=30)
    lecture = seed.lesson_type("LEC")
    module = seed.module(course, "SE101")
    teacher = seed.teacher("Grace Hopper", modules=[module])
    item = seed.item(day=MONDAY, start="08:30", end="10:00", group=group, module=module,
                     lesson_type=lecture, teacher=teacher, room=room)
    return SimpleNamespace(course=course, group=group, room=room, lecture=lecture, module=module,
                           teacher=teacher, item=item, rescheduled=seed.type_by_code("RESCHEDULED"))


def mark_rescheduled(db, world):
    return upsert_schedule_item(
        db,
        ScheduleItemUpsert(
            id=world.item.id,
            date=MONDAY,
            start_time="08:30",
            end_time="10:00",
            lesson_type_id=world.rescheduled.id,
            group_id=world.group.id,
            module_id=world.module.id,
            teacher_id=world.teacher.id,
            room_id=world.room.id,
        ),
    )


def test_batch_key_parsing():
    assert reschedule_batch_key(12, 3) == "rescheduled:12:3"
    assert parse_reschedule_batch_key("rescheduled:12:3") == (12, 3)
    assert parse_reschedule_batch_key(None) is None
    assert parse_reschedule_batch_key("") is None
    assert parse_reschedule_batch_key("manual") is None
    assert parse_reschedule_batch_key("rescheduled:12") is None
    assert parse_reschedule_batch_key("rescheduled:x:3") is None
    assert parse_reschedule_batch_key("moved:12:3") is None


def test_switching_to_rescheduled_places_locked_copy_next_week(db, world):
    mark_rescheduled(db, world)

    copy = db.query(TeacherDraftItem).one()
    assert copy.date == NEXT_MONDAY
    assert copy.start_time == time(8, 30)
    assert copy.is_locked
    assert copy.lesson_type_id == world.lecture.id
    assert copy.room_id == world.room.id
    assert copy.batch_key == f"rescheduled:{world.item.id}:{world.lecture.id}"

    source = db.get(ScheduleItem, world.item.id)
    assert source.lesson_type_id == world.rescheduled.id
    assert source.room_id is None

    listed = list_drafts(db, week_start=NEXT_MONDAY)
    assert listed[0].reschedule.source_item_id == world.item.id
    assert listed[0].reschedule.previous_lesson_type_id == world.lecture.id


def test_copy_is_not_duplicated(db, world):
    mark_rescheduled(db, world)

    again = create_rescheduled_copy(db, LessonTypeChangedToRescheduled(world.item.id, world.lecture.id, world.room.id))

    assert again is None
    assert db.query(TeacherDraftItem).count() == 1


def test_copy_waits_for_predecessor_modules(db, seed, world):
    intro = seed.module(world.course, "SE100")
    seed.sequence(world.course, main=[intro, world.module])
    seed.slot("08:30", "10:00")
    seed.slot("10:10", "11:40")
    seed.slot("12:00", "13:30")
    seed.item(day=NEXT_MONDAY, start="10:10", end="11:40", group=world.group, module=intro,
              lesson_type=world.lecture, teacher=None, room=None)

    mark_rescheduled(db, world)

    copy = db.query(TeacherDraftItem).one()
    assert copy.date == NEXT_MONDAY
    assert copy.start_time == time(12, 0)


def test_copy_skips_busy_and_non_working_days(db, seed, world):
    seed.calendar(NEXT_MONDAY, working=False, name="Holiday")
    seed.item(day=date(2025, 3, 18), start="08:30", end="10:00", group=world.group, module=world.module,
              lesson_type=world.lecture, teacher=world.teacher, room=world.room)

    mark_rescheduled(db, world)

    copy = db.query(TeacherDraftItem).one()
    assert copy.date == date(2025, 3, 19)


def test_failing_handler_keeps_the_committed_change(db, world, monkeypatch):
    def broken(db, event):
        raise RuntimeError("boom")

    monkeypatch.setattr(events, "_rescheduled_handlers", [broken])

    result = mark_rescheduled(db, world)

    assert result.id == world.item.id
    assert db.get(ScheduleItem, world.item.id).lesson_type_id == world.rescheduled.id
    assert db.query(TeacherDraftItem).count() == 0


def test_other_type_changes_do_not_trigger_copy(db, seed, world):
    practice = seed.lesson_type("PR")

    upsert_schedule_item(
        db,
        ScheduleItemUpsert(
            id=world.item.id,
            date=MONDAY,
            start_time="08:30",
            end_time="10:00",
            lesson_type_id=practice.id,
            group_id=world.group.id,
            module_id=world.module.id,
            teacher_id=world.teacher.id,
            room_id=world.room.id,
        ),
    )

    assert db.query(TeacherDraftItem).count() == 0


def test_rescheduled_code_matches_regardless_of_case(db, world):
    world.rescheduled.code = "Rescheduled"
    db.commit()

    mark_rescheduled(db, world)

    assert db.query(TeacherDraftItem).one().lesson_type_id == world.lecture.id

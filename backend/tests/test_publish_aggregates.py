from datetime import date
from types import SimpleNamespace

import pytest

from campus_scheduler.models import DraftStatus, ScheduleItem, TeacherDraftItem
from campus_scheduler.schemas.schedule import ApproveWeekRequest, PublishWeekRequest
from campus_scheduler.services.aggregates import affected_keys, recalc_aggregates
from campus_scheduler.services.publish import approve_week, publish_week

WEEK = date(2025, 3, 10)


@pytest.fixture()
def world(seed):
    course = seed.course()
    group = seed.group(course, "SE-1", students=25)
    main = seed.building("Main")
    room = seed.room(main, "M-101", capacity=30)
    lecture = seed.lesson_type("LEC")
    module = seed.module(course, "SE101")
    teacher = seed.teacher("Grace Hopper", modules=[module])
    plan = seed.plan(course, module, 10)
    load = seed.load(teacher, course)
    return SimpleNamespace(course=course, group=group, room=room, lecture=lecture, module=module,
                           teacher=teacher, plan=plan, load=load)


def placement(world, day, start="08:30", end="10:00", **extra):
    values = dict(day=day, start=start, end=end, group=world.group, module=world.module,
                  lesson_type=world.lecture, teacher=world.teacher, room=world.room)
    values.update(extra)
    return values


def test_publish_moves_drafts_into_schedule(db, seed, world):
    seed.draft(**placement(world, WEEK), status=DraftStatus.draft)
    seed.draft(**placement(world, date(2025, 3, 11)), status=DraftStatus.draft, is_locked=True)

    result = publish_week(db, PublishWeekRequest(week_start=WEEK))

    assert result.created == 2
    assert result.skipped == 0
    assert db.query(TeacherDraftItem).count() == 0
    items = db.query(ScheduleItem).order_by(ScheduleItem.date).all()
    assert [item.date for item in items] == [WEEK, date(2025, 3, 11)]
    assert [item.is_locked for item in items] == [False, True]
    db.refresh(world.plan)
    db.refresh(world.load)
    assert world.plan.scheduled_hours == 2
    assert world.load.scheduled_hours == 2


def test_conflicting_draft_is_skipped_with_reason(db, seed, world):
    seed.item(**placement(world, WEEK))
    conflicting = seed.draft(**placement(world, WEEK), status=DraftStatus.draft)

    result = publish_week(db, PublishWeekRequest(week_start=WEEK))

    assert result.created == 0
    assert result.skipped == 1
    assert result.warnings[0].startswith("[2025-03-10 08:30-10:00] ")
    assert db.get(TeacherDraftItem, conflicting.id) is not None


def test_drafts_in_one_publish_see_each_other(db, seed, world):
    seed.draft(**placement(world, WEEK), status=DraftStatus.draft)
    seed.draft(**placement(world, WEEK, start="09:00", end="10:30"), status=DraftStatus.draft)

    result = publish_week(db, PublishWeekRequest(week_start=WEEK))

    assert result.created == 1
    assert result.skipped == 1
    assert db.query(TeacherDraftItem).count() == 1


def test_publish_on_day_off_needs_no_override(db, seed, world):
    seed.draft(**placement(world, date(2025, 3, 16)), status=DraftStatus.draft)

    result = publish_week(db, PublishWeekRequest(week_start=WEEK))

    assert result.created == 1
    assert result.warnings == []


def test_publish_filtered_by_teacher(db, seed, world):
    other = seed.teacher("Alan Turing", modules=[world.module])
    seed.draft(**placement(world, WEEK), status=DraftStatus.draft)
    seed.draft(**placement(world, date(2025, 3, 11), teacher=other), status=DraftStatus.draft)

    result = publish_week(db, PublishWeekRequest(week_start=WEEK, teacher_id=other.id))

    assert result.created == 1
    remaining = db.query(TeacherDraftItem).one()
    assert remaining.teacher_id == world.teacher.id


def test_approve_week_marks_teacher_drafts(db, seed, world):
    seed.draft(**placement(world, WEEK), status=DraftStatus.draft)
    seed.draft(**placement(world, date(2025, 3, 18)), status=DraftStatus.draft)

    result = approve_week(db, ApproveWeekRequest(week_start=WEEK, teacher_id=world.teacher.id))

    assert result.updated == 1
    statuses = [draft.status for draft in db.query(TeacherDraftItem).order_by(TeacherDraftItem.date)]
    assert statuses == [DraftStatus.published, DraftStatus.draft]


def test_canceled_counts_toward_plan_but_break_does_not(db, seed, world):
    canceled = seed.type_by_code("CANCELED")
    pause = seed.type_by_code("BREAK")
    seed.item(**placement(world, WEEK))
    seed.item(**placement(world, date(2025, 3, 11), lesson_type=canceled))
    seed.item(**placement(world, date(2025, 3, 12), lesson_type=pause, teacher=None, room=None))

    recalc_aggregates(db)
    db.commit()

    db.refresh(world.plan)
    db.refresh(world.load)
    assert world.plan.scheduled_hours == 2
    assert world.load.scheduled_hours == 1


def test_inactive_load_is_zeroed(db, seed, world):
    world.load.is_active = False
    world.load.scheduled_hours = 7
    db.commit()
    seed.item(**placement(world, WEEK))

    recalc_aggregates(db)
    db.commit()

    db.refresh(world.load)
    assert world.load.scheduled_hours == 0


def test_scoped_recalc_leaves_other_rows_alone(db, seed, world):
    other_module = seed.module(world.course, "SE102")
    other_plan = seed.plan(world.course, other_module, 6)
    other_plan.scheduled_hours = 5
    db.commit()
    seed.item(**placement(world, WEEK))

    plan_keys, load_keys = affected_keys(db, [(world.group.id, world.module.id, world.teacher.id)])
    assert plan_keys == {(world.course.id, world.module.id)}
    assert load_keys == {(world.teacher.id, world.course.id)}

    recalc_aggregates(db, plan_keys=plan_keys, load_keys=set())
    db.commit()

    db.refresh(world.plan)
    db.refresh(other_plan)
    db.refresh(world.load)
    assert world.plan.scheduled_hours == 1
    assert other_plan.scheduled_hours == 5
    assert world.load.scheduled_hours == 0


def test_canceled_code_matches_regardless_of_case(db, seed, world):
    canceled = seed.type_by_code("CANCELED")
    canceled.code = "Canceled"
    db.commit()
    seed.item(**placement(world, WEEK, lesson_type=canceled))

    recalc_aggregates(db)
    db.commit()

    db.refresh(world.plan)
    assert world.plan.scheduled_hours == 1

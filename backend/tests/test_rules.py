from datetime import date
from types import SimpleNamespace

import pytest

from campus_scheduler.models import DraftStatus, ModuleRoom
from campus_scheduler.schemas.schedule import DraftUpsert, ScheduleItemUpsert
from campus_scheduler.services.rules import RulesService

MONDAY = date(2025, 3, 10)


@pytest.fixture()
def world(seed):
    course = seed.course()
    group = seed.group(course, "SE-1", students=25)
    other_group = seed.group(course, "SE-2", students=25)
    main = seed.building("Main")
    annex = seed.building("Annex")
    seed.travel(main, annex, 20)
    r1 = seed.room(main, "M-101", capacity=30)
    r2 = seed.room(annex, "A-201", capacity=30)
    small = seed.room(main, "M-001", capacity=10)
    lecture = seed.lesson_type("LEC")
    module = seed.module(course, "SE101")
    teacher = seed.teacher("Grace Hopper", modules=[module])
    return SimpleNamespace(
        course=course, group=group, other_group=other_group, main=main, annex=annex,
        r1=r1, r2=r2, small=small, lecture=lecture, module=module, teacher=teacher,
    )


def candidate(world, **overrides):
    values = {
        "date": MONDAY,
        "start_time": "08:30",
        "end_time": "10:00",
        "lesson_type_id": world.lecture.id,
        "group_id": world.group.id,
        "module_id": world.module.id,
        "teacher_id": world.teacher.id,
        "room_id": world.r1.id,
    }
    values.update(overrides)
    return ScheduleItemUpsert(**values)


def test_clean_candidate_passes(db, world):
    result = RulesService(db).validate_upsert(candidate(world))
    assert result.errors == []
    assert result.warnings == []
    assert result.report is None


def test_missing_references_short_circuit(db, world):
    result = RulesService(db).validate_draft(
        candidate(world, group_id=999, module_id=998, start_time="10:00", end_time="09:00")
    )
    codes = [issue.code for issue in result.report.issues]
    assert codes == ["group-not-found", "module-not-found"]


def test_room_required_by_lesson_type(db, world):
    result = RulesService(db).validate_draft(candidate(world, room_id=None))
    assert [issue.code for issue in result.report.issues] == ["room-required"]


def test_end_equal_to_start_is_always_rejected(db, world):
    result = RulesService(db).validate_draft(candidate(world, start_time="09:00", end_time="09:00"))
    assert [issue.code for issue in result.report.issues] == ["time-window-invalid"]


def test_slot_grid_enforced_only_when_slots_exist(db, seed, world):
    odd = candidate(world, start_time="09:00", end_time="09:01")
    assert RulesService(db).validate_upsert(odd).errors == []

    seed.slot("08:30", "10:00")
    result = RulesService(db).validate_draft(odd)
    assert "slot-not-allowed" in [issue.code for issue in result.report.issues]
    assert RulesService(db).validate_upsert(candidate(world)).errors == []


def test_non_working_day_is_only_a_warning(db, world):
    sunday = date(2025, 3, 16)
    result = RulesService(db).validate_upsert(candidate(world, date=sunday))
    assert result.errors == []
    assert result.warnings == ["2025-03-16 is not a working day"]

    forced = RulesService(db).validate_upsert(candidate(world, date=sunday, override_non_working_day=True))
    assert forced.warnings == []


def test_room_capacity_and_allowed_sets(db, seed, world):
    too_small = RulesService(db).validate_draft(candidate(world, room_id=world.small.id))
    assert "room-capacity" in [issue.code for issue in too_small.report.issues]

    restricted = seed.module(world.course, "SE102", buildings=[world.annex])
    wrong_building = RulesService(db).validate_draft(candidate(world, module_id=restricted.id))
    assert "building-not-allowed" in [issue.code for issue in wrong_building.report.issues]

    db.add(ModuleRoom(module_id=world.module.id, room_id=world.r2.id))
    db.commit()
    wrong_room = RulesService(db).validate_draft(candidate(world))
    assert "room-not-allowed" in [issue.code for issue in wrong_room.report.issues]


def test_third_item_in_busy_room_is_rejected(db, seed, world):
    seed.item(day=MONDAY, start="08:30", end="10:00", group=world.other_group, module=world.module,
              lesson_type=world.lecture, room=world.r1)
    seed.draft(day=MONDAY, start="08:30", end="10:00", group=world.other_group, module=world.module,
               lesson_type=world.lecture, room=world.r1, status=DraftStatus.draft)
    other_teacher = seed.teacher("Alan Turing", modules=[world.module])

    result = RulesService(db).validate_draft(
        candidate(world, group_id=world.group.id, teacher_id=other_teacher.id, start_time="09:00", end_time="09:45")
    )
    codes = [issue.code for issue in result.report.issues if issue.severity == "error"]
    assert "conflict-official-room" in codes
    assert "conflict-draft-room" in codes


def test_upsert_mode_ignores_drafts(db, seed, world):
    seed.draft(day=MONDAY, start="08:30", end="10:00", group=world.group, module=world.module,
               lesson_type=world.lecture, teacher=world.teacher, room=world.r1, status=DraftStatus.draft)

    assert RulesService(db).validate_upsert(candidate(world)).errors == []
    draft_result = RulesService(db).validate_draft(candidate(world))
    codes = {issue.code for issue in draft_result.report.issues}
    assert {"conflict-draft-group", "conflict-draft-teacher", "conflict-draft-room"} <= codes


def test_published_drafts_do_not_block(db, seed, world):
    seed.draft(day=MONDAY, start="08:30", end="10:00", group=world.group, module=world.module,
               lesson_type=world.lecture, teacher=world.teacher, room=world.r1, status=DraftStatus.published)
    assert RulesService(db).validate_draft(candidate(world)).errors == []


def test_candidate_does_not_conflict_with_itself(db, seed, world):
    item = seed.item(day=MONDAY, start="08:30", end="10:00", group=world.group, module=world.module,
                     lesson_type=world.lecture, teacher=world.teacher, room=world.r1)
    assert RulesService(db).validate_upsert(candidate(world, id=item.id)).errors == []

    draft = seed.draft(day=date(2025, 3, 11), start="08:30", end="10:00", group=world.group, module=world.module,
                       lesson_type=world.lecture, teacher=world.teacher, room=world.r1, status=DraftStatus.draft)
    moved = DraftUpsert(**candidate(world, id=draft.id, date=date(2025, 3, 11)).model_dump())
    assert RulesService(db).validate_draft(moved).errors == []


def test_non_blocking_lesson_type_only_checks_group(db, seed, world):
    consult = seed.lesson_type("CONSULT", blocks_room=False, blocks_teacher=False)
    seed.item(day=MONDAY, start="08:30", end="10:00", group=world.other_group, module=world.module,
              lesson_type=world.lecture, teacher=world.teacher, room=world.r1)

    result = RulesService(db).validate_upsert(candidate(world, lesson_type_id=consult.id))
    assert result.errors == []


def test_travel_time_between_buildings(db, seed, world):
    seed.item(day=MONDAY, start="08:30", end="10:00", group=world.other_group, module=world.module,
              lesson_type=world.lecture, teacher=world.teacher, room=world.r1)
    seed.item(day=MONDAY, start="10:15", end="11:30", group=world.other_group, module=world.module,
              lesson_type=world.lecture, teacher=world.teacher, room=world.r2)

    proposal = candidate(world, start_time="10:10", end_time="10:20", room_id=world.r2.id)
    result = RulesService(db).validate_upsert(proposal)
    assert any("Only 10 min before" in error and "20 min required" in error for error in result.errors)

    report = RulesService(db).validate_draft(proposal).report
    assert "travel-official-before" in [issue.code for issue in report.issues]


def test_enough_gap_between_buildings_passes(db, seed, world):
    seed.item(day=MONDAY, start="08:30", end="10:00", group=world.group, module=world.module,
              lesson_type=world.lecture, teacher=world.teacher, room=world.r1)

    result = RulesService(db).validate_upsert(
        candidate(world, start_time="10:20", end_time="11:50", room_id=world.r2.id)
    )
    assert result.errors == []


def test_working_hours_produce_warning(db, seed, world):
    seed.working_hours(world.teacher, "12:00", "18:00")

    result = RulesService(db).validate_upsert(candidate(world))
    assert result.errors == []
    assert result.warnings == ["08:30-10:00 is outside the teacher's working hours (12:00-18:00)"]

    inside = RulesService(db).validate_upsert(candidate(world, start_time="12:00", end_time="13:30"))
    assert inside.warnings == []


def test_working_hours_ignored_when_type_needs_no_teacher(db, seed, world):
    seed.working_hours(world.teacher, "12:00", "18:00")
    self_paced = seed.lesson_type("SELF", requires_teacher=False)

    result = RulesService(db).validate_upsert(candidate(world, lesson_type_id=self_paced.id))
    assert result.errors == []
    assert result.warnings == []

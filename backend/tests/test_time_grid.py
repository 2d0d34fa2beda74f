from datetime import date, time

from campus_scheduler.services.time_grid import (
    SlotWindow,
    effective_slots,
    is_working_day,
    start_of_week,
    week_dates,
    windows_overlap,
)


def test_effective_slots_fall_back_to_global_grid(db, seed):
    course = seed.course()
    seed.slot("10:15", "11:45", sort_order=2)
    seed.slot("08:30", "10:00", sort_order=1)
    seed.slot("12:00", "13:30", sort_order=3, is_active=False)

    slots = effective_slots(db, course.id)

    assert [slot.label for slot in slots] == ["08:30-10:00", "10:15-11:45"]


def test_course_slots_override_global_slots_entirely(db, seed):
    course = seed.course()
    other = seed.course("Data Science")
    seed.slot("08:30", "10:00")
    seed.slot("09:00", "10:30", course=course, sort_order=1)
    seed.slot("10:45", "12:15", course=course, sort_order=1)

    assert [slot.label for slot in effective_slots(db, course.id)] == ["09:00-10:30", "10:45-12:15"]
    assert [slot.label for slot in effective_slots(db, other.id)] == ["08:30-10:00"]


def test_working_day_defaults_and_exceptions(db, seed):
    monday = date(2025, 3, 10)
    saturday = date(2025, 3, 15)
    holiday = date(2025, 3, 11)
    seed.calendar(holiday, working=False, name="Holiday")
    seed.calendar(saturday, working=True, name="Make-up day")

    assert is_working_day(db, monday) is True
    assert is_working_day(db, holiday) is False
    assert is_working_day(db, saturday) is True
    assert is_working_day(db, date(2025, 3, 16)) is False


def test_week_helpers():
    assert start_of_week(date(2025, 3, 13)) == date(2025, 3, 10)
    days = week_dates(date(2025, 3, 10))
    assert days[0] == date(2025, 3, 10)
    assert days[-1] == date(2025, 3, 16)


def test_slot_window_overlap_is_half_open():
    slot = SlotWindow(time(8, 30), time(10, 0))
    assert slot.overlaps(time(9, 0), time(9, 30))
    assert not slot.overlaps(time(10, 0), time(11, 0))
    assert slot.contains(time(8, 30), time(10, 0))
    assert not windows_overlap(time(7, 0), time(8, 30), time(8, 30), time(10, 0))

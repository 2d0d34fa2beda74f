from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.models.calendar import CalendarException, TimeSlot
from campus_scheduler.schemas.common import format_clock

DAYS_IN_WEEK = 7
WEEKEND_DAYS = {5, 6}


@dataclass(frozen=True)
class SlotWindow:
    start: time
    end: time

    @property
    def label(self) -> str:
        return f"{format_clock(self.start)}-{format_clock(self.end)}"

    def contains(self, start: time, end: time) -> bool:
        return self.start <= start and end <= self.end

    def overlaps(self, start: time, end: time) -> bool:
        return windows_overlap(self.start, self.end, start, end)


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def windows_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and start_b < end_a


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_dates(week_start: date) -> list[date]:
    return [week_start + timedelta(days=offset) for offset in range(DAYS_IN_WEEK)]


def effective_slots(db: Session, course_id: int | None) -> list[SlotWindow]:
    """Active slots for a course, falling back to the global grid when the course has none."""
    order = (TimeSlot.sort_order, TimeSlot.start_time)
    if course_id is not None:
        course_rows = list(
            db.execute(
                select(TimeSlot)
                .where(TimeSlot.course_id == course_id, TimeSlot.is_active.is_(True))
                .order_by(*order)
            ).scalars()
        )
        if course_rows:
            return [SlotWindow(row.start_time, row.end_time) for row in course_rows]
    global_rows = db.execute(
        select(TimeSlot)
        .where(TimeSlot.course_id.is_(None), TimeSlot.is_active.is_(True))
        .order_by(*order)
    ).scalars()
    return [SlotWindow(row.start_time, row.end_time) for row in global_rows]


def load_calendar_exceptions(db: Session, start: date, end: date) -> dict[date, bool]:
    """Working-day overrides in the half-open range [start, end)."""
    rows = db.execute(
        select(CalendarException).where(CalendarException.date >= start, CalendarException.date < end)
    ).scalars()
    return {row.date: row.is_working_day for row in rows}


def resolve_working_day(day: date, exceptions: dict[date, bool]) -> bool:
    if day in exceptions:
        return exceptions[day]
    return day.weekday() not in WEEKEND_DAYS


def is_working_day(db: Session, day: date, course_id: int | None = None) -> bool:
    # Calendar exceptions are institution wide; course_id is accepted for callers that scope by course.
    return resolve_working_day(day, load_calendar_exceptions(db, day, day + timedelta(days=1)))

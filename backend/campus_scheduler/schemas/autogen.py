from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class DayPreset(str, Enum):
    mon_fri = "MonFri"
    mon_sat = "MonSat"
    mon_sun = "MonSun"

    def allows(self, day: dt.date) -> bool:
        weekday = day.weekday()
        if self is DayPreset.mon_fri:
            return weekday < 5
        if self is DayPreset.mon_sat:
            return weekday < 6
        return True


class AutogenOptions(BaseModel):
    clear_existing: bool = True
    course_id: int | None = None
    group_id: int | None = None
    teacher_id: int | None = None
    allow_on_days_off: bool = False
    day_preset: DayPreset = DayPreset.mon_fri


class AutogenWeekRequest(AutogenOptions):
    week_start: dt.date


class AutogenMonthRequest(AutogenOptions):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)


class AutogenCourseRequest(AutogenOptions):
    date_from: dt.date
    date_to: dt.date

    @model_validator(mode="after")
    def validate_range(self) -> "AutogenCourseRequest":
        if self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self


class GapDetail(BaseModel):
    group_id: int
    group_name: str
    date: dt.date
    start_time: str
    end_time: str
    slot_label: str
    reason: str


class AutogenResult(BaseModel):
    created: int = 0
    skipped: int = 0
    warnings: list[str] = Field(default_factory=list)
    gap_details: list[GapDetail] = Field(default_factory=list)
    weeks_processed: int = 0

    def merge(self, other: "AutogenResult") -> None:
        self.created += other.created
        self.skipped += other.skipped
        self.warnings.extend(other.warnings)
        self.gap_details.extend(other.gap_details)
        self.weeks_processed += other.weeks_processed

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from campus_scheduler.models.schedule import DraftStatus
from campus_scheduler.schemas.common import clock_from_orm, parse_clock, validate_clock_string


class PlacementBase(BaseModel):
    id: int | None = None
    date: dt.date
    start_time: str
    end_time: str
    lesson_type_id: int
    group_id: int
    module_id: int
    module_topic_id: int | None = None
    teacher_id: int | None = None
    room_id: int | None = None
    is_self_study: bool = False
    is_locked: bool = False
    override_non_working_day: bool = False

    # Window order is checked by the rules service so it can be reported as a structured error.
    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return validate_clock_string(value)

    @property
    def start_clock(self) -> dt.time:
        return parse_clock(self.start_time)

    @property
    def end_clock(self) -> dt.time:
        return parse_clock(self.end_time)


class ScheduleItemUpsert(PlacementBase):
    pass


class DraftUpsert(PlacementBase):
    batch_key: str | None = Field(default=None, max_length=200)
    ignore_validation_errors: bool = False


class PlacementOut(BaseModel):
    id: int
    date: dt.date
    day_of_week: int
    start_time: str
    end_time: str
    lesson_type_id: int
    group_id: int
    module_id: int
    module_topic_id: int | None = None
    teacher_id: int | None = None
    room_id: int | None = None
    is_self_study: bool = False
    is_locked: bool

    model_config = {"from_attributes": True}

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def render_time(cls, value: object) -> object:
        return clock_from_orm(value)


class ScheduleItemOut(PlacementOut):
    pass


class RescheduleInfo(BaseModel):
    source_item_id: int
    previous_lesson_type_id: int


class DraftOut(PlacementOut):
    status: DraftStatus
    published_item_id: int | None = None
    batch_key: str | None = None
    validation_warnings: str | None = None
    reschedule: RescheduleInfo | None = None


class ValidationIssue(BaseModel):
    severity: Literal["error", "warning"]
    code: str
    title: str
    description: str


class ValidationReport(BaseModel):
    generated_at: dt.datetime
    issues: list[ValidationIssue] = Field(default_factory=list)


class ValidationResult(BaseModel):
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    report: ValidationReport | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


class UpsertResult(BaseModel):
    id: int
    warnings: list[str] = Field(default_factory=list)


class WeekScopeRequest(BaseModel):
    week_start: dt.date
    course_id: int | None = None
    group_id: int | None = None


class ClearWeekResult(BaseModel):
    deleted: int


class PublishWeekRequest(BaseModel):
    week_start: dt.date
    teacher_id: int | None = None


class PublishWeekResult(BaseModel):
    created: int = 0
    skipped: int = 0
    warnings: list[str] = Field(default_factory=list)


class ApproveWeekRequest(BaseModel):
    week_start: dt.date
    teacher_id: int


class ApproveWeekResult(BaseModel):
    updated: int

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, field_validator, model_validator

from campus_scheduler.schemas.common import clock_from_orm, parse_time_to_minutes, validate_clock_string


class ClockWindow(BaseModel):
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time(cls, value: object) -> object:
        value = clock_from_orm(value)
        if isinstance(value, str):
            return validate_clock_string(value)
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "ClockWindow":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class BuildingUpsert(BaseModel):
    id: int | None = None
    name: str = Field(min_length=1, max_length=200)
    address: str | None = Field(default=None, max_length=300)


class BuildingOut(BaseModel):
    id: int
    name: str
    address: str | None = None

    model_config = {"from_attributes": True}


class BuildingTravelUpsert(BaseModel):
    from_building_id: int
    to_building_id: int
    minutes: int = 0


class BuildingTravelOut(BaseModel):
    id: int
    from_building_id: int
    to_building_id: int
    minutes: int

    model_config = {"from_attributes": True}


class TimeSlotEntry(ClockWindow):
    is_active: bool = True


class TimeSlotBulkSave(BaseModel):
    course_id: int | None = None
    slots: list[TimeSlotEntry] = Field(default_factory=list, max_length=48)


class TimeSlotOut(ClockWindow):
    id: int
    course_id: int | None = None
    sort_order: int
    is_active: bool

    model_config = {"from_attributes": True}


class CalendarExceptionUpsert(BaseModel):
    date: dt.date
    is_working_day: bool
    name: str = Field(default="", max_length=200)


class CalendarExceptionOut(CalendarExceptionUpsert):
    id: int

    model_config = {"from_attributes": True}


class LunchConfigUpsert(ClockWindow):
    course_id: int | None = None


class LunchConfigOut(LunchConfigUpsert):
    id: int

    model_config = {"from_attributes": True}


class ModulePlanUpsert(BaseModel):
    course_id: int
    module_id: int
    target_hours: int = Field(ge=0, le=10_000)
    is_active: bool = True


class ModulePlanOut(BaseModel):
    id: int
    course_id: int
    module_id: int
    target_hours: int
    scheduled_hours: int
    is_active: bool

    model_config = {"from_attributes": True}


class ModuleSequenceSave(BaseModel):
    main_module_ids: list[int] = Field(default_factory=list, max_length=500)
    filler_module_ids: list[int] = Field(default_factory=list, max_length=500)


class ModuleSequenceOut(BaseModel):
    course_id: int
    main_module_ids: list[int]
    filler_module_ids: list[int]


class WorkingHourEntry(ClockWindow):
    day_of_week: int = Field(ge=0, le=6)


class TeacherWorkingHoursSave(BaseModel):
    windows: list[WorkingHourEntry] = Field(default_factory=list, max_length=100)


class WorkingHourOut(WorkingHourEntry):
    id: int
    teacher_id: int

    model_config = {"from_attributes": True}


class LessonTypeUpsert(BaseModel):
    id: int | None = None
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    is_active: bool = True
    requires_room: bool = True
    requires_teacher: bool = True
    blocks_room: bool = True
    blocks_teacher: bool = True
    count_in_plan: bool = True
    count_in_load: bool = True
    preferred_first_in_week: bool = False
    css_key: str | None = Field(default=None, max_length=50)


class LessonTypeOut(LessonTypeUpsert):
    id: int

    model_config = {"from_attributes": True}


class CourseUpsert(BaseModel):
    id: int | None = None
    name: str = Field(min_length=1, max_length=200)
    duration_weeks: int = Field(default=1, ge=1, le=200)


class CourseOut(CourseUpsert):
    id: int

    model_config = {"from_attributes": True}


class GroupUpsert(BaseModel):
    id: int | None = None
    name: str = Field(min_length=1, max_length=100)
    students_count: int = Field(default=0, ge=0, le=10_000)
    course_id: int


class GroupOut(GroupUpsert):
    id: int

    model_config = {"from_attributes": True}


class RoomUpsert(BaseModel):
    id: int | None = None
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(default=30, ge=1, le=10_000)
    building_id: int


class RoomOut(RoomUpsert):
    id: int

    model_config = {"from_attributes": True}


class ModuleUpsert(BaseModel):
    id: int | None = None
    code: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=300)
    course_id: int
    extra_course_ids: list[int] = Field(default_factory=list, max_length=100)
    building_ids: list[int] = Field(default_factory=list, max_length=100)
    room_ids: list[int] = Field(default_factory=list, max_length=500)


class ModuleOut(BaseModel):
    id: int
    code: str
    title: str
    credits: float
    course_id: int
    extra_course_ids: list[int] = Field(default_factory=list)
    building_ids: list[int] = Field(default_factory=list)
    room_ids: list[int] = Field(default_factory=list)


class ModuleTopicUpsert(BaseModel):
    id: int | None = None
    topic_code: str = Field(min_length=1, max_length=50)
    title: str = Field(default="", max_length=500)
    lesson_type_id: int | None = None
    order: int = Field(default=0, ge=0)
    auditorium_hours: int = Field(default=0, ge=0, le=10_000)
    self_study_hours: int = Field(default=0, ge=0, le=10_000)
    self_study_by_supervisor: bool = False
    is_inter_assembly: bool = False


class ModuleTopicOut(ModuleTopicUpsert):
    id: int
    module_id: int
    total_hours: int

    model_config = {"from_attributes": True}


class TopicReorder(BaseModel):
    topic_ids: list[int] = Field(min_length=1, max_length=2000)


class TeacherLoadEntry(BaseModel):
    course_id: int
    target_hours: int = Field(default=0, ge=0, le=10_000)
    is_active: bool = True


class TeacherUpsert(BaseModel):
    id: int | None = None
    full_name: str = Field(min_length=1, max_length=200)
    scientific_degree: str | None = Field(default=None, max_length=200)
    academic_title: str | None = Field(default=None, max_length=200)
    module_ids: list[int] = Field(default_factory=list, max_length=500)
    supervised_module_ids: list[int] = Field(default_factory=list, max_length=500)
    loads: list[TeacherLoadEntry] = Field(default_factory=list, max_length=100)


class TeacherLoadOut(TeacherLoadEntry):
    scheduled_hours: int

    model_config = {"from_attributes": True}


class TeacherOut(BaseModel):
    id: int
    full_name: str
    scientific_degree: str | None = None
    academic_title: str | None = None
    module_ids: list[int] = Field(default_factory=list)
    supervised_module_ids: list[int] = Field(default_factory=list)
    loads: list[TeacherLoadOut] = Field(default_factory=list)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from campus_scheduler.models.course import Group
from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.module import Module, ModuleBuilding, ModuleRoom
from campus_scheduler.models.room import Room
from campus_scheduler.models.schedule import DraftStatus, ScheduleItem, TeacherDraftItem
from campus_scheduler.models.teacher import Teacher, TeacherWorkingHour
from campus_scheduler.schemas.common import format_clock
from campus_scheduler.schemas.schedule import PlacementBase, ValidationIssue, ValidationReport, ValidationResult
from campus_scheduler.services.time_grid import effective_slots, is_working_day
from campus_scheduler.services.travel import TravelMatrix, TravelStop

Origin = Literal["official", "draft"]


@dataclass
class _IssueCollector:
    issues: list[ValidationIssue] = field(default_factory=list)

    def error(self, code: str, title: str, description: str) -> None:
        self.issues.append(ValidationIssue(severity="error", code=code, title=title, description=description))

    def warning(self, code: str, title: str, description: str) -> None:
        self.issues.append(ValidationIssue(severity="warning", code=code, title=title, description=description))

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    def to_result(self, *, with_report: bool) -> ValidationResult:
        errors = [issue.description for issue in self.issues if issue.severity == "error"]
        warnings = [issue.description for issue in self.issues if issue.severity == "warning"]
        report = None
        if with_report:
            report = ValidationReport(generated_at=datetime.now(timezone.utc), issues=list(self.issues))
        return ValidationResult(errors=errors, warnings=warnings, report=report)


class RulesService:
    """Hard-constraint and policy checks for a single proposed placement.

    ``validate_upsert`` checks against the committed schedule only. ``validate_draft``
    additionally checks against other drafts and returns a structured report whose
    issues are tagged by origin, so callers can tell a clash with the published
    schedule apart from a clash with another draft.
    """

    def __init__(self, db: Session, *, travel: TravelMatrix | None = None) -> None:
        self.db = db
        self.travel = travel or TravelMatrix.load(db)

    def validate_upsert(self, candidate: PlacementBase) -> ValidationResult:
        issues = self._validate(candidate, include_drafts=False)
        return issues.to_result(with_report=False)

    def validate_draft(self, candidate: PlacementBase) -> ValidationResult:
        issues = self._validate(candidate, include_drafts=True)
        return issues.to_result(with_report=True)

    def _validate(self, candidate: PlacementBase, *, include_drafts: bool) -> _IssueCollector:
        issues = _IssueCollector()
        db = self.db

        group = db.get(Group, candidate.group_id)
        if group is None:
            issues.error("group-not-found", "Group not found", f"Group {candidate.group_id} does not exist")
        module = db.get(Module, candidate.module_id)
        if module is None:
            issues.error("module-not-found", "Module not found", f"Module {candidate.module_id} does not exist")
        lesson_type = db.get(LessonType, candidate.lesson_type_id)
        if lesson_type is None:
            issues.error(
                "lesson-type-not-found",
                "Lesson type not found",
                f"Lesson type {candidate.lesson_type_id} does not exist",
            )
        if candidate.teacher_id is not None and db.get(Teacher, candidate.teacher_id) is None:
            issues.error("teacher-not-found", "Teacher not found", f"Teacher {candidate.teacher_id} does not exist")
        room: Room | None = None
        if lesson_type is not None and lesson_type.requires_room:
            if candidate.room_id is None:
                issues.error("room-required", "Room required", f"Lesson type {lesson_type.code} requires a room")
            else:
                room = db.get(Room, candidate.room_id)
                if room is None:
                    issues.error("room-not-found", "Room not found", f"Room {candidate.room_id} does not exist")
        if issues.has_errors:
            return issues

        start, end = candidate.start_clock, candidate.end_clock
        window = f"{candidate.start_time}-{candidate.end_time}"
        if end <= start:
            issues.error("time-window-invalid", "Invalid time window", f"End time must be after start time ({window})")
            return issues

        slots = effective_slots(db, group.course_id)
        if slots and not any(slot.start == start and slot.end == end for slot in slots):
            allowed = ", ".join(slot.label for slot in slots)
            issues.error(
                "slot-not-allowed",
                "Time outside the slot grid",
                f"{window} does not match any configured slot ({allowed})",
            )

        if not candidate.override_non_working_day and not is_working_day(db, candidate.date, group.course_id):
            issues.warning(
                "non-working-day",
                "Non-working day",
                f"{candidate.date.isoformat()} is not a working day",
            )

        if room is not None:
            self._check_room(issues, room=room, group=group, module=module)

        self._check_overlaps(issues, candidate, lesson_type=lesson_type, group=group, include_drafts=include_drafts)

        if room is not None and lesson_type.blocks_room:
            self._check_travel(issues, candidate, room=room, include_drafts=include_drafts)

        if lesson_type.requires_teacher and candidate.teacher_id is not None:
            self._check_working_hours(issues, candidate)
        return issues

    def _check_room(self, issues: _IssueCollector, *, room: Room, group: Group, module: Module) -> None:
        if room.capacity < group.students_count:
            issues.error(
                "room-capacity",
                "Room too small",
                f"Room {room.name} seats {room.capacity}, group {group.name} has {group.students_count} students",
            )
        allowed_buildings = set(
            self.db.execute(select(ModuleBuilding.building_id).where(ModuleBuilding.module_id == module.id)).scalars()
        )
        if allowed_buildings and room.building_id not in allowed_buildings:
            issues.error(
                "building-not-allowed",
                "Building not allowed",
                f"Module {module.code} may not be taught in the building of room {room.name}",
            )
        allowed_rooms = set(
            self.db.execute(select(ModuleRoom.room_id).where(ModuleRoom.module_id == module.id)).scalars()
        )
        if allowed_rooms and room.id not in allowed_rooms:
            issues.error(
                "room-not-allowed",
                "Room not allowed",
                f"Module {module.code} may not be taught in room {room.name}",
            )

    def _overlapping(self, model, candidate: PlacementBase, lesson_type: LessonType, *, exclude_id: int | None):
        resource_filters = [model.group_id == candidate.group_id]
        if lesson_type.blocks_room and candidate.room_id is not None:
            resource_filters.append(model.room_id == candidate.room_id)
        if lesson_type.blocks_teacher and candidate.teacher_id is not None:
            resource_filters.append(model.teacher_id == candidate.teacher_id)
        statement = select(model).where(
            model.date == candidate.date,
            model.start_time < candidate.end_clock,
            model.end_time > candidate.start_clock,
            or_(*resource_filters),
        )
        if exclude_id is not None:
            statement = statement.where(model.id != exclude_id)
        if model is TeacherDraftItem:
            statement = statement.where(TeacherDraftItem.status == DraftStatus.draft)
        return list(self.db.execute(statement.order_by(model.start_time, model.id)).scalars())

    def _check_overlaps(
        self,
        issues: _IssueCollector,
        candidate: PlacementBase,
        *,
        lesson_type: LessonType,
        group: Group,
        include_drafts: bool,
    ) -> None:
        own: Origin = "draft" if include_drafts else "official"
        sources: list[tuple[Origin, list]] = [
            ("official", self._overlapping(
                ScheduleItem, candidate, lesson_type, exclude_id=candidate.id if own == "official" else None
            )),
        ]
        if include_drafts:
            sources.append(("draft", self._overlapping(TeacherDraftItem, candidate, lesson_type, exclude_id=candidate.id)))

        for origin, items in sources:
            where = "published schedule" if origin == "official" else "another draft"
            for item in items:
                label = self._describe(item)
                if item.group_id == candidate.group_id:
                    issues.error(
                        f"conflict-{origin}-group",
                        "Group busy",
                        f"Group {group.name} is busy with {label} ({where})",
                    )
                if lesson_type.blocks_teacher and candidate.teacher_id is not None and item.teacher_id == candidate.teacher_id:
                    issues.error(
                        f"conflict-{origin}-teacher",
                        "Teacher busy",
                        f"Teacher is busy with {label} ({where})",
                    )
                if lesson_type.blocks_room and candidate.room_id is not None and item.room_id == candidate.room_id:
                    issues.error(
                        f"conflict-{origin}-room",
                        "Room busy",
                        f"Room is occupied by {label} ({where})",
                    )

    def _check_travel(self, issues: _IssueCollector, candidate: PlacementBase, *, room: Room, include_drafts: bool) -> None:
        stop = TravelStop(candidate.start_clock, candidate.end_clock, room.building_id)
        own: Origin = "draft" if include_drafts else "official"
        models: list[tuple[Origin, type]] = [("official", ScheduleItem)]
        if include_drafts:
            models.append(("draft", TeacherDraftItem))

        for origin, model in models:
            people = [model.group_id == candidate.group_id]
            if candidate.teacher_id is not None:
                people.append(model.teacher_id == candidate.teacher_id)
            statement = (
                select(model, Room.building_id)
                .join(Room, Room.id == model.room_id)
                .join(LessonType, LessonType.id == model.lesson_type_id)
                .where(
                    model.date == candidate.date,
                    or_(*people),
                    LessonType.requires_room.is_(True),
                    LessonType.blocks_room.is_(True),
                )
            )
            if origin == own and candidate.id is not None:
                statement = statement.where(model.id != candidate.id)
            if model is TeacherDraftItem:
                statement = statement.where(TeacherDraftItem.status == DraftStatus.draft)

            for item, building_id in self.db.execute(statement.order_by(model.start_time)).all():
                violation = self.travel.check_gap(stop, TravelStop(item.start_time, item.end_time, building_id))
                if violation is None:
                    continue
                issues.error(
                    f"travel-{origin}-{violation.direction}",
                    "Not enough travel time",
                    f"Only {violation.gap_minutes} min {violation.direction} {self._describe(item)} "
                    f"in another building, {violation.required_minutes} min required",
                )

    def _check_working_hours(self, issues: _IssueCollector, candidate: PlacementBase) -> None:
        windows = list(
            self.db.execute(
                select(TeacherWorkingHour).where(
                    TeacherWorkingHour.teacher_id == candidate.teacher_id,
                    TeacherWorkingHour.day_of_week == candidate.date.weekday(),
                )
            ).scalars()
        )
        if not windows:
            return
        start, end = candidate.start_clock, candidate.end_clock
        if any(window.start_time <= start and end <= window.end_time for window in windows):
            return
        available = ", ".join(
            f"{format_clock(window.start_time)}-{format_clock(window.end_time)}" for window in windows
        )
        issues.warning(
            "teacher-working-hours",
            "Outside working hours",
            f"{candidate.start_time}-{candidate.end_time} is outside the teacher's working hours ({available})",
        )

    def _describe(self, item: ScheduleItem | TeacherDraftItem) -> str:
        module = self.db.get(Module, item.module_id)
        code = module.code if module is not None else f"module {item.module_id}"
        return f"{code} {format_clock(item.start_time)}-{format_clock(item.end_time)} on {item.date.isoformat()}"

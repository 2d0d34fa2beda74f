from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from time import perf_counter

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_scheduler.core.config import get_settings
from campus_scheduler.core.exceptions import AppError, SchedulerError
from campus_scheduler.models.calendar import LunchConfig
from campus_scheduler.models.course import Group
from campus_scheduler.models.lesson_type import BREAK_CODE, CANCELED_CODE, LessonType
from campus_scheduler.models.module import Module, ModuleBuilding, ModuleCourse, ModulePlan, ModuleRoom
from campus_scheduler.models.room import Room
from campus_scheduler.models.schedule import DraftStatus, ScheduleItem, TeacherDraftItem
from campus_scheduler.models.teacher import ModuleSupervisor, Teacher, TeacherModule, TeacherWorkingHour
from campus_scheduler.schemas.autogen import (
    AutogenCourseRequest,
    AutogenMonthRequest,
    AutogenOptions,
    AutogenResult,
    AutogenWeekRequest,
    GapDetail,
)
from campus_scheduler.schemas.common import format_clock
from campus_scheduler.services.module_sequencer import (
    CourseModuleOrder,
    FillerQueue,
    PrimaryModuleRotation,
    filler_seed,
    load_course_module_order,
)
from campus_scheduler.services.time_grid import (
    SlotWindow,
    effective_slots,
    load_calendar_exceptions,
    resolve_working_day,
    start_of_week,
    week_dates,
    windows_overlap,
)
from campus_scheduler.services.topic_allocator import (
    RemainingHours,
    SelfStudyPlan,
    TopicAllocator,
    TopicEntry,
    completed_hours,
    compute_remaining_hours,
)
from campus_scheduler.services.travel import TravelMatrix, TravelStop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LessonTypeFlags:
    id: int
    code: str
    name: str
    is_active: bool
    requires_room: bool
    blocks_room: bool
    count_in_plan: bool
    preferred_first_in_week: bool

    @classmethod
    def from_row(cls, row: LessonType) -> "LessonTypeFlags":
        return cls(
            id=row.id,
            code=row.code,
            name=row.name,
            is_active=row.is_active,
            requires_room=row.requires_room,
            blocks_room=row.blocks_room,
            count_in_plan=row.count_in_plan,
            preferred_first_in_week=row.preferred_first_in_week,
        )

    @property
    def travels(self) -> bool:
        return self.requires_room and self.blocks_room


@dataclass(frozen=True)
class BusySlot:
    group_id: int
    teacher_id: int | None
    room_id: int | None
    day: date
    start: time
    end: time
    # Only set when the lesson type requires and blocks a room.
    building_id: int | None
    module_id: int
    lesson_type_id: int


@dataclass(frozen=True)
class RoomInfo:
    id: int
    capacity: int
    building_id: int


@dataclass
class GenerationRun:
    """Mutable state of one week generation. Never shared between runs."""

    week_start: date
    options: AutogenOptions
    lesson_types: dict[int, LessonTypeFlags]
    break_type_id: int | None
    excluded_type_ids: set[int]
    study_type_ids: list[int]
    preferred_type_id: int | None
    calendar: dict[date, bool]
    topics: TopicAllocator
    self_study: SelfStudyPlan
    remaining: RemainingHours
    travel: TravelMatrix
    modules: dict[int, Module]
    teachers_by_module: dict[int, list[int]]
    supervisors_by_module: dict[int, list[int]]
    teacher_names: dict[int, str]
    working_hours: dict[int, dict[int, list[tuple[time, time]]]]
    rooms: list[RoomInfo]
    allowed_buildings: dict[int, set[int]]
    allowed_rooms: dict[int, set[int]]
    max_same_module_per_day: int
    plans_by_course: dict[int, list[int]]
    done: Counter[tuple[int, int]]
    busy: dict[date, list[BusySlot]] = field(default_factory=lambda: defaultdict(list))
    has_preferred: set[tuple[int, int]] = field(default_factory=set)
    type_cursor: int = 0
    result: AutogenResult = field(default_factory=lambda: AutogenResult(weeks_processed=1))
    warned: set[str] = field(default_factory=set)
    depleted_notified: set[tuple[int, int]] = field(default_factory=set)

    def warn(self, message: str) -> None:
        if message not in self.warned:
            self.warned.add(message)
            self.result.warnings.append(message)

    def add_busy(self, slot: BusySlot) -> None:
        self.busy[slot.day].append(slot)
        if slot.lesson_type_id == self.preferred_type_id:
            self.has_preferred.add((slot.group_id, slot.module_id))

    def is_working(self, day: date) -> bool:
        if not self.options.day_preset.allows(day):
            return False
        if self.options.allow_on_days_off:
            return True
        return resolve_working_day(day, self.calendar)

    def type_allowed(self, lesson_type_id: int | None) -> bool:
        flags = self.lesson_types.get(lesson_type_id) if lesson_type_id is not None else None
        return (
            flags is not None
            and flags.is_active
            and flags.count_in_plan
            and lesson_type_id not in self.excluded_type_ids
        )

    def counts(self, slot: BusySlot) -> bool:
        return slot.lesson_type_id not in self.excluded_type_ids

    def module_count_for_day(self, group_id: int, module_id: int, day: date) -> int:
        return sum(
            1
            for slot in self.busy.get(day, [])
            if slot.group_id == group_id and slot.module_id == module_id and self.counts(slot)
        )

    def types_on_previous_day(self, group_id: int, module_id: int, day: date) -> set[int]:
        previous = day - timedelta(days=1)
        return {
            slot.lesson_type_id
            for slot in self.busy.get(previous, [])
            if slot.group_id == group_id and slot.module_id == module_id and self.counts(slot)
        }

    def teacher_fits(self, teacher_id: int, day: date, start: time, end: time) -> bool:
        windows = self.working_hours.get(teacher_id)
        if not windows:
            return True
        return any(window_start <= start and end <= window_end for window_start, window_end in windows.get(day.weekday(), []))

    def candidate_rooms(self, module_id: int, students: int) -> list[RoomInfo]:
        buildings = self.allowed_buildings.get(module_id, set())
        allowed = self.allowed_rooms.get(module_id, set())
        return [
            room
            for room in self.rooms
            if room.capacity >= students
            and (not buildings or room.building_id in buildings)
            and (not allowed or room.id in allowed)
        ]

    def module_label(self, module_id: int) -> str:
        module = self.modules.get(module_id)
        return module.code if module is not None else f"#{module_id}"

    def teacher_label(self, teacher_id: int) -> str:
        return self.teacher_names.get(teacher_id) or f"#{teacher_id}"


@dataclass
class DayState:
    group: Group
    day: date
    slots: list[SlotWindow]
    order: CourseModuleOrder
    reasons: dict[SlotWindow, list[str]] = field(default_factory=lambda: defaultdict(list))
    attempted: set[int] = field(default_factory=set)

    def record(self, slot: SlotWindow, reason: str) -> None:
        if reason not in self.reasons[slot]:
            self.reasons[slot].append(reason)

    def record_all(self, reason: str) -> None:
        for slot in self.slots:
            self.record(slot, reason)


def _slot_taken(run: GenerationRun, state: DayState, slot: SlotWindow) -> bool:
    return any(
        busy.group_id == state.group.id and slot.overlaps(busy.start, busy.end)
        for busy in run.busy.get(state.day, [])
    )


def _free_slots(run: GenerationRun, state: DayState) -> list[SlotWindow]:
    return [slot for slot in state.slots if not _slot_taken(run, state, slot)]


def _pick_lesson_type(run: GenerationRun, group_id: int, module_id: int, day: date) -> tuple[int | None, TopicEntry | None]:
    topic = run.topics.peek_next_topic(group_id, module_id)
    if topic is not None and run.type_allowed(topic.lesson_type_id):
        return topic.lesson_type_id, topic

    previous_types = run.types_on_previous_day(group_id, module_id, day)
    preferred = run.preferred_type_id
    if (
        preferred is not None
        and (group_id, module_id) not in run.has_preferred
        and run.type_allowed(preferred)
        and preferred not in previous_types
    ):
        return preferred, None

    study = run.study_type_ids
    for _ in range(len(study)):
        candidate = study[run.type_cursor % len(study)]
        run.type_cursor += 1
        if len(study) > 1 and candidate in previous_types:
            continue
        return candidate, None
    if study:
        return study[0], None
    if preferred is not None:
        return preferred, None
    return next(iter(run.lesson_types), None), None


def _pick_self_study(run: GenerationRun, group_id: int, module_id: int, day: date) -> tuple[int | None, TopicEntry]:
    """Next supervised self-study topic; its own lesson type wins when it can be generated."""
    topic = run.self_study.next_topic(group_id, module_id)
    if run.type_allowed(topic.lesson_type_id):
        return topic.lesson_type_id, topic
    lesson_type_id, _ = _pick_lesson_type(run, group_id, module_id, day)
    return lesson_type_id, topic

def _travel_conflict(
    run: GenerationRun,
    *,
    day: date,
    group_id: int,
    teacher_id: int,
    slot: SlotWindow,
    room: RoomInfo,
) -> bool:
    stop = TravelStop(slot.start, slot.end, room.building_id)
    for busy in run.busy.get(day, []):
        if busy.building_id is None:
            continue
        if busy.group_id != group_id and busy.teacher_id != teacher_id:
            continue
        if run.travel.check_gap(stop, TravelStop(busy.start, busy.end, busy.building_id)) is not None:
            return True
    return False


def _create_draft(
    db: Session,
    run: GenerationRun,
    state: DayState,
    *,
    module_id: int,
    slot: SlotWindow,
    lesson_type_id: int,
    teacher_id: int | None,
    room: RoomInfo | None,
    topic: TopicEntry | None,
    is_self_study: bool = False,
) -> None:
    db.add(
        TeacherDraftItem(
            date=state.day,
            day_of_week=state.day.weekday(),
            start_time=slot.start,
            end_time=slot.end,
            group_id=state.group.id,
            module_id=module_id,
            module_topic_id=topic.id if topic is not None else None,
            teacher_id=teacher_id,
            room_id=room.id if room is not None else None,
            lesson_type_id=lesson_type_id,
            status=DraftStatus.draft,
            is_locked=False,
            is_self_study=is_self_study,
        )
    )
    flags = run.lesson_types.get(lesson_type_id)
    run.add_busy(
        BusySlot(
            group_id=state.group.id,
            teacher_id=teacher_id,
            room_id=room.id if room is not None else None,
            day=state.day,
            start=slot.start,
            end=slot.end,
            building_id=room.building_id if room is not None and flags is not None and flags.travels else None,
            module_id=module_id,
            lesson_type_id=lesson_type_id,
        )
    )


def _try_place_module(
    db: Session,
    run: GenerationRun,
    state: DayState,
    module_id: int,
    *,
    rotation: PrimaryModuleRotation | None = None,
    allow_repeat_previous_day: bool = False,
    allow_extra_same_day: bool = False,
) -> bool:
    group = state.group
    label = run.module_label(module_id)
    is_filler = state.order.is_filler(module_id)

    if not _free_slots(run, state):
        return False
    if not is_filler and run.remaining.get(group.id, module_id) <= 0:
        return False
    if module_id not in run.modules:
        run.warn(f"Module #{module_id} from the plan of group {group.name} no longer exists")
        run.result.skipped += 1
        return False

    self_study = run.self_study.remaining(group.id, module_id) > 0

    if not self_study and run.topics.topics_depleted(group.id, module_id):
        run.remaining.exhaust(group.id, module_id)
        if (group.id, module_id) not in run.depleted_notified:
            run.depleted_notified.add((group.id, module_id))
            run.warn(f"Topics of module {label} are exhausted for group {group.name}; module skipped")
        state.record_all(f"topics exhausted for module {label}")
        return False

    if not allow_extra_same_day and run.module_count_for_day(group.id, module_id, state.day) >= run.max_same_module_per_day:
        state.record_all(f"module {label} already has {run.max_same_module_per_day} sessions on {state.day.isoformat()}")
        return False

    if not is_filler and not allow_repeat_previous_day and run.types_on_previous_day(group.id, module_id, state.day):
        state.record_all(f"module {label} was already scheduled the previous day")
        return False

    if self_study:
        teacher_ids = run.supervisors_by_module.get(module_id, [])
        if not teacher_ids:
            reason = f"no supervisor assigned to module {label} (group {group.name}); self-study skipped"
            state.record_all(reason)
            run.warn(f"No supervisor assigned to module {label} (group {group.name}); self-study skipped")
            run.self_study.drop(group.id, module_id)
            run.result.skipped += 1
            return False
    else:
        teacher_ids = run.teachers_by_module.get(module_id, [])
    if not teacher_ids:
        reason = f"no teacher assigned to module {label} (group {group.name})"
        state.record_all(reason)
        run.warn(f"No teacher assigned to module {label} (group {group.name})")
        run.result.skipped += 1
        return False

    candidate_rooms = run.candidate_rooms(module_id, group.students_count)

    for slot in state.slots:
        if _slot_taken(run, state, slot):
            continue
        slot_issues: list[str] = []
        for teacher_id in teacher_ids:
            if not run.teacher_fits(teacher_id, state.day, slot.start, slot.end):
                slot_issues.append(f"teacher {run.teacher_label(teacher_id)} unavailable at {slot.label}")
                continue
            people_busy = any(
                busy.teacher_id == teacher_id and windows_overlap(busy.start, busy.end, slot.start, slot.end)
                for busy in run.busy.get(state.day, [])
            )
            if people_busy:
                slot_issues.append(f"teacher {run.teacher_label(teacher_id)} busy at {slot.label}")
                continue

            if self_study:
                lesson_type_id, topic = _pick_self_study(run, group.id, module_id, state.day)
            else:
                lesson_type_id, topic = _pick_lesson_type(run, group.id, module_id, state.day)
            if not run.type_allowed(lesson_type_id):
                flags = run.lesson_types.get(lesson_type_id) if lesson_type_id is not None else None
                name = flags.name if flags is not None else f"#{lesson_type_id}"
                slot_issues.append(f"lesson type {name} cannot be generated")
                continue
            flags = run.lesson_types[lesson_type_id]

            if not flags.requires_room:
                _create_draft(db, run, state, module_id=module_id, slot=slot, lesson_type_id=lesson_type_id,
                              teacher_id=teacher_id, room=None, topic=topic, is_self_study=self_study)
                _after_placement(run, state, module_id, topic, rotation, self_study=self_study)
                return True

            if not candidate_rooms:
                state.record(slot, f"no room fits module {label} (group {group.name})")
                run.warn(f"No room fits module {label} (group {group.name})")
                run.result.skipped += 1
                return False

            for room in candidate_rooms:
                room_busy = any(
                    busy.room_id == room.id and windows_overlap(busy.start, busy.end, slot.start, slot.end)
                    for busy in run.busy.get(state.day, [])
                )
                if room_busy:
                    continue
                if flags.travels and _travel_conflict(
                    run, day=state.day, group_id=group.id, teacher_id=teacher_id, slot=slot, room=room
                ):
                    slot_issues.append(f"not enough travel time to reach a free room at {slot.label}")
                    continue
                _create_draft(db, run, state, module_id=module_id, slot=slot, lesson_type_id=lesson_type_id,
                              teacher_id=teacher_id, room=room, topic=topic, is_self_study=self_study)
                _after_placement(run, state, module_id, topic, rotation, self_study=self_study)
                return True
            slot_issues.append(f"all rooms for module {label} are occupied at {slot.label}")

        for reason in slot_issues or [f"no free teacher/room combination for module {label} at {slot.label}"]:
            state.record(slot, reason)
    return False


def _after_placement(
    run: GenerationRun,
    state: DayState,
    module_id: int,
    topic: TopicEntry | None,
    rotation: PrimaryModuleRotation | None,
    *,
    self_study: bool = False,
) -> None:
    if self_study:
        run.self_study.consume(state.group.id, topic.id)
    elif topic is not None:
        run.topics.mark_topic_used(state.group.id, module_id, topic.id)
    run.result.created += 1
    run.has_preferred.add((state.group.id, module_id))
    run.remaining.consume(state.group.id, module_id)
    if rotation is not None and module_id in rotation.modules:
        rotation.advance_past(rotation.modules.index(module_id))


def _fill_with_remaining(
    db: Session,
    run: GenerationRun,
    state: DayState,
    *,
    relaxed: bool,
) -> None:
    for module_id in state.order.ordered:
        if not _free_slots(run, state):
            return
        if not relaxed and module_id in state.attempted:
            continue
        if run.remaining.get(state.group.id, module_id) <= 0:
            continue
        state.attempted.add(module_id)
        _try_place_module(
            db,
            run,
            state,
            module_id,
            allow_repeat_previous_day=relaxed,
            allow_extra_same_day=relaxed,
        )


def _gap_reason(run: GenerationRun, state: DayState, slot: SlotWindow) -> str:
    if state.reasons.get(slot):
        return "; ".join(state.reasons[slot])
    group = state.group
    with_hours = [module_id for module_id in state.order.ordered if run.remaining.get(group.id, module_id) > 0]
    if not with_hours:
        return f"group {group.name} has no modules with remaining hours"
    no_teachers = [run.module_label(module_id) for module_id in with_hours if not run.teachers_by_module.get(module_id)]
    if no_teachers:
        return f"no teacher assigned to modules: {', '.join(no_teachers)}"
    no_rooms = [
        run.module_label(module_id)
        for module_id in with_hours
        if not run.candidate_rooms(module_id, group.students_count)
    ]
    if no_rooms:
        return f"no room fits modules: {', '.join(no_rooms)}"
    return f"no module/teacher/room combination fits slot {slot.label}"


def _detect_gaps(run: GenerationRun, state: DayState) -> None:
    for slot in _free_slots(run, state):
        reason = _gap_reason(run, state, slot)
        run.result.warnings.append(
            f"Slot {slot.label} on {state.day.isoformat()} for group {state.group.name} left empty: {reason}"
        )
        run.result.gap_details.append(
            GapDetail(
                group_id=state.group.id,
                group_name=state.group.name,
                date=state.day,
                start_time=format_clock(slot.start),
                end_time=format_clock(slot.end),
                slot_label=slot.label,
                reason=reason,
            )
        )


def _seed_breaks(db: Session, run: GenerationRun, group: Group, slots: list[SlotWindow], lunch: LunchConfig | None) -> None:
    if run.break_type_id is None or lunch is None:
        return
    module_id = db.execute(
        select(Module.id).where(Module.course_id == group.course_id).order_by(Module.id).limit(1)
    ).scalar_one_or_none()
    if module_id is None:
        module_id = db.execute(
            select(ModuleCourse.module_id).where(ModuleCourse.course_id == group.course_id).order_by(ModuleCourse.id).limit(1)
        ).scalar_one_or_none()
    if module_id is None:
        return

    candidates = [slot for slot in slots if slot.contains(lunch.start_time, lunch.end_time)]
    if not candidates:
        candidates = [slot for slot in slots if slot.overlaps(lunch.start_time, lunch.end_time)]

    for day in week_dates(run.week_start):
        if not run.is_working(day):
            continue
        for slot in candidates:
            taken = any(
                busy.group_id == group.id and slot.overlaps(busy.start, busy.end)
                for busy in run.busy.get(day, [])
            )
            if taken:
                continue
            db.add(
                TeacherDraftItem(
                    date=day,
                    day_of_week=day.weekday(),
                    start_time=slot.start,
                    end_time=slot.end,
                    group_id=group.id,
                    module_id=module_id,
                    lesson_type_id=run.break_type_id,
                    status=DraftStatus.draft,
                    is_locked=False,
                )
            )
            run.add_busy(
                BusySlot(group.id, None, None, day, slot.start, slot.end, None, module_id, run.break_type_id)
            )


def _load_busy(db: Session, run: GenerationRun, week_end: date) -> None:
    room_buildings = {room.id: room.building_id for room in run.rooms}
    for model in (ScheduleItem, TeacherDraftItem):
        rows = db.execute(
            select(model).where(model.date >= run.week_start, model.date < week_end).order_by(model.id)
        ).scalars()
        for row in rows:
            flags = run.lesson_types.get(row.lesson_type_id)
            building_id = None
            if row.room_id is not None and flags is not None and flags.travels:
                building_id = room_buildings.get(row.room_id)
            run.add_busy(
                BusySlot(
                    group_id=row.group_id,
                    teacher_id=row.teacher_id,
                    room_id=row.room_id,
                    day=row.date,
                    start=row.start_time,
                    end=row.end_time,
                    building_id=building_id,
                    module_id=row.module_id,
                    lesson_type_id=row.lesson_type_id,
                )
            )


def _build_run(db: Session, request: AutogenWeekRequest, groups: list[Group]) -> GenerationRun:
    settings = get_settings()
    lesson_types = {row.id: LessonTypeFlags.from_row(row) for row in db.execute(select(LessonType).order_by(LessonType.id)).scalars()}
    by_code = {flags.code.upper(): flags for flags in lesson_types.values()}
    break_flags = by_code.get(BREAK_CODE)
    break_type_id = break_flags.id if break_flags is not None and break_flags.is_active else None
    excluded = {flags.id for code, flags in by_code.items() if code in (BREAK_CODE, CANCELED_CODE)}
    study = [
        flags.id
        for flags in lesson_types.values()
        if flags.is_active and flags.count_in_plan and flags.id not in excluded
    ]
    preferred = next(
        (
            flags.id
            for flags in lesson_types.values()
            if flags.preferred_first_in_week and flags.is_active and flags.id not in excluded
        ),
        None,
    )

    course_ids = sorted({group.course_id for group in groups})
    plans = list(
        db.execute(
            select(ModulePlan)
            .where(ModulePlan.course_id.in_(course_ids), ModulePlan.is_active.is_(True))
            .order_by(ModulePlan.id)
        ).scalars()
    )
    module_ids = sorted({plan.module_id for plan in plans})
    all_course_groups: dict[int, list[int]] = defaultdict(list)
    for group_id, course_id in db.execute(
        select(Group.id, Group.course_id).where(Group.course_id.in_(course_ids)).order_by(Group.id)
    ).all():
        all_course_groups[course_id].append(group_id)
    group_ids = [group_id for ids in all_course_groups.values() for group_id in ids]

    topics = TopicAllocator.load(db, module_ids=module_ids, group_ids=group_ids)
    self_study = SelfStudyPlan.load(db, module_ids=module_ids, group_ids=group_ids)
    done = completed_hours(db, group_ids=group_ids, excluded_type_ids={
        flags.id for flags in lesson_types.values() if not flags.count_in_plan
    })
    remaining = compute_remaining_hours(
        db, plans=plans, group_ids_by_course=dict(all_course_groups), allocator=topics, done=done,
        self_study=self_study,
    )

    modules = {row.id: row for row in db.execute(select(Module).where(Module.id.in_(module_ids))).scalars()}
    teachers_by_module: dict[int, list[int]] = defaultdict(list)
    link_query = select(TeacherModule).where(TeacherModule.module_id.in_(module_ids)).order_by(TeacherModule.teacher_id)
    if request.teacher_id is not None:
        link_query = link_query.where(TeacherModule.teacher_id == request.teacher_id)
    for link in db.execute(link_query).scalars():
        if link.teacher_id not in teachers_by_module[link.module_id]:
            teachers_by_module[link.module_id].append(link.teacher_id)
    supervisors_by_module: dict[int, list[int]] = defaultdict(list)
    supervisor_query = (
        select(ModuleSupervisor).where(ModuleSupervisor.module_id.in_(module_ids)).order_by(ModuleSupervisor.teacher_id)
    )
    if request.teacher_id is not None:
        supervisor_query = supervisor_query.where(ModuleSupervisor.teacher_id == request.teacher_id)
    for link in db.execute(supervisor_query).scalars():
        if link.teacher_id not in supervisors_by_module[link.module_id]:
            supervisors_by_module[link.module_id].append(link.teacher_id)
    teacher_names = {teacher.id: teacher.full_name for teacher in db.execute(select(Teacher)).scalars()}
    working_hours: dict[int, dict[int, list[tuple[time, time]]]] = defaultdict(lambda: defaultdict(list))
    for window in db.execute(select(TeacherWorkingHour)).scalars():
        working_hours[window.teacher_id][window.day_of_week].append((window.start_time, window.end_time))

    rooms = [
        RoomInfo(row.id, row.capacity, row.building_id)
        for row in db.execute(select(Room).order_by(Room.capacity, Room.id)).scalars()
    ]
    allowed_buildings: dict[int, set[int]] = defaultdict(set)
    for link in db.execute(select(ModuleBuilding).where(ModuleBuilding.module_id.in_(module_ids))).scalars():
        allowed_buildings[link.module_id].add(link.building_id)
    allowed_rooms: dict[int, set[int]] = defaultdict(set)
    for link in db.execute(select(ModuleRoom).where(ModuleRoom.module_id.in_(module_ids))).scalars():
        allowed_rooms[link.module_id].add(link.room_id)

    plans_by_course: dict[int, list[int]] = defaultdict(list)
    for plan in plans:
        plans_by_course[plan.course_id].append(plan.module_id)

    week_end = request.week_start + timedelta(days=7)
    run = GenerationRun(
        week_start=request.week_start,
        options=request,
        lesson_types=lesson_types,
        break_type_id=break_type_id,
        excluded_type_ids=excluded,
        study_type_ids=study,
        preferred_type_id=preferred,
        calendar=load_calendar_exceptions(db, request.week_start, week_end),
        topics=topics,
        self_study=self_study,
        remaining=remaining,
        travel=TravelMatrix.load(db, settings.default_travel_minutes),
        modules=modules,
        teachers_by_module=dict(teachers_by_module),
        supervisors_by_module=dict(supervisors_by_module),
        teacher_names=teacher_names,
        working_hours=working_hours,
        rooms=rooms,
        allowed_buildings=dict(allowed_buildings),
        allowed_rooms=dict(allowed_rooms),
        max_same_module_per_day=settings.max_same_module_per_day,
        plans_by_course=plans_by_course,
        done=done,
    )
    _load_busy(db, run, week_end)
    return run


def _generate_for_group(db: Session, run: GenerationRun, group: Group, lunches: dict[int | None, LunchConfig]) -> None:
    slots = effective_slots(db, group.course_id)
    if not slots:
        run.warn(f"No time slots configured for group {group.name}; group skipped")
        return

    _seed_breaks(db, run, group, slots, lunches.get(group.course_id) or lunches.get(None))

    order = load_course_module_order(db, group.course_id, run.plans_by_course.get(group.course_id, []))
    main = order.main
    completed_main = sum(run.done[(group.id, module_id)] for module_id in main)
    rotation = PrimaryModuleRotation(main, completed_main)

    for day in week_dates(run.week_start):
        if not run.is_working(day):
            continue
        state = DayState(group=group, day=day, slots=slots, order=order)

        primary = rotation.resolve(lambda module_id: run.remaining.get(group.id, module_id) > 0)
        if primary is not None:
            _, module_id = primary
            state.attempted.add(module_id)
            placed = _try_place_module(db, run, state, module_id, rotation=rotation)
            if (
                placed
                and run.remaining.get(group.id, module_id) > 0
                and run.module_count_for_day(group.id, module_id, day) < run.max_same_module_per_day
                and _free_slots(run, state)
            ):
                _try_place_module(db, run, state, module_id, rotation=rotation)

        if order.fillers and _free_slots(run, state):
            queue = FillerQueue(order.fillers, filler_seed(run.week_start, group.id, day))

            def place_filler(module_id: int) -> bool:
                if run.remaining.get(group.id, module_id) <= 0:
                    return False
                state.attempted.add(module_id)
                return _try_place_module(db, run, state, module_id)

            queue.drain(place_filler, has_free_slot=lambda: bool(_free_slots(run, state)))

        if _free_slots(run, state):
            _fill_with_remaining(db, run, state, relaxed=False)
        if _free_slots(run, state):
            _fill_with_remaining(db, run, state, relaxed=True)

        _detect_gaps(run, state)


def _generate_week(db: Session, request: AutogenWeekRequest) -> AutogenResult:
    if db.execute(select(LessonType.id).limit(1)).first() is None:
        raise SchedulerError("No lesson types configured")

    query = select(Group).order_by(Group.id)
    if request.course_id is not None:
        query = query.where(Group.course_id == request.course_id)
    if request.group_id is not None:
        query = query.where(Group.id == request.group_id)
    groups = list(db.execute(query).scalars())
    if not groups:
        return AutogenResult(warnings=["No groups found for the requested scope"], weeks_processed=1)

    week_end = request.week_start + timedelta(days=7)
    if request.clear_existing:
        db.execute(
            delete(TeacherDraftItem).where(
                TeacherDraftItem.group_id.in_([group.id for group in groups]),
                TeacherDraftItem.date >= request.week_start,
                TeacherDraftItem.date < week_end,
                TeacherDraftItem.is_locked.is_(False),
            )
        )

    run = _build_run(db, request, groups)
    lunches = {row.course_id: row for row in db.execute(select(LunchConfig)).scalars()}
    for group in groups:
        _generate_for_group(db, run, group, lunches)
    return run.result


def autogen_week(db: Session, request: AutogenWeekRequest) -> AutogenResult:
    started = perf_counter()
    logger.info(
        "AUTOGEN WEEK START | week_start=%s | course_id=%s | group_id=%s | teacher_id=%s | clear=%s | preset=%s",
        request.week_start,
        request.course_id,
        request.group_id,
        request.teacher_id,
        request.clear_existing,
        request.day_preset.value,
    )
    try:
        result = _generate_week(db, request)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "AUTOGEN WEEK FAILED | week_start=%s | course_id=%s | group_id=%s",
            request.week_start,
            request.course_id,
            request.group_id,
        )
        raise
    logger.info(
        "AUTOGEN WEEK COMPLETE | week_start=%s | created=%s | skipped=%s | warnings=%s | gaps=%s | wall_ms=%s",
        request.week_start,
        result.created,
        result.skipped,
        len(result.warnings),
        len(result.gap_details),
        int((perf_counter() - started) * 1000),
    )
    return result


def _autogen_weeks(db: Session, options: AutogenOptions, first_week: date, stop_before: date) -> AutogenResult:
    """Run one independent transaction per week; stop at the first failing week."""
    total = AutogenResult()
    week = first_week
    while week < stop_before:
        request = AutogenWeekRequest(week_start=week, **options.model_dump())
        try:
            total.merge(autogen_week(db, request))
        except (AppError, SQLAlchemyError) as exc:
            message = exc.message if isinstance(exc, AppError) else str(exc)
            total.warnings.append(f"Generation stopped at week {week.isoformat()}: {message}")
            break
        week += timedelta(days=7)
    return total


def autogen_month(db: Session, request: AutogenMonthRequest) -> AutogenResult:
    first_day = date(request.year, request.month, 1)
    next_month = date(request.year + 1, 1, 1) if request.month == 12 else date(request.year, request.month + 1, 1)
    options = AutogenOptions.model_validate(request.model_dump(include=set(AutogenOptions.model_fields)))
    return _autogen_weeks(db, options, start_of_week(first_day), next_month)


def autogen_course_range(db: Session, request: AutogenCourseRequest) -> AutogenResult:
    options = AutogenOptions.model_validate(request.model_dump(include=set(AutogenOptions.model_fields)))
    return _autogen_weeks(db, options, start_of_week(request.date_from), request.date_to + timedelta(days=1))

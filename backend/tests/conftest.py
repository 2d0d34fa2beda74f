import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("BOOTSTRAP_SCHEMA_ON_STARTUP", "false")

from datetime import date, time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from campus_scheduler.api.deps import get_db  # noqa: E402
from campus_scheduler.db.base import Base  # noqa: E402
from campus_scheduler.db.bootstrap import seed_default_lesson_types  # noqa: E402
from campus_scheduler.main import app  # noqa: E402
from campus_scheduler.models import (  # noqa: E402
    Building,
    BuildingTravel,
    CalendarException,
    Course,
    Group,
    LessonType,
    Module,
    ModuleBuilding,
    ModuleFiller,
    ModulePlan,
    ModuleSequenceItem,
    ModuleSupervisor,
    ModuleTopic,
    Room,
    ScheduleItem,
    Teacher,
    TeacherCourseLoad,
    TeacherDraftItem,
    TeacherModule,
    TeacherWorkingHour,
    TimeSlot,
)
from campus_scheduler.services.travel import canonical_pair  # noqa: E402


@pytest.fixture()
def engine():
    # One shared in-memory connection so every session sees the same tables.
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    seed_default_lesson_types(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db, session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class Seeder:
    """Small factory over the test session. Every helper commits."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def lesson_type(self, code: str, **flags) -> LessonType:
        values = {
            "name": code.title(),
            "is_active": True,
            "requires_room": True,
            "requires_teacher": True,
            "blocks_room": True,
            "blocks_teacher": True,
            "count_in_plan": True,
            "count_in_load": True,
            "preferred_first_in_week": False,
        }
        values.update(flags)
        return self._save(LessonType(code=code, **values))

    def type_by_code(self, code: str) -> LessonType:
        return self.db.query(LessonType).filter(LessonType.code == code).one()

    def course(self, name: str = "Software Engineering") -> Course:
        return self._save(Course(name=name, duration_weeks=16))

    def group(self, course: Course, name: str = "SE-1", students: int = 30) -> Group:
        return self._save(Group(name=name, students_count=students, course_id=course.id))

    def building(self, name: str) -> Building:
        return self._save(Building(name=name))

    def travel(self, a: Building, b: Building, minutes: int) -> BuildingTravel:
        from_id, to_id = canonical_pair(a.id, b.id)
        return self._save(BuildingTravel(from_building_id=from_id, to_building_id=to_id, minutes=minutes))

    def room(self, building: Building, name: str, capacity: int = 30) -> Room:
        return self._save(Room(name=name, capacity=capacity, building_id=building.id))

    def module(self, course: Course, code: str, *, buildings: list[Building] = ()) -> Module:
        module = self._save(Module(code=code, title=f"Module {code}", credits=0, course_id=course.id))
        for building in buildings:
            self._save(ModuleBuilding(module_id=module.id, building_id=building.id))
        return module

    def topic(self, module: Module, code: str, *, hours: int, lesson_type: LessonType | None = None, order: int = 0,
              self_study: int = 0, by_supervisor: bool = False, inter_assembly: bool = False) -> ModuleTopic:
        return self._save(
            ModuleTopic(
                module_id=module.id,
                order=order,
                topic_code=code,
                title=f"Topic {code}",
                lesson_type_id=lesson_type.id if lesson_type is not None else None,
                total_hours=hours + self_study,
                auditorium_hours=hours,
                self_study_hours=self_study,
                self_study_by_supervisor=by_supervisor,
                is_inter_assembly=inter_assembly,
            )
        )

    def plan(self, course: Course, module: Module, target_hours: int, *, is_active: bool = True) -> ModulePlan:
        return self._save(
            ModulePlan(course_id=course.id, module_id=module.id, target_hours=target_hours, is_active=is_active)
        )

    def sequence(self, course: Course, main: list[Module], fillers: list[Module] = ()) -> None:
        for index, module in enumerate(main, start=1):
            self.db.add(ModuleSequenceItem(course_id=course.id, module_id=module.id, order=index))
        for module in fillers:
            self.db.add(ModuleFiller(course_id=course.id, module_id=module.id))
        self.db.commit()

    def teacher(self, name: str = "Ada Lovelace", *, modules: list[Module] = ()) -> Teacher:
        teacher = self._save(Teacher(full_name=name))
        for module in modules:
            self._save(TeacherModule(teacher_id=teacher.id, module_id=module.id))
        return teacher

    def supervisor(self, teacher: Teacher, module: Module) -> ModuleSupervisor:
        return self._save(ModuleSupervisor(teacher_id=teacher.id, module_id=module.id))

    def load(self, teacher: Teacher, course: Course, *, target_hours: int = 100, is_active: bool = True) -> TeacherCourseLoad:
        return self._save(
            TeacherCourseLoad(teacher_id=teacher.id, course_id=course.id, target_hours=target_hours, is_active=is_active)
        )

    def working_hours(self, teacher: Teacher, start: str, end: str, days=range(5)) -> None:
        for day in days:
            self.db.add(
                TeacherWorkingHour(
                    teacher_id=teacher.id,
                    day_of_week=day,
                    start_time=time.fromisoformat(start),
                    end_time=time.fromisoformat(end),
                )
            )
        self.db.commit()

    def slot(self, start: str, end: str, *, course: Course | None = None, sort_order: int = 0, is_active: bool = True) -> TimeSlot:
        return self._save(
            TimeSlot(
                course_id=course.id if course is not None else None,
                start_time=time.fromisoformat(start),
                end_time=time.fromisoformat(end),
                sort_order=sort_order,
                is_active=is_active,
            )
        )

    def calendar(self, day: date, *, working: bool, name: str = "") -> CalendarException:
        return self._save(CalendarException(date=day, is_working_day=working, name=name))

    def _placement(self, model, *, day: date, start: str, end: str, group: Group, module: Module,
                   lesson_type: LessonType, teacher: Teacher | None = None, room: Room | None = None, **extra):
        return self._save(
            model(
                date=day,
                day_of_week=day.weekday(),
                start_time=time.fromisoformat(start),
                end_time=time.fromisoformat(end),
                group_id=group.id,
                module_id=module.id,
                lesson_type_id=lesson_type.id,
                teacher_id=teacher.id if teacher is not None else None,
                room_id=room.id if room is not None else None,
                **extra,
            )
        )

    def item(self, **kwargs) -> ScheduleItem:
        kwargs.setdefault("is_locked", False)
        return self._placement(ScheduleItem, **kwargs)

    def draft(self, **kwargs) -> TeacherDraftItem:
        kwargs.setdefault("is_locked", False)
        return self._placement(TeacherDraftItem, **kwargs)


@pytest.fixture()
def seed(db) -> Seeder:
    return Seeder(db)

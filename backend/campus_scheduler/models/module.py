from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_scheduler.db.base import Base


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    credits: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)


class ModuleCourse(Base):
    """Additional course a module is reused in."""

    __tablename__ = "module_courses"
    __table_args__ = (UniqueConstraint("module_id", "course_id", name="uq_module_course"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)


class ModuleTopic(Base):
    __tablename__ = "module_topics"
    __table_args__ = (UniqueConstraint("module_id", "topic_code", name="uq_module_topic_code"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    topic_code: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    lesson_type_id: Mapped[int | None] = mapped_column(ForeignKey("lesson_types.id"), nullable=True)
    total_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auditorium_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    self_study_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Supervised self-study is placed by autogen; other self-study hours leave the plan target.
    self_study_by_supervisor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_inter_assembly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ModuleRoom(Base):
    __tablename__ = "module_rooms"
    __table_args__ = (UniqueConstraint("module_id", "room_id", name="uq_module_room"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id"), nullable=False)


class ModuleBuilding(Base):
    __tablename__ = "module_buildings"
    __table_args__ = (UniqueConstraint("module_id", "building_id", name="uq_module_building"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    building_id: Mapped[int] = mapped_column(ForeignKey("buildings.id"), nullable=False)


class ModulePlan(Base):
    __tablename__ = "module_plans"
    __table_args__ = (UniqueConstraint("course_id", "module_id", name="uq_module_plan"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    target_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ModuleSequenceItem(Base):
    __tablename__ = "module_sequence_items"
    __table_args__ = (UniqueConstraint("course_id", "module_id", name="uq_module_sequence_item"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ModuleFiller(Base):
    __tablename__ = "module_fillers"
    __table_args__ = (UniqueConstraint("course_id", "module_id", name="uq_module_filler"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), nullable=False)

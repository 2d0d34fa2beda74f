from datetime import time

from sqlalchemy import Boolean, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_scheduler.db.base import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    scientific_degree: Mapped[str | None] = mapped_column(String(200), nullable=True)
    academic_title: Mapped[str | None] = mapped_column(String(200), nullable=True)


class TeacherModule(Base):
    __tablename__ = "teacher_modules"
    __table_args__ = (UniqueConstraint("teacher_id", "module_id", name="uq_teacher_module"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)


class ModuleSupervisor(Base):
    """Teacher who supervises self-study hours of a module."""

    __tablename__ = "module_supervisors"
    __table_args__ = (UniqueConstraint("teacher_id", "module_id", name="uq_module_supervisor"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)


class TeacherCourseLoad(Base):
    __tablename__ = "teacher_course_loads"
    __table_args__ = (UniqueConstraint("teacher_id", "course_id", name="uq_teacher_course_load"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id"), index=True, nullable=False)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), index=True, nullable=False)
    target_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TeacherWorkingHour(Base):
    __tablename__ = "teacher_working_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id"), index=True, nullable=False)
    # date.weekday() numbering, Monday is 0.
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

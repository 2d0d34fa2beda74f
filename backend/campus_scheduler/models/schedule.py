import datetime as dt
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from campus_scheduler.db.base import Base


class DraftStatus(str, Enum):
    draft = "draft"
    published = "published"


class PlacementMixin:
    """Columns shared by committed schedule items and teacher drafts."""

    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    # date.weekday() numbering, Monday is 0.
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    lesson_type_id: Mapped[int] = mapped_column(ForeignKey("lesson_types.id"), nullable=False)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), index=True, nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("modules.id"), index=True, nullable=False)
    module_topic_id: Mapped[int | None] = mapped_column(ForeignKey("module_topics.id"), nullable=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teachers.id"), index=True, nullable=True)
    room_id: Mapped[int | None] = mapped_column(ForeignKey("rooms.id"), index=True, nullable=True)
    is_self_study: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ScheduleItem(PlacementMixin, Base):
    __tablename__ = "schedule_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class TeacherDraftItem(PlacementMixin, Base):
    __tablename__ = "teacher_draft_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[DraftStatus] = mapped_column(
        SAEnum(DraftStatus, name="draft_status"),
        nullable=False,
        default=DraftStatus.draft,
    )
    published_item_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    batch_key: Mapped[str | None] = mapped_column(String(200), index=True, nullable=True)
    validation_warnings: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

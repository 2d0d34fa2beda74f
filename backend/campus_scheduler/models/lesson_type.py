from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from campus_scheduler.db.base import Base

BREAK_CODE = "BREAK"
CANCELED_CODE = "CANCELED"
RESCHEDULED_CODE = "RESCHEDULED"


class LessonType(Base):
    __tablename__ = "lesson_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_room: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_teacher: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    blocks_room: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    blocks_teacher: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    count_in_plan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    count_in_load: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    preferred_first_in_week: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    css_key: Mapped[str | None] = mapped_column(String(50), nullable=True)

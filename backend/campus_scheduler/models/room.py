from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_scheduler.db.base import Base


class Building(Base):
    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)


class BuildingTravel(Base):
    """Travel minutes for an unordered building pair, stored as (min id, max id)."""

    __tablename__ = "building_travels"
    __table_args__ = (
        UniqueConstraint("from_building_id", "to_building_id", name="uq_building_travel_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_building_id: Mapped[int] = mapped_column(ForeignKey("buildings.id"), nullable=False)
    to_building_id: Mapped[int] = mapped_column(ForeignKey("buildings.id"), nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, nullable=False)


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    building_id: Mapped[int] = mapped_column(ForeignKey("buildings.id"), index=True, nullable=False)

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Literal

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.core.config import get_settings
from campus_scheduler.core.exceptions import SchedulerError
from campus_scheduler.models.room import Building, BuildingTravel
from campus_scheduler.services.time_grid import to_minutes


def canonical_pair(building_a: int, building_b: int) -> tuple[int, int]:
    return (building_a, building_b) if building_a <= building_b else (building_b, building_a)


@dataclass(frozen=True)
class TravelStop:
    start: time
    end: time
    building_id: int


@dataclass(frozen=True)
class TravelViolation:
    direction: Literal["before", "after"]
    gap_minutes: int
    required_minutes: int


class TravelMatrix:
    def __init__(self, minutes_by_pair: dict[tuple[int, int], int], default_minutes: int) -> None:
        self._minutes = minutes_by_pair
        self.default_minutes = default_minutes

    @classmethod
    def load(cls, db: Session, default_minutes: int | None = None) -> "TravelMatrix":
        if default_minutes is None:
            default_minutes = get_settings().default_travel_minutes
        rows = db.execute(select(BuildingTravel)).scalars()
        pairs = {canonical_pair(row.from_building_id, row.to_building_id): row.minutes for row in rows}
        return cls(pairs, default_minutes)

    def required_minutes(self, building_a: int, building_b: int) -> int:
        if building_a == building_b:
            return 0
        return self._minutes.get(canonical_pair(building_a, building_b), self.default_minutes)

    def check_gap(self, candidate: TravelStop, other: TravelStop) -> TravelViolation | None:
        required = self.required_minutes(candidate.building_id, other.building_id)
        if required <= 0:
            return None
        if other.end <= candidate.start:
            gap = to_minutes(candidate.start) - to_minutes(other.end)
            if gap < required:
                return TravelViolation("before", gap, required)
        if candidate.end <= other.start:
            gap = to_minutes(other.start) - to_minutes(candidate.end)
            if gap < required:
                return TravelViolation("after", gap, required)
        return None


def ensure_default_travels_for_building(db: Session, building_id: int, default_minutes: int | None = None) -> int:
    """Add a default travel row between the building and every other building lacking one."""
    if default_minutes is None:
        default_minutes = get_settings().default_travel_minutes
    existing = {
        canonical_pair(row.from_building_id, row.to_building_id)
        for row in db.execute(
            select(BuildingTravel).where(
                (BuildingTravel.from_building_id == building_id) | (BuildingTravel.to_building_id == building_id)
            )
        ).scalars()
    }
    created = 0
    for other_id in db.execute(select(Building.id).where(Building.id != building_id)).scalars():
        pair = canonical_pair(building_id, other_id)
        if pair in existing:
            continue
        db.add(BuildingTravel(from_building_id=pair[0], to_building_id=pair[1], minutes=default_minutes))
        created += 1
    return created


def upsert_travel(db: Session, building_a: int, building_b: int, minutes: int) -> BuildingTravel:
    if building_a == building_b:
        raise SchedulerError("Travel time needs two different buildings")
    for building_id in (building_a, building_b):
        if db.get(Building, building_id) is None:
            raise SchedulerError(f"Building {building_id} does not exist")
    if minutes <= 0:
        minutes = get_settings().default_travel_minutes
    from_id, to_id = canonical_pair(building_a, building_b)
    row = db.execute(
        select(BuildingTravel).where(
            BuildingTravel.from_building_id == from_id,
            BuildingTravel.to_building_id == to_id,
        )
    ).scalar_one_or_none()
    if row is None:
        row = BuildingTravel(from_building_id=from_id, to_building_id=to_id, minutes=minutes)
        db.add(row)
    else:
        row.minutes = minutes
    return row

from datetime import time

import pytest

from campus_scheduler.core.exceptions import SchedulerError
from campus_scheduler.models import BuildingTravel
from campus_scheduler.services.travel import (
    TravelMatrix,
    TravelStop,
    canonical_pair,
    ensure_default_travels_for_building,
    upsert_travel,
)


def test_required_minutes_uses_canonical_pair_and_default():
    matrix = TravelMatrix({(1, 2): 15}, default_minutes=20)

    assert matrix.required_minutes(2, 1) == 15
    assert matrix.required_minutes(1, 3) == 20
    assert matrix.required_minutes(4, 4) == 0
    assert canonical_pair(9, 3) == (3, 9)


def test_check_gap_reports_direction_and_gap():
    matrix = TravelMatrix({(1, 2): 20}, default_minutes=20)
    candidate = TravelStop(time(10, 10), time(10, 20), 2)

    before = matrix.check_gap(candidate, TravelStop(time(8, 30), time(10, 0), 1))
    assert before is not None
    assert (before.direction, before.gap_minutes, before.required_minutes) == ("before", 10, 20)

    after = matrix.check_gap(candidate, TravelStop(time(10, 30), time(11, 0), 1))
    assert after is not None
    assert after.direction == "after"

    assert matrix.check_gap(candidate, TravelStop(time(10, 40), time(11, 0), 1)) is None
    assert matrix.check_gap(candidate, TravelStop(time(10, 0), time(10, 5), 2)) is None


def test_new_building_gets_default_travel_rows(db, seed):
    first = seed.building("Main")
    second = seed.building("Annex")
    seed.travel(first, second, 12)
    third = seed.building("Lab")

    created = ensure_default_travels_for_building(db, third.id, default_minutes=20)
    db.commit()

    assert created == 2
    rows = {(row.from_building_id, row.to_building_id): row.minutes for row in db.query(BuildingTravel)}
    assert rows[canonical_pair(first.id, third.id)] == 20
    assert rows[canonical_pair(second.id, third.id)] == 20
    assert rows[canonical_pair(first.id, second.id)] == 12
    assert ensure_default_travels_for_building(db, third.id, default_minutes=20) == 0


def test_upsert_travel_normalizes_pair_and_minutes(db, seed):
    first = seed.building("Main")
    second = seed.building("Annex")

    row = upsert_travel(db, second.id, first.id, 0)
    db.commit()
    assert (row.from_building_id, row.to_building_id) == canonical_pair(first.id, second.id)
    assert row.minutes == 20

    row = upsert_travel(db, first.id, second.id, 7)
    db.commit()
    assert row.minutes == 7
    assert db.query(BuildingTravel).count() == 1

    with pytest.raises(SchedulerError):
        upsert_travel(db, first.id, first.id, 5)

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from campus_scheduler.models.module import ModuleFiller, ModuleSequenceItem


def build_course_module_order(
    main_sequence: Iterable[int],
    filler_ids: Iterable[int],
    plan_module_ids: Iterable[int],
) -> list[int]:
    """Main sequence, then fillers, then leftover plan modules; each plan module exactly once."""
    plan_modules = list(dict.fromkeys(plan_module_ids))
    in_plan = set(plan_modules)
    ordered: list[int] = []
    seen: set[int] = set()
    for module_id in [*main_sequence, *filler_ids, *plan_modules]:
        if module_id in in_plan and module_id not in seen:
            ordered.append(module_id)
            seen.add(module_id)
    return ordered


@dataclass(frozen=True)
class CourseModuleOrder:
    ordered: list[int]
    fillers: list[int]

    @property
    def main(self) -> list[int]:
        filler_set = set(self.fillers)
        return [module_id for module_id in self.ordered if module_id not in filler_set]

    def is_filler(self, module_id: int) -> bool:
        return module_id in self.fillers


def load_course_module_order(db: Session, course_id: int, plan_module_ids: Iterable[int]) -> CourseModuleOrder:
    plan_module_ids = list(plan_module_ids)
    in_plan = set(plan_module_ids)
    main_sequence = db.execute(
        select(ModuleSequenceItem.module_id)
        .where(ModuleSequenceItem.course_id == course_id)
        .order_by(ModuleSequenceItem.order, ModuleSequenceItem.id)
    ).scalars()
    filler_rows = list(
        db.execute(
            select(ModuleFiller.module_id).where(ModuleFiller.course_id == course_id).order_by(ModuleFiller.id)
        ).scalars()
    )
    ordered = build_course_module_order(main_sequence, filler_rows, plan_module_ids)
    fillers = sorted({module_id for module_id in filler_rows if module_id in in_plan})
    return CourseModuleOrder(ordered=ordered, fillers=fillers)


class PrimaryModuleRotation:
    """Round-robin over the main sequence, advanced after each successful primary placement."""

    def __init__(self, modules: list[int], start_index: int = 0) -> None:
        self.modules = modules
        self.next_index = start_index % len(modules) if modules else 0

    def resolve(self, has_remaining: Callable[[int], bool]) -> tuple[int, int] | None:
        count = len(self.modules)
        for step in range(count):
            index = (self.next_index + step) % count
            module_id = self.modules[index]
            if has_remaining(module_id):
                return index, module_id
        return None

    def advance_past(self, index: int) -> None:
        if self.modules:
            self.next_index = (index + 1) % len(self.modules)


def filler_seed(week_start: date, group_id: int, day: date) -> str:
    return f"{week_start.isoformat()}:{group_id}:{day.isoformat()}"


class FillerQueue:
    """Deterministically shuffled filler modules, refilled when drained."""

    def __init__(self, fillers: Iterable[int], seed: str) -> None:
        self._fillers = sorted(set(fillers))
        self._random = random.Random(seed)
        self._queue: deque[int] = deque()

    def __len__(self) -> int:
        return len(self._fillers)

    def next(self) -> int | None:
        if not self._fillers:
            return None
        if not self._queue:
            batch = list(self._fillers)
            self._random.shuffle(batch)
            self._queue.extend(batch)
        return self._queue.popleft()

    def drain(self, place: Callable[[int], bool], *, has_free_slot: Callable[[], bool]) -> int:
        """Offer fillers until a full pass places nothing or the day is full."""
        placed = 0
        misses = 0
        while self._fillers and has_free_slot() and misses < len(self._fillers):
            module_id = self.next()
            if place(module_id):
                placed += 1
                misses = 0
            else:
                misses += 1
        return placed

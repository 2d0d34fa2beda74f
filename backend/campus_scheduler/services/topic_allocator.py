from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from campus_scheduler.models.lesson_type import LessonType
from campus_scheduler.models.module import ModulePlan, ModuleTopic
from campus_scheduler.models.schedule import ScheduleItem, TeacherDraftItem

GroupModule = tuple[int, int]


def topic_code_key(code: str) -> tuple:
    """Sort key for dotted topic codes so that 2.10 follows 2.9."""
    parts = []
    for part in code.strip().split("."):
        if part.isdigit():
            parts.append((0, int(part), ""))
        else:
            parts.append((1, 0, part))
    return tuple(parts)


@dataclass(frozen=True)
class TopicEntry:
    id: int
    module_id: int
    code: str
    lesson_type_id: int | None
    limit: int


class TopicAllocator:
    """Ordered topic cursor and per-topic usage for each (group, module) pair."""

    def __init__(self, topics_by_module: dict[int, list[TopicEntry]], usage: Counter[tuple[int, int]] | None = None) -> None:
        self._topics = topics_by_module
        self._usage: Counter[tuple[int, int]] = usage if usage is not None else Counter()
        self._cursors: dict[GroupModule, int] = {}

    @classmethod
    def load(cls, db: Session, *, module_ids: Iterable[int], group_ids: Iterable[int]) -> "TopicAllocator":
        module_ids = list(set(module_ids))
        group_ids = list(set(group_ids))
        topics_by_module: dict[int, list[TopicEntry]] = defaultdict(list)
        if module_ids:
            rows = db.execute(
                select(ModuleTopic).where(ModuleTopic.module_id.in_(module_ids), ModuleTopic.is_inter_assembly.is_(False))
            ).scalars()
            for row in sorted(rows, key=lambda topic: (topic.order, topic_code_key(topic.topic_code))):
                topics_by_module[row.module_id].append(
                    TopicEntry(
                        id=row.id,
                        module_id=row.module_id,
                        code=row.topic_code,
                        lesson_type_id=row.lesson_type_id,
                        limit=max(0, row.auditorium_hours),
                    )
                )

        usage: Counter[tuple[int, int]] = Counter()
        if group_ids:
            for model in (ScheduleItem, TeacherDraftItem):
                statement = (
                    select(model.group_id, model.module_topic_id, func.count())
                    .where(model.group_id.in_(group_ids), model.module_topic_id.is_not(None), model.is_self_study.is_(False))
                    .group_by(model.group_id, model.module_topic_id)
                )
                for group_id, topic_id, count in db.execute(statement).all():
                    usage[(group_id, topic_id)] += count
        return cls(dict(topics_by_module), usage)

    def module_auditorium_hours(self, module_id: int) -> int:
        return sum(topic.limit for topic in self._topics.get(module_id, []))

    def has_topics(self, module_id: int) -> bool:
        return any(topic.limit > 0 for topic in self._topics.get(module_id, []))

    def used(self, group_id: int, topic_id: int) -> int:
        return self._usage[(group_id, topic_id)]

    def _normalize_cursor(self, group_id: int, module_id: int) -> int:
        topics = self._topics.get(module_id, [])
        index = self._cursors.get((group_id, module_id), 0)
        while index < len(topics):
            topic = topics[index]
            if topic.limit > 0 and self._usage[(group_id, topic.id)] < topic.limit:
                break
            index += 1
        self._cursors[(group_id, module_id)] = index
        return index

    def peek_next_topic(self, group_id: int, module_id: int) -> TopicEntry | None:
        topics = self._topics.get(module_id, [])
        index = self._normalize_cursor(group_id, module_id)
        return topics[index] if index < len(topics) else None

    def mark_topic_used(self, group_id: int, module_id: int, topic_id: int) -> None:
        self._usage[(group_id, topic_id)] += 1
        self._normalize_cursor(group_id, module_id)

    def topics_depleted(self, group_id: int, module_id: int) -> bool:
        if not self.has_topics(module_id):
            return False
        return self.peek_next_topic(group_id, module_id) is None



class SelfStudyPlan:
    """Supervised self-study hours left per (group, topic), plus the self-study totals of each module.

    Only topics flagged ``self_study_by_supervisor`` are placed; unsupervised self-study is
    taken out of the plan target instead.
    """

    def __init__(
        self,
        topics_by_module: dict[int, list[TopicEntry]],
        unsupervised_hours: dict[int, int] | None = None,
        usage: Counter[tuple[int, int]] | None = None,
    ) -> None:
        self._topics = topics_by_module
        self._unsupervised = unsupervised_hours or {}
        self._usage: Counter[tuple[int, int]] = usage if usage is not None else Counter()
        self._dropped: set[GroupModule] = set()

    @classmethod
    def load(cls, db: Session, *, module_ids: Iterable[int], group_ids: Iterable[int]) -> "SelfStudyPlan":
        module_ids = list(set(module_ids))
        group_ids = list(set(group_ids))
        topics_by_module: dict[int, list[TopicEntry]] = defaultdict(list)
        unsupervised: Counter[int] = Counter()
        if module_ids:
            rows = db.execute(
                select(ModuleTopic).where(ModuleTopic.module_id.in_(module_ids), ModuleTopic.is_inter_assembly.is_(False))
            ).scalars()
            for row in sorted(rows, key=lambda topic: topic_code_key(topic.topic_code)):
                hours = max(0, row.self_study_hours)
                if hours == 0:
                    continue
                if not row.self_study_by_supervisor:
                    unsupervised[row.module_id] += hours
                    continue
                topics_by_module[row.module_id].append(
                    TopicEntry(
                        id=row.id,
                        module_id=row.module_id,
                        code=row.topic_code,
                        lesson_type_id=row.lesson_type_id,
                        limit=hours,
                    )
                )

        usage: Counter[tuple[int, int]] = Counter()
        topic_ids = [topic.id for topics in topics_by_module.values() for topic in topics]
        if group_ids and topic_ids:
            for model in (ScheduleItem, TeacherDraftItem):
                statement = (
                    select(model.group_id, model.module_topic_id, func.count())
                    .where(
                        model.group_id.in_(group_ids),
                        model.module_topic_id.in_(topic_ids),
                        model.is_self_study.is_(True),
                    )
                    .group_by(model.group_id, model.module_topic_id)
                )
                for group_id, topic_id, count in db.execute(statement).all():
                    usage[(group_id, topic_id)] += count
        return cls(dict(topics_by_module), dict(unsupervised), usage)

    def supervised_hours(self, module_id: int) -> int:
        return sum(topic.limit for topic in self._topics.get(module_id, []))

    def unsupervised_hours(self, module_id: int) -> int:
        return self._unsupervised.get(module_id, 0)

    def _left(self, group_id: int, topic: TopicEntry) -> int:
        return max(0, topic.limit - self._usage[(group_id, topic.id)])

    def remaining(self, group_id: int, module_id: int) -> int:
        if (group_id, module_id) in self._dropped:
            return 0
        return sum(self._left(group_id, topic) for topic in self._topics.get(module_id, []))

    def next_topic(self, group_id: int, module_id: int) -> TopicEntry | None:
        if (group_id, module_id) in self._dropped:
            return None
        for topic in self._topics.get(module_id, []):
            if self._left(group_id, topic) > 0:
                return topic
        return None

    def consume(self, group_id: int, topic_id: int) -> None:
        self._usage[(group_id, topic_id)] += 1

    def drop(self, group_id: int, module_id: int) -> None:
        """Stop placing self-study for the pair for the rest of the run."""
        self._dropped.add((group_id, module_id))

def split_target_hours(target_hours: int, group_ids: Iterable[int]) -> dict[int, int]:
    """Even split by integer division, remainder to the first groups by ascending id."""
    ordered = sorted(group_ids)
    if not ordered:
        return {}
    base, extra = divmod(max(0, target_hours), len(ordered))
    return {group_id: base + (1 if index < extra else 0) for index, group_id in enumerate(ordered)}


def non_counting_lesson_type_ids(db: Session) -> set[int]:
    return set(db.execute(select(LessonType.id).where(LessonType.count_in_plan.is_(False))).scalars())


def completed_hours(db: Session, *, group_ids: Iterable[int], excluded_type_ids: set[int]) -> Counter[GroupModule]:
    """Committed plus draft sessions per (group, module), skipping non-counting lesson types."""
    group_ids = list(set(group_ids))
    done: Counter[GroupModule] = Counter()
    if not group_ids:
        return done
    for model in (ScheduleItem, TeacherDraftItem):
        statement = select(model.group_id, model.module_id, func.count()).where(model.group_id.in_(group_ids))
        if excluded_type_ids:
            statement = statement.where(model.lesson_type_id.not_in(excluded_type_ids))
        for group_id, module_id, count in db.execute(statement.group_by(model.group_id, model.module_id)).all():
            done[(group_id, module_id)] += count
    return done


class RemainingHours:
    def __init__(self, remaining: dict[GroupModule, int] | None = None) -> None:
        self._remaining: dict[GroupModule, int] = dict(remaining or {})

    def get(self, group_id: int, module_id: int) -> int:
        return self._remaining.get((group_id, module_id), 0)

    def consume(self, group_id: int, module_id: int, hours: int = 1) -> None:
        key = (group_id, module_id)
        self._remaining[key] = max(0, self._remaining.get(key, 0) - hours)

    def exhaust(self, group_id: int, module_id: int) -> None:
        self._remaining[(group_id, module_id)] = 0

    def as_dict(self) -> dict[GroupModule, int]:
        return dict(self._remaining)


def compute_remaining_hours(
    db: Session,
    *,
    plans: Iterable[ModulePlan],
    group_ids_by_course: dict[int, list[int]],
    allocator: TopicAllocator,
    excluded_type_ids: set[int] | None = None,
    done: Counter[GroupModule] | None = None,
    self_study: SelfStudyPlan | None = None,
) -> RemainingHours:
    """Per-group hours still to place for each active plan.

    Unsupervised self-study leaves the target before the split; auditorium and supervised
    self-study hours set the floor each group must reach.
    """
    if done is None:
        if excluded_type_ids is None:
            excluded_type_ids = non_counting_lesson_type_ids(db)
        all_groups = [group_id for ids in group_ids_by_course.values() for group_id in ids]
        done = completed_hours(db, group_ids=all_groups, excluded_type_ids=excluded_type_ids)

    remaining: dict[GroupModule, int] = {}
    for plan in plans:
        if not plan.is_active:
            continue
        target_hours = plan.target_hours
        floor = allocator.module_auditorium_hours(plan.module_id)
        if self_study is not None:
            target_hours = max(0, target_hours - self_study.unsupervised_hours(plan.module_id))
            floor += self_study.supervised_hours(plan.module_id)
        shares = split_target_hours(target_hours, group_ids_by_course.get(plan.course_id, []))
        for group_id, share in shares.items():
            target = max(share, floor)
            remaining[(group_id, plan.module_id)] = max(0, target - done[(group_id, plan.module_id)])
    return RemainingHours(remaining)

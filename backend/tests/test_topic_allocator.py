from collections import Counter
from datetime import date

from campus_scheduler.services.topic_allocator import (
    RemainingHours,
    SelfStudyPlan,
    TopicAllocator,
    TopicEntry,
    compute_remaining_hours,
    split_target_hours,
    topic_code_key,
)


def _topics(*limits):
    return {7: [TopicEntry(id=index, module_id=7, code=f"1.{index}", lesson_type_id=None, limit=limit)
                for index, limit in enumerate(limits, start=1)]}


def test_topic_codes_sort_numerically():
    codes = ["2.10", "2.9", "1", "2.1.3", "10"]
    assert sorted(codes, key=topic_code_key) == ["1", "2.1.3", "2.9", "2.10", "10"]


def test_cursor_skips_zero_limit_and_exhausted_topics():
    allocator = TopicAllocator(_topics(0, 2, 1), usage=Counter({(1, 2): 2}))

    topic = allocator.peek_next_topic(1, 7)
    assert topic is not None and topic.id == 3

    allocator.mark_topic_used(1, 7, 3)
    assert allocator.peek_next_topic(1, 7) is None
    assert allocator.topics_depleted(1, 7) is True
    assert allocator.topics_depleted(2, 7) is False


def test_module_without_counted_topics_is_never_depleted():
    allocator = TopicAllocator(_topics(0, 0))
    assert allocator.topics_depleted(1, 7) is False
    assert allocator.topics_depleted(1, 99) is False


def test_split_target_hours_gives_remainder_to_lowest_ids():
    assert split_target_hours(10, [5, 3, 9]) == {3: 4, 5: 3, 9: 3}
    assert split_target_hours(2, []) == {}


def test_remaining_hours_never_negative():
    remaining = RemainingHours({(1, 7): 1})
    remaining.consume(1, 7)
    remaining.consume(1, 7)
    assert remaining.get(1, 7) == 0
    assert remaining.get(2, 7) == 0


def test_remaining_hours_from_plans(db, seed):
    course = seed.course()
    first = seed.group(course, "SE-1")
    second = seed.group(course, "SE-2")
    lecture = seed.lesson_type("LEC")
    module = seed.module(course, "SE101")
    plan = seed.plan(course, module, 9)

    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[first.id, second.id])
    groups = {course.id: [first.id, second.id]}

    remaining = compute_remaining_hours(db, plans=[plan], group_ids_by_course=groups, allocator=allocator)
    assert remaining.get(first.id, module.id) == 5
    assert remaining.get(second.id, module.id) == 4

    previous = remaining.get(first.id, module.id)
    for day in (date(2025, 3, 10), date(2025, 3, 11)):
        seed.item(day=day, start="08:30", end="10:00", group=first, module=module, lesson_type=lecture)
        current = compute_remaining_hours(db, plans=[plan], group_ids_by_course=groups, allocator=allocator)
        assert 0 <= current.get(first.id, module.id) <= previous
        previous = current.get(first.id, module.id)
    assert previous == 3


def test_non_counting_sessions_do_not_consume_hours(db, seed):
    course = seed.course()
    group = seed.group(course)
    module = seed.module(course, "SE101")
    plan = seed.plan(course, module, 4)
    seed.draft(day=date(2025, 3, 10), start="12:00", end="13:00", group=group, module=module,
               lesson_type=seed.type_by_code("BREAK"))

    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[group.id])
    remaining = compute_remaining_hours(db, plans=[plan], group_ids_by_course={course.id: [group.id]}, allocator=allocator)
    assert remaining.get(group.id, module.id) == 4


def test_topic_hours_floor_the_target(db, seed):
    course = seed.course()
    group = seed.group(course)
    module = seed.module(course, "SE101")
    seed.topic(module, "1.1", hours=4)
    seed.topic(module, "1.2", hours=3)
    plan = seed.plan(course, module, 2)

    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[group.id])
    remaining = compute_remaining_hours(db, plans=[plan], group_ids_by_course={course.id: [group.id]}, allocator=allocator)
    assert remaining.get(group.id, module.id) == 7


def test_inter_assembly_topics_are_ignored(db, seed):
    course = seed.course()
    group = seed.group(course)
    module = seed.module(course, "SE101")
    seed.topic(module, "1.1", hours=3, inter_assembly=True)
    regular = seed.topic(module, "1.2", hours=2)

    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[group.id])

    assert allocator.module_auditorium_hours(module.id) == 2
    assert allocator.peek_next_topic(group.id, module.id).id == regular.id


def test_self_study_shapes_the_target(db, seed):
    course = seed.course()
    group = seed.group(course)
    module = seed.module(course, "SE101")
    seed.topic(module, "1.1", hours=2, self_study=4)
    seed.topic(module, "1.2", hours=2, self_study=3, by_supervisor=True)
    seed.topic(module, "1.3", hours=0, self_study=5, by_supervisor=True, inter_assembly=True)
    groups = {course.id: [group.id]}

    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[group.id])
    self_study = SelfStudyPlan.load(db, module_ids=[module.id], group_ids=[group.id])
    assert self_study.unsupervised_hours(module.id) == 4
    assert self_study.supervised_hours(module.id) == 3

    large = seed.plan(course, module, 20)
    remaining = compute_remaining_hours(db, plans=[large], group_ids_by_course=groups, allocator=allocator,
                                        self_study=self_study)
    assert remaining.get(group.id, module.id) == 16

    large.target_hours = 6
    remaining = compute_remaining_hours(db, plans=[large], group_ids_by_course=groups, allocator=allocator,
                                        self_study=self_study)
    assert remaining.get(group.id, module.id) == 7


def test_self_study_hours_left_per_topic(db, seed):
    course = seed.course()
    group = seed.group(course)
    lecture = seed.lesson_type("LEC")
    module = seed.module(course, "SE101")
    first = seed.topic(module, "1.10", hours=1, self_study=1, by_supervisor=True)
    second = seed.topic(module, "1.2", hours=1, self_study=2, by_supervisor=True)
    seed.draft(day=date(2025, 3, 10), start="08:30", end="10:00", group=group, module=module,
               lesson_type=lecture, module_topic_id=second.id, is_self_study=True)

    self_study = SelfStudyPlan.load(db, module_ids=[module.id], group_ids=[group.id])
    allocator = TopicAllocator.load(db, module_ids=[module.id], group_ids=[group.id])

    assert self_study.remaining(group.id, module.id) == 2
    assert self_study.next_topic(group.id, module.id).id == second.id
    assert allocator.used(group.id, second.id) == 0

    self_study.consume(group.id, second.id)
    assert self_study.next_topic(group.id, module.id).id == first.id

    self_study.drop(group.id, module.id)
    assert self_study.remaining(group.id, module.id) == 0
    assert self_study.next_topic(group.id, module.id) is None

"""create scheduling schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False)


def _placement_columns() -> list[sa.Column]:
    return [
        _id(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("lesson_type_id", sa.Integer(), sa.ForeignKey("lesson_types.id"), nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("module_topic_id", sa.Integer(), sa.ForeignKey("module_topics.id"), nullable=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("is_self_study", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def _placement_indexes(table: str) -> None:
    for column in ("date", "group_id", "module_id", "teacher_id", "room_id"):
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "courses",
        _id(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("duration_weeks", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "groups",
        _id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("students_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
    )
    op.create_index("ix_groups_course_id", "groups", ["course_id"])

    op.create_table(
        "buildings",
        _id(),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("address", sa.String(length=300), nullable=True),
    )
    op.create_table(
        "building_travels",
        _id(),
        sa.Column("from_building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.Column("to_building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False),
        sa.UniqueConstraint("from_building_id", "to_building_id", name="uq_building_travel_pair"),
    )
    op.create_table(
        "rooms",
        _id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
    )
    op.create_index("ix_rooms_building_id", "rooms", ["building_id"])

    op.create_table(
        "lesson_types",
        _id(),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("requires_room", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("requires_teacher", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("blocks_room", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("blocks_teacher", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("count_in_plan", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("count_in_load", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("preferred_first_in_week", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("css_key", sa.String(length=50), nullable=True),
    )
    op.create_index("ix_lesson_types_code", "lesson_types", ["code"], unique=True)

    op.create_table(
        "modules",
        _id(),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("credits", sa.Float(), nullable=False, server_default="0"),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
    )
    op.create_index("ix_modules_code", "modules", ["code"])
    op.create_index("ix_modules_course_id", "modules", ["course_id"])

    op.create_table(
        "module_courses",
        _id(),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.UniqueConstraint("module_id", "course_id", name="uq_module_course"),
    )
    op.create_table(
        "module_topics",
        _id(),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("topic_code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("lesson_type_id", sa.Integer(), sa.ForeignKey("lesson_types.id"), nullable=True),
        sa.Column("total_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auditorium_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("self_study_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("self_study_by_supervisor", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_inter_assembly", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("module_id", "topic_code", name="uq_module_topic_code"),
    )
    op.create_table(
        "module_rooms",
        _id(),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.UniqueConstraint("module_id", "room_id", name="uq_module_room"),
    )
    op.create_table(
        "module_buildings",
        _id(),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.UniqueConstraint("module_id", "building_id", name="uq_module_building"),
    )
    op.create_table(
        "module_plans",
        _id(),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("target_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scheduled_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("course_id", "module_id", name="uq_module_plan"),
    )
    op.create_table(
        "module_sequence_items",
        _id(),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("course_id", "module_id", name="uq_module_sequence_item"),
    )
    op.create_table(
        "module_fillers",
        _id(),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.UniqueConstraint("course_id", "module_id", name="uq_module_filler"),
    )

    op.create_table(
        "teachers",
        _id(),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("scientific_degree", sa.String(length=200), nullable=True),
        sa.Column("academic_title", sa.String(length=200), nullable=True),
    )
    op.create_table(
        "teacher_modules",
        _id(),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.UniqueConstraint("teacher_id", "module_id", name="uq_teacher_module"),
    )
    op.create_table(
        "module_supervisors",
        _id(),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.UniqueConstraint("teacher_id", "module_id", name="uq_module_supervisor"),
    )
    op.create_table(
        "teacher_course_loads",
        _id(),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("target_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("scheduled_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("teacher_id", "course_id", name="uq_teacher_course_load"),
    )
    op.create_table(
        "teacher_working_hours",
        _id(),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
    )

    op.create_table(
        "time_slots",
        _id(),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_time_slots_course_id", "time_slots", ["course_id"])
    op.create_table(
        "calendar_exceptions",
        _id(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_working_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("name", sa.String(length=200), nullable=False, server_default=""),
    )
    op.create_index("ix_calendar_exceptions_date", "calendar_exceptions", ["date"], unique=True)
    op.create_table(
        "lunch_configs",
        _id(),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=True, unique=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
    )

    op.create_table("schedule_items", *_placement_columns())
    _placement_indexes("schedule_items")

    draft_status = sa.Enum("draft", "published", name="draft_status")
    op.create_table(
        "teacher_draft_items",
        *_placement_columns(),
        sa.Column("status", draft_status, nullable=False, server_default="draft"),
        sa.Column("published_item_id", sa.Integer(), nullable=True),
        sa.Column("batch_key", sa.String(length=200), nullable=True),
        sa.Column("validation_warnings", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    _placement_indexes("teacher_draft_items")
    op.create_index("ix_teacher_draft_items_batch_key", "teacher_draft_items", ["batch_key"])


def downgrade() -> None:
    op.drop_table("teacher_draft_items")
    sa.Enum(name="draft_status").drop(op.get_bind(), checkfirst=True)
    op.drop_table("schedule_items")
    for table in (
        "lunch_configs",
        "calendar_exceptions",
        "time_slots",
        "teacher_working_hours",
        "teacher_course_loads",
        "module_supervisors",
        "teacher_modules",
        "teachers",
        "module_fillers",
        "module_sequence_items",
        "module_plans",
        "module_buildings",
        "module_rooms",
        "module_topics",
        "module_courses",
        "modules",
        "lesson_types",
        "rooms",
        "building_travels",
        "buildings",
        "groups",
        "courses",
    ):
        op.drop_table(table)

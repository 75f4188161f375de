"""create schedule tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


SEMESTER_VALUES = ("1.1", "1.2", "2.1", "2.2")
semester_enum = postgresql.ENUM(*SEMESTER_VALUES, name="semester", create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _schedule_hours_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_name", sa.String(length=500), nullable=False),
        sa.Column("semester", semester_enum, nullable=False),
        sa.Column("class_type", sa.String(length=50), nullable=False, server_default="LT"),
        sa.Column("student_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("theory_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("crowd_class_coefficient", sa.Float(), nullable=False, server_default="1"),
        sa.Column("overtime_coefficient", sa.Float(), nullable=False, server_default="1"),
        sa.Column("standard_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("hours_per_week", sa.Integer(), nullable=True),
        sa.Column("lecturer_name", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(*SEMESTER_VALUES, name="semester").create(bind, checkfirst=True)

    op.create_table(
        "academic_years",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("year_code", sa.String(length=20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_academic_years_year_code", "academic_years", ["year_code"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        sa.Column("course_name", sa.String(length=255), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("semester", semester_enum, nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_courses_course_code", "courses", ["course_code"], unique=True)
    op.create_index("ix_courses_course_name", "courses", ["course_name"])

    op.create_table(
        "buildings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_buildings_name", "buildings", ["name"], unique=True)

    op.create_table(
        "classrooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=100), nullable=False, server_default="lecture"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("building_id", sa.String(length=36), sa.ForeignKey("buildings.id"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", "building_id", name="uq_classrooms_name_building"),
    )
    op.create_index("ix_classrooms_building_id", "classrooms", ["building_id"])

    op.create_table(
        "timetables",
        *_schedule_hours_columns(),
        sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), sa.ForeignKey("academic_years.id"), nullable=False),
        sa.Column("is_standard", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("class_name", "semester", "academic_year_id", name="uq_timetables_class_semester_year"),
    )
    op.create_index("ix_timetables_class_name", "timetables", ["class_name"])
    op.create_index("ix_timetables_course_id", "timetables", ["course_id"])
    op.create_index("ix_timetables_academic_year_id", "timetables", ["academic_year_id"])

    op.create_table(
        "timetable_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timetable_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("time_slot", sa.String(length=50), nullable=False),
        sa.Column("room_name", sa.String(length=100), nullable=False),
        sa.Column("building_name", sa.String(length=100), nullable=True),
        sa.Column("classroom_id", sa.String(length=36), sa.ForeignKey("classrooms.id"), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
    )
    op.create_index("ix_timetable_slots_timetable_id", "timetable_slots", ["timetable_id"])
    op.create_index(
        "ix_timetable_slots_booking",
        "timetable_slots",
        ["room_name", "building_name", "day_of_week", "time_slot"],
    )

    op.create_table(
        "teaching_standards",
        *_schedule_hours_columns(),
        sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=True),
        sa.Column("academic_year_id", sa.String(length=36), sa.ForeignKey("academic_years.id"), nullable=True),
        sa.Column(
            "source_timetable_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_teaching_standards_class_name", "teaching_standards", ["class_name"])
    op.create_index("ix_teaching_standards_course_id", "teaching_standards", ["course_id"])
    op.create_index("ix_teaching_standards_academic_year_id", "teaching_standards", ["academic_year_id"])


def downgrade() -> None:
    op.drop_table("teaching_standards")
    op.drop_table("timetable_slots")
    op.drop_table("timetables")
    op.drop_table("classrooms")
    op.drop_table("buildings")
    op.drop_table("courses")
    op.drop_table("academic_years")
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(name="semester").drop(bind, checkfirst=True)

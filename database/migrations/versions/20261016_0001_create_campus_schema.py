"""create campus schema

Revision ID: 20261016_0001
Revises: None
Create Date: 2026-10-16 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261016_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "user", name="user_role")
day_of_week_enum = sa.Enum(
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday", name="day_of_week"
)


def _identity_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("external_id", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "departments",
        *_identity_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
    )
    op.create_index("ix_departments_external_id", "departments", ["external_id"], unique=True)
    op.create_index("ix_departments_code", "departments", ["code"], unique=True)

    op.create_table(
        "courses",
        *_identity_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("department_id", sa.String(length=32), sa.ForeignKey("departments.external_id"), nullable=False),
    )
    op.create_index("ix_courses_external_id", "courses", ["external_id"], unique=True)
    op.create_index("ix_courses_code", "courses", ["code"], unique=True)
    op.create_index("ix_courses_department_id", "courses", ["department_id"])

    for table_name in ("lecturers", "students"):
        extra = [sa.Column("enrollment_year", sa.Integer(), nullable=False)] if table_name == "students" else []
        op.create_table(
            table_name,
            *_identity_columns(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=40), nullable=False),
            sa.Column(
                "department_id", sa.String(length=32), sa.ForeignKey("departments.external_id"), nullable=False
            ),
            *extra,
            sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        )
        op.create_index(f"ix_{table_name}_external_id", table_name, ["external_id"], unique=True)
        op.create_index(f"ix_{table_name}_email", table_name, ["email"], unique=True)
        op.create_index(f"ix_{table_name}_department_id", table_name, ["department_id"])

    op.create_table(
        "class_sessions",
        *_identity_columns(),
        sa.Column("course_id", sa.String(length=32), sa.ForeignKey("courses.external_id"), nullable=False),
        sa.Column("lecturer_id", sa.String(length=32), sa.ForeignKey("lecturers.external_id"), nullable=False),
        sa.Column("day", day_of_week_enum, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("enrolled_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("end_time > start_time", name="ck_class_sessions_time_order"),
        sa.CheckConstraint("enrolled_count <= max_capacity", name="ck_class_sessions_capacity"),
    )
    op.create_index("ix_class_sessions_external_id", "class_sessions", ["external_id"], unique=True)
    op.create_index("ix_class_sessions_course_id", "class_sessions", ["course_id"])
    op.create_index("ix_class_sessions_lecturer_id", "class_sessions", ["lecturer_id"])
    op.create_index("ix_class_sessions_day", "class_sessions", ["day"])

    op.create_table(
        "course_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("lecturer_id", sa.String(length=32), sa.ForeignKey("lecturers.external_id"), nullable=False),
        sa.Column("course_id", sa.String(length=32), sa.ForeignKey("courses.external_id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("lecturer_id", "course_id", name="uq_course_assignments_pair"),
    )
    op.create_index("ix_course_assignments_lecturer_id", "course_assignments", ["lecturer_id"])
    op.create_index("ix_course_assignments_course_id", "course_assignments", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=32), sa.ForeignKey("students.external_id"), nullable=False),
        sa.Column(
            "class_session_id", sa.String(length=32), sa.ForeignKey("class_sessions.external_id"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "class_session_id", name="uq_enrollments_pair"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_class_session_id", "enrollments", ["class_session_id"])

    op.create_table(
        "external_id_sequences",
        sa.Column("name", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("external_id_sequences")
    op.drop_table("enrollments")
    op.drop_table("course_assignments")
    op.drop_table("class_sessions")
    op.drop_table("students")
    op.drop_table("lecturers")
    op.drop_table("courses")
    op.drop_table("departments")
    op.drop_table("users")
    day_of_week_enum.drop(op.get_bind(), checkfirst=True)
    user_role_enum.drop(op.get_bind(), checkfirst=True)

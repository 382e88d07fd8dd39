"""initial_lms_data_layer

Plants, profiles, admin roles, courses, enrollments, progress and
question events for the training data layer.

Enrollment and progress carry unique (user_id, course_id) constraints so a
duplicate that races past the service pre-check is rejected by the DB.

Revision ID: 6f1c2a9b7d30
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "6f1c2a9b7d30"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _training_keys(table_name):
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("plant_id", sa.String(36), sa.ForeignKey("plants.id"), nullable=False),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", name=f"fk_{table_name}_user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id", sa.String(36),
            sa.ForeignKey("courses.id", name=f"fk_{table_name}_course_id", ondelete="CASCADE"),
            nullable=False,
        ),
    ]


def upgrade():
    op.create_table(
        "plants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("plant_id", sa.String(36), sa.ForeignKey("plants.id"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("job_title", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_profiles_plant_id", "profiles", ["plant_id"])
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "admin_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("plant_id", sa.String(36), sa.ForeignKey("plants.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "role", "plant_id", name="uq_admin_roles_user_role_plant"),
    )
    op.create_index("ix_admin_roles_user_id", "admin_roles", ["user_id"])

    op.create_table(
        "courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("version", sa.String(20), nullable=False, server_default="1.0"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "enrollments",
        *_training_keys("enrollments"),
        sa.Column("status", sa.String(20), nullable=False, server_default="enrolled"),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
    )
    op.create_index("ix_enrollments_plant_id", "enrollments", ["plant_id"])
    op.create_index("ix_enrollments_plant_course_id", "enrollments", ["plant_id", "course_id"])
    op.create_index("ix_enrollments_status", "enrollments", ["status"])

    op.create_table(
        "progress",
        *_training_keys("progress"),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_section", sa.String(200), nullable=True),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "course_id", name="uq_progress_user_course"),
        sa.CheckConstraint(
            "progress_percent >= 0 AND progress_percent <= 100",
            name="ck_progress_percent_range",
        ),
    )
    op.create_index("ix_progress_plant_id", "progress", ["plant_id"])
    op.create_index("ix_progress_plant_course_id", "progress", ["plant_id", "course_id"])

    op.create_table(
        "question_events",
        *_training_keys("question_events"),
        sa.Column("section_key", sa.String(100), nullable=False),
        sa.Column("question_key", sa.String(100), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("attempt_index", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_question_events_plant_id", "question_events", ["plant_id"])
    op.create_index(
        "ix_question_events_plant_course_id_question_key",
        "question_events", ["plant_id", "course_id", "question_key"],
    )


def downgrade():
    op.drop_table("question_events")
    op.drop_table("progress")
    op.drop_table("enrollments")
    op.drop_table("courses")
    op.drop_table("admin_roles")
    op.drop_table("profiles")
    op.drop_table("plants")

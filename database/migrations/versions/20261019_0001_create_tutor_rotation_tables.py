"""create tutor rotation tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


assignment_status = sa.Enum("pending", "accepted", "declined", name="assignment_status")
recurrence_pattern = sa.Enum("round_robin", "weekly", "consecutive_days", "manual", name="recurrence_pattern")
session_status = sa.Enum("pending", "confirmed", "completed", "cancelled", name="session_status")


def upgrade() -> None:
    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("epoch_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_time_slots_class_id", "time_slots", ["class_id"], unique=False)

    op.create_table(
        "slot_cancellations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("time_slot_id", sa.String(length=36), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("time_slot_id", "week_start", name="uq_slot_cancellation_week"),
    )
    op.create_index("ix_slot_cancellations_time_slot_id", "slot_cancellations", ["time_slot_id"], unique=False)

    op.create_table(
        "tutors",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tutors_email", "tutors", ["email"], unique=True)

    op.create_table(
        "tutor_unavailability",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tutor_id", sa.String(length=36), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tutor_unavailability_tutor_id", "tutor_unavailability", ["tutor_id"], unique=False)

    op.create_table(
        "tutor_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("time_slot_id", sa.String(length=36), nullable=False),
        sa.Column("tutor_id", sa.String(length=36), nullable=False),
        sa.Column("status", assignment_status, nullable=False, server_default="pending"),
        sa.Column("recurrence_pattern", recurrence_pattern, nullable=False),
        sa.Column("recurrence_config", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_tutor_assignments_time_slot_id", "tutor_assignments", ["time_slot_id"], unique=False)
    op.create_index("ix_tutor_assignments_tutor_id", "tutor_assignments", ["tutor_id"], unique=False)

    op.create_table(
        "tutoring_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("time_slot_id", sa.String(length=36), nullable=True),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tutor_id", sa.String(length=36), nullable=True),
        sa.Column("status", session_status, nullable=False, server_default="pending"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("time_slot_id", "scheduled_start", name="uq_tutoring_session_occurrence"),
    )
    op.create_index("ix_tutoring_sessions_time_slot_id", "tutoring_sessions", ["time_slot_id"], unique=False)
    op.create_index("ix_tutoring_sessions_class_id", "tutoring_sessions", ["class_id"], unique=False)
    op.create_index("ix_tutoring_sessions_scheduled_start", "tutoring_sessions", ["scheduled_start"], unique=False)
    op.create_index("ix_tutoring_sessions_tutor_id", "tutoring_sessions", ["tutor_id"], unique=False)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_index("ix_tutoring_sessions_tutor_id", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_scheduled_start", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_class_id", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_time_slot_id", table_name="tutoring_sessions")
    op.drop_table("tutoring_sessions")
    op.drop_index("ix_tutor_assignments_tutor_id", table_name="tutor_assignments")
    op.drop_index("ix_tutor_assignments_time_slot_id", table_name="tutor_assignments")
    op.drop_table("tutor_assignments")
    op.drop_index("ix_tutor_unavailability_tutor_id", table_name="tutor_unavailability")
    op.drop_table("tutor_unavailability")
    op.drop_index("ix_tutors_email", table_name="tutors")
    op.drop_table("tutors")
    op.drop_index("ix_slot_cancellations_time_slot_id", table_name="slot_cancellations")
    op.drop_table("slot_cancellations")
    op.drop_index("ix_time_slots_class_id", table_name="time_slots")
    op.drop_table("time_slots")
    session_status.drop(op.get_bind(), checkfirst=True)
    recurrence_pattern.drop(op.get_bind(), checkfirst=True)
    assignment_status.drop(op.get_bind(), checkfirst=True)

"""Create praxis tables

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the tables the API reads and writes: user profiles, patients,
       assignments, courses with lessons, snapshots and enrollments, push
       subscriptions and the webhook event log.
How:   PostgreSQL-specific types: UUID primary keys, TIMESTAMP WITH TIME ZONE,
       JSONB, text arrays and an expression index on the push endpoint.

Row-level security policies are owned by the database project, not by
these migrations.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
        primary_key=True,
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ── People ────────────────────────────────────────────────────────────
    op.create_table(
        "user_profiles",
        # Same value as the auth provider's user id
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'aktiv'")),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        _created_at(),
    )

    op.create_table(
        "patients",
        _id(),
        sa.Column("therapeut_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True, unique=True),
        sa.Column("vorname", sa.String(100), nullable=False),
        sa.Column("nachname", sa.String(100), nullable=False),
        sa.Column("geburtsdatum", sa.Date(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("invite_token", sa.Text(), nullable=True, unique=True),
        sa.Column("invite_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("archived_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("idx_patients_therapeut_id", "patients", ["therapeut_id"])
    op.create_index("idx_patients_email", "patients", ["email"])

    op.create_table(
        "patient_assignments",
        _id(),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'aktiv'")),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        # Weekday codes: mo, di, mi, do, fr, sa, so
        sa.Column("active_days", postgresql.ARRAY(sa.String(2)), nullable=False),
    )
    op.create_index("idx_patient_assignments_patient_id", "patient_assignments", ["patient_id"])

    # ── Courses ───────────────────────────────────────────────────────────
    op.create_table(
        "courses",
        _id(),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("beschreibung", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'entwurf'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("invite_token", sa.Text(), nullable=True, unique=True),
        sa.Column("invite_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
    )
    op.create_index("idx_courses_created_by", "courses", ["created_by"])

    op.create_table(
        "course_lessons",
        _id(),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("beschreibung", sa.Text(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("exercise_unit", postgresql.JSONB(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("idx_course_lessons_course_id", "course_lessons", ["course_id"])

    op.create_table(
        "course_lesson_snapshots",
        _id(),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("beschreibung", sa.Text(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("exercise_unit", postgresql.JSONB(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("lesson_id", "version", name="uq_course_lesson_snapshots_lesson_version"),
    )
    op.create_index(
        "idx_course_lesson_snapshots_course_version", "course_lesson_snapshots", ["course_id", "version"]
    )

    op.create_table(
        "course_enrollments",
        _id(),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'aktiv'")),
        sa.Column("enrolled_version", sa.Integer(), nullable=False),
        _created_at("enrolled_at"),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("course_id", "patient_id", name="uq_course_enrollments_course_patient"),
    )

    # ── Push ──────────────────────────────────────────────────────────────
    op.create_table(
        "push_subscriptions",
        _id(),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subscription_json", postgresql.JSONB(), nullable=False),
        sa.Column("device_type", sa.String(20), nullable=False),
        sa.Column("reminder_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("reminder_time", sa.String(5), nullable=False, server_default=sa.text("'08:00'")),
        sa.Column("chat_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("idx_push_subscriptions_patient_id", "push_subscriptions", ["patient_id"])
    op.create_index(
        "uq_push_subscriptions_endpoint",
        "push_subscriptions",
        [sa.text("(subscription_json->>'endpoint')")],
        unique=True,
    )

    # ── Webhook audit log ─────────────────────────────────────────────────
    op.create_table(
        "webhook_events",
        _id(),
        _created_at("received_at"),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("processing_status", sa.String(20), nullable=False, server_default=sa.text("'received'")),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("idx_webhook_events_received_at", "webhook_events", [sa.text("received_at DESC")])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("push_subscriptions")
    op.drop_table("course_enrollments")
    op.drop_table("course_lesson_snapshots")
    op.drop_table("course_lessons")
    op.drop_table("courses")
    op.drop_table("patient_assignments")
    op.drop_table("patients")
    op.drop_table("user_profiles")

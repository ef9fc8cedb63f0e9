# backend/alembic/versions/001_edshare_schema.py
"""EdShare schema: users, tutor profiles, calendars, bookings

Revision ID: 001_edshare_schema
Revises:
Create Date: 2030-01-01 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_edshare_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _is_postgres() -> bool:
    bind = op.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def upgrade() -> None:
    """Create the EdShare tables."""
    print("Creating EdShare tables...")

    op.create_table(
        "users",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('student', 'tutor', 'admin', 'employee')", name="ck_users_role"),
        sa.CheckConstraint("latitude IS NULL OR (latitude BETWEEN -90 AND 90)", name="ck_users_lat"),
        sa.CheckConstraint("longitude IS NULL OR (longitude BETWEEN -180 AND 180)", name="ck_users_lon"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "tutor_profiles",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(26),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("teaching_modes", sa.JSON(), nullable=False),
        sa.Column("rating_average", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verification_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("is_available_for_booking", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("experience_years BETWEEN 0 AND 50", name="ck_tutor_experience_range"),
        sa.CheckConstraint("rating_average BETWEEN 0 AND 5", name="ck_tutor_rating_range"),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="ck_tutor_verification_status",
        ),
    )
    op.create_index("ix_tutor_profiles_id", "tutor_profiles", ["id"])
    op.create_index(
        "ix_tutor_profiles_verification_status", "tutor_profiles", ["verification_status"]
    )

    op.create_table(
        "tutor_subjects",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tutor_profile_id",
            sa.String(26),
            sa.ForeignKey("tutor_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("classes", sa.JSON(), nullable=False),
        sa.Column("boards", sa.JSON(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint("price_per_hour > 0", name="ck_tutor_subject_price_positive"),
    )
    op.create_index("ix_tutor_subjects_id", "tutor_subjects", ["id"])
    op.create_index("ix_tutor_subjects_tutor_profile_id", "tutor_subjects", ["tutor_profile_id"])

    op.create_table(
        "tutor_availability_windows",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tutor_profile_id",
            sa.String(26),
            sa.ForeignKey("tutor_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_window_dow"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_window_order"),
    )
    op.create_index("ix_tutor_availability_windows_id", "tutor_availability_windows", ["id"])
    op.create_index(
        "ix_availability_windows_tutor_dow",
        "tutor_availability_windows",
        ["tutor_profile_id", "day_of_week"],
    )

    op.create_table(
        "tutor_availability_overrides",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tutor_profile_id",
            sa.String(26),
            sa.ForeignKey("tutor_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("specific_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("is_blackout", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.CheckConstraint(
            "is_blackout OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="ck_availability_override_window",
        ),
    )
    op.create_index("ix_tutor_availability_overrides_id", "tutor_availability_overrides", ["id"])
    op.create_index(
        "ix_availability_overrides_tutor_date",
        "tutor_availability_overrides",
        ["tutor_profile_id", "specific_date"],
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tutor_id", sa.String(26), sa.ForeignKey("tutor_profiles.id"), nullable=False),
        sa.Column("session_type", sa.String(20), nullable=False, server_default="regular"),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("class_level", sa.String(10), nullable=False),
        sa.Column("board", sa.String(20), nullable=False),
        sa.Column("topics", sa.JSON(), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("mode", sa.String(10), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("base_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(30), nullable=True),
        sa.Column("payment_transaction_id", sa.String(255), nullable=True),
        sa.Column("payment_order_id", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_id", sa.String(255), nullable=True),
        sa.Column("refunded_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by_role", sa.String(20), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_eligible", sa.Boolean(), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rescheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', "
            "'cancelled', 'no_show', 'rescheduled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("mode IN ('online', 'offline')", name="ck_bookings_mode"),
        sa.CheckConstraint("duration_minutes BETWEEN 30 AND 180", name="check_duration_range"),
        sa.CheckConstraint("start_time < end_time", name="check_time_order"),
        sa.CheckConstraint("total_amount >= 0", name="check_total_non_negative"),
        sa.CheckConstraint("hourly_rate > 0", name="check_rate_positive"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_payment_transaction_id", "bookings", ["payment_transaction_id"])
    op.create_index(
        "ix_bookings_tutor_date_status", "bookings", ["tutor_id", "booking_date", "status"]
    )

    if _is_postgres():
        # Backstop for the application-level overlap check: two active
        # bookings of the same tutor can never share a half-open span.
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings
              ADD COLUMN booking_span tsrange
              GENERATED ALWAYS AS (
                tsrange(
                  (booking_date::timestamp + start_time),
                  (booking_date::timestamp + end_time),
                  '[)'
                )
              ) STORED
            """
        )
        op.execute(
            """
            ALTER TABLE bookings
              ADD CONSTRAINT bookings_no_overlap_per_tutor
              EXCLUDE USING gist (
                tutor_id WITH =,
                booking_span WITH &&
              )
              WHERE (status IN ('scheduled', 'confirmed', 'in_progress'))
            """
        )

    print("EdShare tables created")


def downgrade() -> None:
    """Drop the EdShare tables."""
    print("Dropping EdShare tables...")

    if _is_postgres():
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS bookings_no_overlap_per_tutor")

    op.drop_table("bookings")
    op.drop_table("tutor_availability_overrides")
    op.drop_table("tutor_availability_windows")
    op.drop_table("tutor_subjects")
    op.drop_table("tutor_profiles")
    op.drop_table("users")

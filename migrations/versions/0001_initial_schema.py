"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:12:40.118204
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _jsonb():
    # Portable: JSON on SQLite, JSONB on Postgres
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _uuid_pk():
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _indexes(table, *cols, unique=()):
    with op.batch_alter_table(table) as batch_op:
        for col in cols:
            batch_op.create_index(batch_op.f(f"ix_{table}_{col}"), [col], unique=col in unique)


def _sanctuary_table(name, *columns, extra_indexes=()):
    op.create_table(
        name,
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        *columns,
        *_timestamps(),
    )
    _indexes(name, "campaign_id", "user_id", "created_at")
    for index_name, cols in extra_indexes:
        op.create_index(index_name, name, list(cols))


def upgrade():
    # --- users ---
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    _indexes("users", "email", "created_at", unique=("email",))

    # --- magic_links ---
    op.create_table(
        "magic_links",
        _uuid_pk(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False, unique=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("redirect_to", sa.String(length=500), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    _indexes("magic_links", "email", "created_at")

    # --- campaigns ---
    op.create_table(
        "campaigns",
        _uuid_pk(),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("patient_name", sa.String(length=160), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("story", sa.Text(), nullable=True),
        sa.Column("leaf_count", sa.Integer(), nullable=False),
        sa.Column("supporter_count", sa.Integer(), nullable=False),
        sa.Column("monthly_total_cents", sa.Integer(), nullable=False),
        sa.Column("sanctuary_claimed", sa.Boolean(), nullable=False),
        sa.Column("sanctuary_claimed_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sanctuary_start_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("leaf_count >= 0", name="ck_campaigns_leaf_count_nonneg"),
        sa.CheckConstraint("supporter_count >= 0", name="ck_campaigns_supporter_count_nonneg"),
    )
    _indexes("campaigns", "slug", "status", "sanctuary_claimed_by", "created_at", unique=("slug",))
    op.create_index("ix_campaigns_status_created", "campaigns", ["status", "created_at"])

    # --- leaves ---
    op.create_table(
        "leaves",
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_name", sa.String(length=160), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False),
        sa.Column("position_y", sa.Integer(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    _indexes("leaves", "campaign_id", "created_at")
    op.create_index("ix_leaves_campaign_created", "leaves", ["campaign_id", "created_at"])

    # --- bridge_campaigns ---
    op.create_table(
        "bridge_campaigns",
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("gofundme_url", sa.String(length=500), nullable=False),
        sa.Column("gofundme_title", sa.String(length=255), nullable=False),
        sa.Column("gofundme_organiser_name", sa.String(length=160), nullable=False),
        sa.Column("gofundme_raised_cents", sa.Integer(), nullable=False),
        sa.Column("gofundme_goal_cents", sa.Integer(), nullable=False),
        sa.Column("gofundme_donor_count", sa.Integer(), nullable=False),
        sa.Column("gofundme_category", sa.String(length=80), nullable=True),
        sa.Column("claimed_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("outreach_attempts", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("outreach_attempts >= 0", name="ck_bridge_outreach_nonneg"),
    )
    _indexes("bridge_campaigns", "campaign_id", "status", "claimed_by", "created_at")

    # --- bridge_outreach ---
    op.create_table(
        "bridge_outreach",
        _uuid_pk(),
        sa.Column("bridge_id", sa.String(length=36), sa.ForeignKey("bridge_campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("channel", sa.String(length=40), nullable=False),
        sa.Column("message_summary", sa.Text(), nullable=False),
        sa.Column("outreach_date", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    _indexes("bridge_outreach", "bridge_id", "created_at")

    # --- commitments ---
    op.create_table(
        "commitments",
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("monthly_tier", sa.String(length=20), nullable=False),
        sa.Column("stripe_subscription_id", sa.String(length=120), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("paused_at", sa.DateTime(), nullable=True),
        sa.Column("paused_until", sa.Date(), nullable=True),
        sa.Column("resume_date", sa.Date(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _indexes(
        "commitments",
        "campaign_id",
        "user_id",
        "status",
        "stripe_subscription_id",
        "stripe_customer_id",
        "created_at",
        unique=("stripe_subscription_id",),
    )
    op.create_index("ix_commitments_user_started", "commitments", ["user_id", "started_at"])

    # --- memberships ---
    op.create_table(
        "memberships",
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("campaign_id", "user_id", "role", name="uq_memberships_campaign_user_role"),
    )
    _indexes("memberships", "campaign_id", "user_id")

    # --- sanctuary_days ---
    op.create_table(
        "sanctuary_days",
        _uuid_pk(),
        sa.Column("campaign_id", sa.String(length=36), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("content_markdown", sa.Text(), nullable=False),
        sa.Column("reflection_prompt", sa.Text(), nullable=True),
        sa.UniqueConstraint("campaign_id", "day_number", name="uq_sanctuary_days_campaign_day"),
        sa.CheckConstraint("day_number BETWEEN 1 AND 30", name="ck_sanctuary_days_range"),
    )
    _indexes("sanctuary_days", "campaign_id")

    # --- sanctuary tools ---
    _sanctuary_table(
        "journal_entries",
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("mood_score", sa.Integer(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False),
    )
    _sanctuary_table(
        "tasks",
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("priority", sa.String(length=10), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        extra_indexes=[("ix_tasks_campaign_due", ("campaign_id", "due_date"))],
    )
    _sanctuary_table(
        "medications",
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("dosage", sa.String(length=80), nullable=True),
        sa.Column("frequency", sa.String(length=80), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("prescriber", sa.String(length=160), nullable=True),
        sa.Column("time_of_day", sa.String(length=40), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    _sanctuary_table(
        "appointments",
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.String(length=16), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("doctor_name", sa.String(length=160), nullable=True),
        extra_indexes=[("ix_appointments_campaign_date", ("campaign_id", "appointment_date"))],
    )
    _sanctuary_table(
        "symptom_logs",
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(length=80), nullable=True),
        sa.Column("triggered_by", sa.String(length=255), nullable=True),
    )

    # --- analytics_events ---
    op.create_table(
        "analytics_events",
        _uuid_pk(),
        sa.Column("event_name", sa.String(length=80), nullable=False),
        sa.Column("campaign_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("properties", _jsonb(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    _indexes("analytics_events", "event_name", "campaign_id", "user_id", "created_at")
    op.create_index("ix_analytics_events_name_created", "analytics_events", ["event_name", "created_at"])

    # --- stripe_events ---
    op.create_table(
        "stripe_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("event_id", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=120), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("object_id", sa.String(length=120), nullable=True),
        *_timestamps(),
    )
    _indexes("stripe_events", "event_id", "type", "object_id", "created_at", unique=("event_id",))
    op.create_index("ix_stripe_events_type_created", "stripe_events", ["type", "created_at"])


def downgrade():
    for table in (
        "stripe_events",
        "analytics_events",
        "symptom_logs",
        "appointments",
        "medications",
        "tasks",
        "journal_entries",
        "sanctuary_days",
        "memberships",
        "commitments",
        "bridge_outreach",
        "bridge_campaigns",
        "leaves",
        "campaigns",
        "magic_links",
        "users",
    ):
        op.drop_table(table)

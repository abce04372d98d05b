"""initial marketplace schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


PRICING_TYPE = sa.Enum("ONE_TIME", "HOURLY", "MONTHLY_SUBSCRIPTION", name="pricingtype")
SUBSCRIPTION_STATUS = sa.Enum("ACTIVE", "CANCELLED", "EXPIRED", name="subscriptionstatus")
SESSION_STATUS = sa.Enum("SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED", "NO_SHOW", name="sessionstatus")
TRANSACTION_STATUS = sa.Enum("PENDING", "COMPLETED", "FAILED", name="transactionstatus")
ADJUSTMENT_KIND = sa.Enum("REFUND", "ADDITIONAL_CHARGE", "NONE", name="adjustmentkind")
PAYOUT_STATUS = sa.Enum("PENDING", "COMPLETED", "FAILED", name="payoutstatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "availability_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="check_day_of_week_range"),
        sa.CheckConstraint("start_time < end_time", name="check_slot_start_before_end"),
    )
    op.create_index("ix_availability_slots_id", "availability_slots", ["id"])
    op.create_index("ix_availability_mentor_day", "availability_slots", ["mentor_id", "day_of_week"])

    op.create_table(
        "pricing_models",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", PRICING_TYPE, nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint("price > 0", name="check_pricing_price_positive"),
    )
    op.create_index("ix_pricing_models_id", "pricing_models", ["id"])
    op.create_index("ix_pricing_models_mentor_id", "pricing_models", ["mentor_id"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mentee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("pricing_model_id", sa.Integer(), sa.ForeignKey("pricing_models.id", ondelete="SET NULL"), nullable=True),
        sa.Column("start_time", sa.TIMESTAMP(), nullable=False),
        sa.Column("scheduled_end", sa.TIMESTAMP(), nullable=False),
        sa.Column("status", SESSION_STATUS, nullable=False),
        sa.Column("pricing_type", PRICING_TYPE, nullable=False),
        sa.Column("agreed_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("estimated_minutes", sa.Integer(), nullable=True),
        sa.Column("session_link", sa.String(64), nullable=False, unique=True),
        sa.Column("actual_duration", sa.Integer(), nullable=True),
        sa.Column("end_time", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint("mentee_id <> mentor_id", name="check_session_not_self"),
        sa.CheckConstraint("scheduled_end > start_time", name="check_session_end_after_start"),
        sa.CheckConstraint("agreed_price >= 0", name="check_session_price_non_negative"),
    )
    op.create_index("ix_sessions_id", "sessions", ["id"])
    op.create_index("ix_sessions_status", "sessions", ["status"])
    op.create_index("ix_sessions_mentor_status_start", "sessions", ["mentor_id", "status", "start_time"])

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # Storage-level guard against double booking: no two blocking sessions
        # of one mentor may overlap, even if two requests pass the check at once.
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            "ALTER TABLE sessions ADD CONSTRAINT excl_sessions_mentor_overlap "
            "EXCLUDE USING gist (mentor_id WITH =, tsrange(start_time, scheduled_end, '[)') WITH &&) "
            "WHERE (status IN ('SCHEDULED', 'IN_PROGRESS'))"
        )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pricing_model_id", sa.Integer(), sa.ForeignKey("pricing_models.id", ondelete="SET NULL"), nullable=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", SUBSCRIPTION_STATUS, nullable=False),
        sa.Column("start_date", sa.TIMESTAMP(), nullable=False),
        sa.Column("end_date", sa.TIMESTAMP(), nullable=False),
        sa.Column("cancelled_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
    )
    op.create_index("ix_subscriptions_id", "subscriptions", ["id"])
    op.create_index("ix_subscriptions_mentee_mentor", "subscriptions", ["mentee_id", "mentor_id", "status"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.id"), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("mentor_earnings", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", TRANSACTION_STATUS, nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("gateway_reference", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("completed_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"])
    op.create_index("ix_transactions_status", "transactions", ["status"])

    op.create_table(
        "transaction_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("previous_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("new_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("delta", sa.Numeric(12, 2), nullable=False),
        sa.Column("kind", ADJUSTMENT_KIND, nullable=False),
        sa.Column("actual_minutes", sa.Integer(), nullable=False),
        sa.Column("applied", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
    )
    op.create_index("ix_transaction_adjustments_id", "transaction_adjustments", ["id"])
    op.create_index("ix_transaction_adjustments_transaction_id", "transaction_adjustments", ["transaction_id"])

    op.create_table(
        "mentor_payouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("requested_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", PAYOUT_STATUS, nullable=False),
        sa.Column("payout_method", sa.String(30), nullable=False),
        sa.Column("trigger_type", sa.String(30), nullable=False),
        sa.Column("failure_reason", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("processed_at", sa.TIMESTAMP(), nullable=True),
    )
    op.create_index("ix_mentor_payouts_id", "mentor_payouts", ["id"])
    op.create_index("ix_mentor_payouts_mentor_id", "mentor_payouts", ["mentor_id"])
    op.create_index("ix_mentor_payouts_status", "mentor_payouts", ["status"])

    op.create_table(
        "payout_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payout_id", sa.Integer(), sa.ForeignKey("mentor_payouts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False, unique=True),
    )
    op.create_index("ix_payout_transactions_id", "payout_transactions", ["id"])
    op.create_index("ix_payout_transactions_payout_id", "payout_transactions", ["payout_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(60), nullable=False),
        sa.Column("resource", sa.String(40), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("payout_id", sa.Integer(), sa.ForeignKey("mentor_payouts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"])


def downgrade() -> None:
    for table in (
        "notifications",
        "audit_logs",
        "payout_transactions",
        "mentor_payouts",
        "transaction_adjustments",
        "transactions",
        "subscriptions",
        "sessions",
        "pricing_models",
        "availability_slots",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        PAYOUT_STATUS, ADJUSTMENT_KIND, TRANSACTION_STATUS, SESSION_STATUS,
        SUBSCRIPTION_STATUS, PRICING_TYPE,
    ):
        enum_type.drop(bind, checkfirst=True)

"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-12-01 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

task_status = sa.Enum("WAITING", "PROCESSING", "COMPLETED", "FAILED", name="taskstatus")
payment_status = sa.Enum("PENDING", "COMPLETED", name="paymentstatus")


def upgrade() -> None:
    """Create users, sessions, generation tasks, ledger and payment tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column(
            "user_id",
            sa.String(length=64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sessions_token", "sessions", ["token"], unique=True)
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "image_generation_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_task_id", sa.String(length=255), nullable=True),
        sa.Column("original_image_url", sa.String(), nullable=False),
        sa.Column("generated_image_url", sa.String(), nullable=True),
        sa.Column("prompt", sa.String(), nullable=False),
        sa.Column("style", sa.String(length=100), nullable=False),
        sa.Column("aspect_ratio", sa.String(length=20), nullable=False),
        sa.Column("resolution", sa.String(length=20), nullable=False),
        sa.Column("output_format", sa.String(length=20), nullable=False),
        sa.Column("status", task_status, nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("provider_response", sa.JSON(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("retry_count <= 3", name="ck_tasks_retry_count_max"),
    )
    op.create_index(
        "ix_image_generation_tasks_provider_task_id",
        "image_generation_tasks",
        ["provider_task_id"],
        unique=True,
    )
    op.create_index("ix_image_generation_tasks_user_id", "image_generation_tasks", ["user_id"])
    op.create_index("ix_image_generation_tasks_status", "image_generation_tasks", ["status"])
    op.create_index(
        "ix_image_generation_tasks_created_at", "image_generation_tasks", ["created_at"]
    )

    op.create_table(
        "credit_usage",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credits_added", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remaining_credits", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_credit_usage_user_id", "credit_usage", ["user_id"])
    op.create_index("ix_credit_usage_created_at", "credit_usage", ["created_at"])

    op.create_table(
        "stripe_payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=False),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("credits_added", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_stripe_payments_stripe_session_id",
        "stripe_payments",
        ["stripe_session_id"],
        unique=True,
    )
    op.create_index("ix_stripe_payments_user_id", "stripe_payments", ["user_id"])
    op.create_index("ix_stripe_payments_created_at", "stripe_payments", ["created_at"])


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("stripe_payments")
    op.drop_table("credit_usage")
    op.drop_table("image_generation_tasks")
    op.drop_table("sessions")
    op.drop_table("users")
    payment_status.drop(op.get_bind(), checkfirst=True)
    task_status.drop(op.get_bind(), checkfirst=True)

"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


ROLES = ("user", "admin", "approver")
TRANSACTION_TYPES = ("transfer", "withdrawal", "payment", "deposit")
TRANSACTION_STATUSES = ("pending", "approved", "rejected", "completed", "failed")
AUDIT_ACTIONS = (
    "user_create", "login", "login_failed",
    "2fa_setup", "2fa_enable", "2fa_disable", "2fa_verify",
    "transaction_create", "transaction_approve", "transaction_reject",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(*ROLES, name="role_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("two_factor_secret", sa.String(64), nullable=True),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False),
        sa.Column("lock_until", sa.DateTime(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum(*TRANSACTION_TYPES, name="transaction_type_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*TRANSACTION_STATUSES, name="transaction_status_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("two_factor_verified", sa.Boolean(), nullable=False),
        sa.Column("from_account", sa.String(50), nullable=False),
        sa.Column("to_account", sa.String(50), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index(
        "ix_transactions_owner_created", "transactions", ["owner_id", "created_at"]
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column(
            "action",
            sa.Enum(*AUDIT_ACTIONS, name="audit_action_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("actor_email", sa.String(255), nullable=False),
        sa.Column(
            "actor_role",
            sa.Enum(*ROLES, name="audit_role_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("ip_address", sa.String(50), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("previous_hash", sa.String(64), nullable=True),
        sa.Column("entry_hash", sa.String(64), nullable=False),
    )
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index(
        "ix_audit_log_actor_created", "audit_log", ["actor_id", "created_at"]
    )
    op.create_index(
        "ix_audit_log_action_created", "audit_log", ["action", "created_at"]
    )

    op.create_table(
        "rate_limit_windows",
        sa.Column("key", sa.String(200), primary_key=True),
        sa.Column("window_start", sa.DateTime(), nullable=False),
        sa.Column("hit_count", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("rate_limit_windows")
    op.drop_index("ix_audit_log_action_created", table_name="audit_log")
    op.drop_index("ix_audit_log_actor_created", table_name="audit_log")
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_transactions_owner_created", table_name="transactions")
    op.drop_index("ix_transactions_status", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("users")

    bind = op.get_bind()
    for name in (
        "audit_role_enum", "audit_action_enum",
        "transaction_status_enum", "transaction_type_enum", "role_enum",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)

"""audit chain head

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 15:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "audit_chain_head",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entry_hash", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    # Point the head at the newest existing entry, if any
    op.execute(
        "INSERT INTO audit_chain_head (id, entry_hash, updated_at) "
        "SELECT 1, entry_hash, created_at FROM audit_log "
        "ORDER BY id DESC LIMIT 1"
    )


def downgrade() -> None:
    op.drop_table("audit_chain_head")

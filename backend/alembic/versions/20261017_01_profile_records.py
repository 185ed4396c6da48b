"""Profile record and audit tables."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261017_01_profile_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "profile_records",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("payload", sa.LargeBinary(), nullable=False),
        sa.Column("encrypted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_profile_records_user_id", "profile_records", ["user_id"], unique=True)

    op.create_table(
        "persistence_audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_persistence_audit_events_user_id", "persistence_audit_events", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_persistence_audit_events_user_id", table_name="persistence_audit_events")
    op.drop_table("persistence_audit_events")
    op.drop_index("ix_profile_records_user_id", table_name="profile_records")
    op.drop_table("profile_records")

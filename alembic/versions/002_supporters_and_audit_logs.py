"""Add supporters and audit_logs tables.

Revision ID: 002
Revises: 001
Create Date: 2026-09-14
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "supporters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("dob", sa.Date, nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("contact_number", sa.String(50), nullable=True),
        sa.Column(
            "jurisdiction_id",
            sa.Integer,
            sa.ForeignKey("jurisdictions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("registered_voter", sa.Boolean, nullable=True),
        sa.Column("verification_status", sa.String(20), nullable=False, server_default="unverified"),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "referred_from_jurisdiction_id",
            sa.Integer,
            sa.ForeignKey("jurisdictions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("normalized_phone", sa.String(20), nullable=True),
        sa.Column("potential_duplicate", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("duplicate_of_id", sa.Integer, sa.ForeignKey("supporters.id", ondelete="SET NULL"), nullable=True),
        sa.Column("duplicate_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duplicate_notes", sa.Text, nullable=True),
        sa.Column("duplicate_dismissed", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_supporters_jurisdiction_id", "supporters", ["jurisdiction_id"])
    op.create_index("ix_supporters_status", "supporters", ["status"])
    op.create_index("ix_supporters_verification_status", "supporters", ["verification_status"])
    op.create_index("ix_supporters_normalized_phone", "supporters", ["normalized_phone"])
    op.create_index("ix_supporters_potential_duplicate", "supporters", ["potential_duplicate"])
    op.execute("CREATE INDEX ix_supporters_lower_email ON supporters (lower(trim(email)))")
    op.execute(
        "CREATE INDEX ix_supporters_lower_name_jurisdiction "
        "ON supporters (lower(trim(first_name)), lower(trim(last_name)), jurisdiction_id)"
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("actor", sa.String(100), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_kind", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("details", sa.JSON().with_variant(JSONB(), "postgresql"), nullable=True),
    )
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_kind", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("supporters")

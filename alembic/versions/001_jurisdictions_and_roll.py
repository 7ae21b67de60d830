"""Initial migration: jurisdictions, roll_imports and roll_voters tables.

Revision ID: 001
Revises: None
Create Date: 2026-09-14
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "jurisdictions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "roll_imports",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("list_date", sa.Date, nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("import_type", sa.String(20), nullable=False, server_default="full_list"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("total_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("new_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("removed_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("transferred_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("ambiguous_dob_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("skipped_records", sa.Integer, nullable=False, server_default="0"),
        sa.Column("re_vetted_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_log", _JSON, nullable=True),
        sa.Column("uploaded_by", sa.String(100), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_roll_imports_list_date", "roll_imports", ["list_date"])
    op.create_index("ix_roll_imports_status", "roll_imports", ["status"])
    op.create_index("ix_roll_imports_created_at", "roll_imports", ["created_at"])

    import_fk = {"ondelete": "SET NULL"}
    op.create_table(
        "roll_voters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("dob", sa.Date, nullable=True),
        sa.Column("birth_year", sa.Integer, nullable=True),
        sa.Column("dob_ambiguous", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("jurisdiction_name", sa.String(100), nullable=False),
        sa.Column(
            "jurisdiction_id",
            sa.Integer,
            sa.ForeignKey("jurisdictions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("previous_jurisdiction_name", sa.String(100), nullable=True),
        sa.Column("registration_number", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("list_date", sa.Date, nullable=False),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "first_seen_import_id", sa.Uuid(as_uuid=True), sa.ForeignKey("roll_imports.id", **import_fk), nullable=True
        ),
        sa.Column(
            "last_changed_import_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("roll_imports.id", **import_fk),
            nullable=True,
        ),
        sa.Column(
            "last_seen_import_id", sa.Uuid(as_uuid=True), sa.ForeignKey("roll_imports.id", **import_fk), nullable=True
        ),
        sa.Column(
            "removal_detected_by_import_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("roll_imports.id", **import_fk),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_roll_voters_jurisdiction_id", "roll_voters", ["jurisdiction_id"])
    op.create_index("ix_roll_voters_registration_number", "roll_voters", ["registration_number"])
    op.create_index("ix_roll_voters_status", "roll_voters", ["status"])
    op.create_index("ix_roll_voters_list_date", "roll_voters", ["list_date"])
    op.create_index("ix_roll_voters_first_seen_import_id", "roll_voters", ["first_seen_import_id"])
    op.create_index("ix_roll_voters_last_changed_import_id", "roll_voters", ["last_changed_import_id"])
    op.create_index("ix_roll_voters_last_seen_import_id", "roll_voters", ["last_seen_import_id"])

    # Case-insensitive lookups used by the import diff and the matcher
    op.execute("CREATE INDEX ix_roll_voters_lower_name_dob ON roll_voters (lower(first_name), lower(last_name), dob)")
    op.execute(
        "CREATE INDEX ix_roll_voters_lower_name_birth_year "
        "ON roll_voters (lower(first_name), lower(last_name), birth_year)"
    )
    op.execute(
        "CREATE INDEX ix_roll_voters_lower_name_jurisdiction "
        "ON roll_voters (lower(first_name), lower(last_name), lower(jurisdiction_name))"
    )
    op.execute("CREATE INDEX ix_roll_voters_lower_last_name ON roll_voters (lower(last_name))")


def downgrade() -> None:
    op.drop_table("roll_voters")
    op.drop_table("roll_imports")
    op.drop_table("jurisdictions")

"""Add pg_trgm GIN indexes for fuzzy roll name matching.

Revision ID: 003
Revises: 002
Create Date: 2026-09-21

Enables the pg_trgm extension, which provides the ``similarity()`` function
the matcher's fuzzy tier calls, and adds GIN trigram indexes on the
lower-cased roll name fields.

PostgreSQL only; other dialects skip this revision.
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    op.execute(
        "CREATE INDEX ix_roll_voters_first_name_trgm ON roll_voters USING GIN (lower(first_name) gin_trgm_ops)"
    )
    op.execute("CREATE INDEX ix_roll_voters_last_name_trgm ON roll_voters USING GIN (lower(last_name) gin_trgm_ops)")


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP INDEX IF EXISTS ix_roll_voters_first_name_trgm")
    op.execute("DROP INDEX IF EXISTS ix_roll_voters_last_name_trgm")
    op.execute("DROP EXTENSION IF EXISTS pg_trgm")

"""RollImport model: tracks one roll upload and its diff counts."""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from voter_vetting.models.base import Base, JSONType, UUIDMixin, utcnow


class ImportStatus(enum.StrEnum):
    """Import lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportType(enum.StrEnum):
    """Whether the upload is the whole roll or only changed rows."""

    FULL_LIST = "full_list"
    CHANGES_ONLY = "changes_only"


class RollImport(Base, UUIDMixin):
    """One roll upload. Counts are written when processing finishes."""

    __tablename__ = "roll_imports"

    list_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    import_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImportType.FULL_LIST, server_default="full_list"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImportStatus.PENDING, server_default="pending", index=True
    )

    # Record counts
    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    new_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    removed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    transferred_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ambiguous_dob_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    skipped_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    re_vetted_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # Error tracking
    error_log: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)

    # Metadata
    uploaded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True
    )

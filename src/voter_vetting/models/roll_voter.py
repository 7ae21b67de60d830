"""RollVoter model: one entry of the authoritative external voter roll.

Records are created and updated only by roll imports and are never deleted;
a record missing from a newer full list is flipped to ``removed``.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from voter_vetting.models.base import Base, IntegerIdMixin, TimestampMixin, utcnow


class RollVoterStatus(enum.StrEnum):
    """Roll record lifecycle status."""

    ACTIVE = "active"
    REMOVED = "removed"


class RollVoter(Base, IntegerIdMixin, TimestampMixin):
    """A voter as listed on an imported roll.

    Attributes:
        dob: Full date of birth, when the roll provides one.
        birth_year: Year of birth; derived from ``dob`` when only that is known.
        dob_ambiguous: Day and month are both 12 or less and may be transposed.
        list_date: Roll version the record was last seen in.
        previous_jurisdiction_name: Jurisdiction before the last detected transfer.
        first_seen_import_id: Import that created the record.
        last_changed_import_id: Import that last changed a data field.
        last_seen_import_id: Import that most recently matched this record.
        removal_detected_by_import_id: Full-list import that found it missing.
    """

    __tablename__ = "roll_voters"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    birth_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dob_ambiguous: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    jurisdiction_name: Mapped[str] = mapped_column(String(100), nullable=False)
    jurisdiction_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("jurisdictions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    previous_jurisdiction_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    registration_number: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RollVoterStatus.ACTIVE, server_default="active", index=True
    )
    list_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    first_seen_import_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("roll_imports.id", ondelete="SET NULL"), nullable=True, index=True
    )
    last_changed_import_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("roll_imports.id", ondelete="SET NULL"), nullable=True, index=True
    )
    last_seen_import_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("roll_imports.id", ondelete="SET NULL"), nullable=True, index=True
    )
    removal_detected_by_import_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("roll_imports.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<RollVoter {self.id} {self.first_name} {self.last_name} ({self.jurisdiction_name}, {self.status})>"


# Matcher lookups compare names case-insensitively
Index(
    "ix_roll_voters_lower_name_dob",
    func.lower(RollVoter.first_name),
    func.lower(RollVoter.last_name),
    RollVoter.dob,
)
Index(
    "ix_roll_voters_lower_name_birth_year",
    func.lower(RollVoter.first_name),
    func.lower(RollVoter.last_name),
    RollVoter.birth_year,
)
Index(
    "ix_roll_voters_lower_name_jurisdiction",
    func.lower(RollVoter.first_name),
    func.lower(RollVoter.last_name),
    func.lower(RollVoter.jurisdiction_name),
)
Index("ix_roll_voters_lower_last_name", func.lower(RollVoter.last_name))

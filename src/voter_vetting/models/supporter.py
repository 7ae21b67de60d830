"""Supporter model: internally collected supporter records.

Verification fields are written by the vetting service and duplicate fields
by the duplicate service; supporters are never deleted.
"""

import enum
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from voter_vetting.models.base import Base, IntegerIdMixin, TimestampMixin


class SupporterStatus(enum.StrEnum):
    """Supporter record status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DUPLICATE = "duplicate"
    REMOVED = "removed"


class VerificationStatus(enum.StrEnum):
    """Voter-registration verification state."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    FLAGGED = "flagged"
    REJECTED = "rejected"


class Supporter(Base, IntegerIdMixin, TimestampMixin):
    """A supporter as entered by staff or sign-up forms.

    Attributes:
        registered_voter: Whether the roll lists this person (None until vetted).
        referred_from_jurisdiction_id: Jurisdiction the roll places them in when
            it differs from the one submitted.
        normalized_phone: Digits-only phone, recomputed on every save.
        duplicate_of_id: Lowest-id record this one duplicates.
        duplicate_dismissed: Reviewed and confirmed not a duplicate.
    """

    __tablename__ = "supporters"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    jurisdiction_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("jurisdictions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SupporterStatus.ACTIVE, server_default="active", index=True
    )

    # Vetting
    registered_voter: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VerificationStatus.UNVERIFIED,
        server_default="unverified",
        index=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    referred_from_jurisdiction_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("jurisdictions.id", ondelete="SET NULL"), nullable=True
    )

    # Duplicate detection
    normalized_phone: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    potential_duplicate: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false"), index=True
    )
    duplicate_of_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("supporters.id", ondelete="SET NULL"), nullable=True
    )
    duplicate_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duplicate_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    duplicate_dismissed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    def __repr__(self) -> str:
        return f"<Supporter {self.id} {self.first_name} {self.last_name}>"


Index("ix_supporters_lower_email", func.lower(func.trim(Supporter.email)))
Index(
    "ix_supporters_lower_name_jurisdiction",
    func.lower(func.trim(Supporter.first_name)),
    func.lower(func.trim(Supporter.last_name)),
    Supporter.jurisdiction_id,
)

"""Jurisdiction model: the villages/districts voters and supporters belong to."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from voter_vetting.models.base import Base, IntegerIdMixin, TimestampMixin


class Jurisdiction(Base, IntegerIdMixin, TimestampMixin):
    """A named jurisdiction. Roll rows and supporters resolve to it by name."""

    __tablename__ = "jurisdictions"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

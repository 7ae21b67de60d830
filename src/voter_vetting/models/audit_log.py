"""AuditLog model for imports and bulk operations."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from voter_vetting.models.base import Base, JSONType, UUIDMixin, utcnow


class AuditLog(Base, UUIDMixin):
    """Immutable record of an operation. Write-only (no updates or deletes).

    The affected entity is identified by ``(entity_kind, entity_id)``, e.g.
    ``("roll_import", "<uuid>")`` or ``("supporter", "42")``.
    """

    __tablename__ = "audit_logs"

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    actor: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_kind: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (Index("ix_audit_logs_entity", "entity_kind", "entity_id"),)

"""Audit logging service.

Provides an immutable audit trail for imports, bulk operations and manual
review actions.  Entries reference the affected entity as a
``(entity_kind, entity_id)`` pair.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.models.audit_log import AuditLog


async def log_event(
    session: AsyncSession,
    *,
    actor: str,
    action: str,
    entity_kind: str,
    entity_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Create an immutable audit log record.

    Args:
        session: The database session.
        actor: Free-text name of who performed the action.
        action: The action performed (roll_import, bulk_revet, duplicate_scan, ...).
        entity_kind: Kind of the affected entity (roll_import, supporter, ...).
        entity_id: Identifier of the affected entity, if any.
        details: Additional context.

    Returns:
        The created AuditLog record.
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        entity_kind=entity_kind,
        entity_id=entity_id,
        details=details,
    )
    session.add(audit_log)
    await session.commit()
    return audit_log


async def query_audit_logs(
    session: AsyncSession,
    *,
    action: str | None = None,
    entity_kind: str | None = None,
    entity_id: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[AuditLog], int]:
    """Query audit logs with optional filters.

    Args:
        session: The database session.
        action: Filter by action.
        entity_kind: Filter by entity kind.
        entity_id: Filter by entity id (usually with ``entity_kind``).
        start_time: Filter records after this timestamp.
        end_time: Filter records before this timestamp.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (audit log records, total count).
    """
    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))

    if action is not None:
        query = query.where(AuditLog.action == action)
        count_query = count_query.where(AuditLog.action == action)
    if entity_kind is not None:
        query = query.where(AuditLog.entity_kind == entity_kind)
        count_query = count_query.where(AuditLog.entity_kind == entity_kind)
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)
        count_query = count_query.where(AuditLog.entity_id == entity_id)
    if start_time is not None:
        query = query.where(AuditLog.timestamp >= start_time)
        count_query = count_query.where(AuditLog.timestamp >= start_time)
    if end_time is not None:
        query = query.where(AuditLog.timestamp <= end_time)
        count_query = count_query.where(AuditLog.timestamp <= end_time)

    total = (await session.execute(count_query)).scalar_one()

    offset = (page - 1) * page_size
    query = query.order_by(AuditLog.timestamp.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    logs = list(result.scalars().all())

    return logs, total

"""Jurisdiction lookup service.

Resolves free-text jurisdiction names to ids by case-insensitive, trimmed
name comparison.  Unknown names resolve to None; they are never created
implicitly by imports.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.models.jurisdiction import Jurisdiction


def name_key(name: str | None) -> str:
    """Lookup key of a jurisdiction name."""
    return (name or "").strip().lower()


async def resolve_jurisdiction_id(session: AsyncSession, name: str | None) -> int | None:
    """Resolve a jurisdiction name to its id.

    Args:
        session: Database session.
        name: Free-text jurisdiction name.

    Returns:
        The jurisdiction id, or None when blank or unknown.
    """
    key = name_key(name)
    if not key:
        return None
    result = await session.execute(select(Jurisdiction.id).where(func.lower(Jurisdiction.name) == key).limit(1))
    return result.scalar_one_or_none()


async def load_name_map(session: AsyncSession) -> dict[str, int]:
    """Map every jurisdiction's lookup key to its id, for bulk resolution."""
    result = await session.execute(select(Jurisdiction.id, Jurisdiction.name))
    return {name_key(name): jurisdiction_id for jurisdiction_id, name in result.all()}


async def get_jurisdiction(session: AsyncSession, jurisdiction_id: int) -> Jurisdiction | None:
    """Get a jurisdiction by id."""
    return await session.get(Jurisdiction, jurisdiction_id)


async def list_jurisdictions(session: AsyncSession) -> list[Jurisdiction]:
    """All jurisdictions ordered by name."""
    result = await session.execute(select(Jurisdiction).order_by(Jurisdiction.name))
    return list(result.scalars().all())


async def get_or_create_jurisdiction(session: AsyncSession, name: str) -> Jurisdiction:
    """Return the jurisdiction with this name, creating it when missing.

    Raises:
        ValueError: If the name is blank.
    """
    key = name_key(name)
    if not key:
        msg = "Jurisdiction name must not be blank"
        raise ValueError(msg)
    result = await session.execute(select(Jurisdiction).where(func.lower(Jurisdiction.name) == key))
    jurisdiction = result.scalar_one_or_none()
    if jurisdiction is None:
        jurisdiction = Jurisdiction(name=name.strip())
        session.add(jurisdiction)
        await session.flush()
    return jurisdiction

"""Roll store service: read access to imported roll records.

Filters are explicit ``RollVoterFilter`` objects that build SQLAlchemy
clauses; callers compose them rather than assembling query fragments.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.models.roll_import import ImportStatus, RollImport
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus

# asyncpg has a hard limit of 32767 query parameters
_IN_CLAUSE_BATCH = 5000


@dataclass
class RollVoterFilter:
    """Typed filter over roll records.

    Attributes:
        status: Record status; None matches every status.
        jurisdiction_name: Case-insensitive exact jurisdiction name.
        jurisdiction_id: Resolved jurisdiction id.
        first_name_prefix: Case-insensitive first-name prefix.
        last_name_prefix: Case-insensitive last-name prefix.
        list_date: Roll version.
        dob_ambiguous: Only records whose ambiguity flag equals this value.
    """

    status: str | None = RollVoterStatus.ACTIVE
    jurisdiction_name: str | None = None
    jurisdiction_id: int | None = None
    first_name_prefix: str | None = None
    last_name_prefix: str | None = None
    list_date: date | None = None
    dob_ambiguous: bool | None = None

    def clauses(self) -> list[ColumnElement[bool]]:
        """Build the WHERE clauses for this filter."""
        clauses: list[ColumnElement[bool]] = []
        if self.status is not None:
            clauses.append(RollVoter.status == self.status)
        if self.jurisdiction_name:
            clauses.append(func.lower(RollVoter.jurisdiction_name) == self.jurisdiction_name.strip().lower())
        if self.jurisdiction_id is not None:
            clauses.append(RollVoter.jurisdiction_id == self.jurisdiction_id)
        if self.first_name_prefix:
            prefix = self.first_name_prefix.strip().lower()
            clauses.append(func.lower(RollVoter.first_name).startswith(prefix, autoescape=True))
        if self.last_name_prefix:
            prefix = self.last_name_prefix.strip().lower()
            clauses.append(func.lower(RollVoter.last_name).startswith(prefix, autoescape=True))
        if self.list_date is not None:
            clauses.append(RollVoter.list_date == self.list_date)
        if self.dob_ambiguous is not None:
            clauses.append(RollVoter.dob_ambiguous.is_(self.dob_ambiguous))
        return clauses


@dataclass
class JurisdictionCount:
    name: str
    count: int


@dataclass
class RollStats:
    """Overview of the active roll."""

    total_active: int = 0
    total_removed: int = 0
    ambiguous_dob_count: int = 0
    latest_list_date: date | None = None
    latest_import: RollImport | None = None
    jurisdictions: list[JurisdictionCount] = field(default_factory=list)


async def get_roll_voter(session: AsyncSession, roll_voter_id: int) -> RollVoter | None:
    """Get a roll record by id."""
    return await session.get(RollVoter, roll_voter_id)


async def list_roll_voters(
    session: AsyncSession,
    filters: RollVoterFilter | None = None,
    *,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[RollVoter], int]:
    """List roll records ordered by jurisdiction and name.

    Args:
        session: Database session.
        filters: Optional typed filter (defaults to active records).
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (roll records, total count).
    """
    clauses = (filters or RollVoterFilter()).clauses()
    total = (await session.execute(select(func.count(RollVoter.id)).where(*clauses))).scalar_one()

    query = (
        select(RollVoter)
        .where(*clauses)
        .order_by(RollVoter.jurisdiction_name, RollVoter.last_name, RollVoter.first_name, RollVoter.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await session.execute(query)
    return list(result.scalars().all()), total


async def has_active_roll(session: AsyncSession) -> bool:
    """Whether any active roll record exists."""
    result = await session.execute(
        select(RollVoter.id).where(RollVoter.status == RollVoterStatus.ACTIVE).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def load_by_last_names(
    session: AsyncSession,
    last_names: Iterable[str],
    *,
    status: str | None = RollVoterStatus.ACTIVE,
) -> list[RollVoter]:
    """Load roll records whose lowercased last name is in ``last_names``.

    Lookups are batched to stay under the driver's parameter limit.

    Args:
        session: Database session.
        last_names: Last names to look up (any case).
        status: Restrict to this status; None loads every status.

    Returns:
        Matching roll records.
    """
    keys = sorted({name.strip().lower() for name in last_names if name and name.strip()})
    records: list[RollVoter] = []
    for i in range(0, len(keys), _IN_CLAUSE_BATCH):
        batch = keys[i : i + _IN_CLAUSE_BATCH]
        query = select(RollVoter).where(func.lower(RollVoter.last_name).in_(batch))
        if status is not None:
            query = query.where(RollVoter.status == status)
        result = await session.execute(query)
        records.extend(result.scalars().all())
    return records


async def get_roll_stats(session: AsyncSession) -> RollStats:
    """Compute overview statistics for the active roll.

    Args:
        session: Database session.

    Returns:
        Active/removed totals, ambiguous-dob count, latest list date, the
        latest completed import, and per-jurisdiction counts (largest first).
    """
    active = RollVoter.status == RollVoterStatus.ACTIVE
    stats = RollStats()
    stats.total_active = (await session.execute(select(func.count(RollVoter.id)).where(active))).scalar_one()
    stats.total_removed = (
        await session.execute(
            select(func.count(RollVoter.id)).where(RollVoter.status == RollVoterStatus.REMOVED)
        )
    ).scalar_one()
    stats.ambiguous_dob_count = (
        await session.execute(select(func.count(RollVoter.id)).where(active, RollVoter.dob_ambiguous.is_(True)))
    ).scalar_one()
    stats.latest_list_date = (
        await session.execute(select(func.max(RollVoter.list_date)).where(active))
    ).scalar_one_or_none()

    latest = await session.execute(
        select(RollImport)
        .where(RollImport.status == ImportStatus.COMPLETED)
        .order_by(RollImport.created_at.desc())
        .limit(1)
    )
    stats.latest_import = latest.scalar_one_or_none()

    count_col = func.count(RollVoter.id).label("count")
    rows = await session.execute(
        select(RollVoter.jurisdiction_name, count_col)
        .where(active)
        .group_by(RollVoter.jurisdiction_name)
        .order_by(count_col.desc(), RollVoter.jurisdiction_name)
    )
    stats.jurisdictions = [JurisdictionCount(name=name, count=count) for name, count in rows.all()]
    return stats

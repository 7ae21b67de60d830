"""Match service: find roll candidates for a (possibly partial) identity.

Runs the ordered strategies from ``voter_vetting.lib.matcher`` against active
roll records and returns the candidates of the first strategy that finds any.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.lib.matcher import (
    STRATEGIES,
    BirthKey,
    JurisdictionScope,
    MatchConfidence,
    MatcherConfig,
    MatchQuery,
    MatchStrategy,
    MatchType,
)
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus


@dataclass
class MatchCandidate:
    """A roll record proposed as the same person as the query.

    Attributes:
        roll_voter: The matching roll record.
        confidence: Strength label of the winning strategy.
        match_type: Kind of evidence that produced the match.
        match_count: Size of the winning candidate set.
        tier: 1-based position of the winning strategy.
    """

    roll_voter: RollVoter
    confidence: MatchConfidence
    match_type: MatchType
    match_count: int
    tier: int


def _strategy_query(strategy: MatchStrategy, query: MatchQuery, config: MatcherConfig) -> Select[tuple[RollVoter]]:
    first = query.first_name.lower()
    last = query.last_name.lower()
    clauses: list[ColumnElement[bool]] = [RollVoter.status == RollVoterStatus.ACTIVE]

    if strategy.fuzzy:
        clauses.append(func.similarity(func.lower(RollVoter.first_name), first) > config.fuzzy_threshold)
        clauses.append(func.similarity(func.lower(RollVoter.last_name), last) > config.fuzzy_threshold)
    else:
        clauses.append(func.lower(RollVoter.first_name) == first)
        clauses.append(func.lower(RollVoter.last_name) == last)

    if strategy.birth_key is BirthKey.DOB:
        clauses.append(RollVoter.dob == query.dob)
    elif strategy.birth_key is BirthKey.BIRTH_YEAR:
        clauses.append(RollVoter.birth_year == query.birth_year)

    if query.jurisdiction_name is not None:
        jurisdiction = func.lower(RollVoter.jurisdiction_name)
        if strategy.jurisdiction_scope is JurisdictionScope.SAME:
            clauses.append(jurisdiction == query.jurisdiction_name.lower())
        elif strategy.jurisdiction_scope is JurisdictionScope.DIFFERENT:
            clauses.append(jurisdiction != query.jurisdiction_name.lower())

    stmt = select(RollVoter).where(*clauses)
    if strategy.fuzzy:
        stmt = stmt.order_by(func.similarity(func.lower(RollVoter.last_name), last).desc(), RollVoter.id).limit(
            config.fuzzy_limit
        )
    else:
        stmt = stmt.order_by(RollVoter.id)
    return stmt


async def find_matches(
    session: AsyncSession,
    query: MatchQuery,
    config: MatcherConfig | None = None,
) -> list[MatchCandidate]:
    """Find roll candidates for an identity.

    Strategies run in tier order; the first one that yields at least one
    candidate wins and no later tier is consulted.  Strategies whose inputs
    are missing from the query are skipped.

    Args:
        session: Database session.
        query: Name, optional dob/birth year, optional jurisdiction.
        config: Fuzzy threshold and limit (defaults to ``MatcherConfig()``).

    Returns:
        Candidates of the winning tier, or an empty list when nothing matches.
    """
    config = config or MatcherConfig()
    if not query.has_name:
        return []

    for strategy in STRATEGIES:
        if not strategy.applies_to(query):
            continue
        result = await session.execute(_strategy_query(strategy, query, config))
        voters = list(result.scalars().all())
        if not voters:
            continue
        confidence = strategy.confidence_for(len(voters))
        logger.debug(
            f"Match for {query.first_name} {query.last_name}: tier {strategy.tier} "
            f"({strategy.match_type}, {confidence}) with {len(voters)} candidate(s)"
        )
        return [
            MatchCandidate(
                roll_voter=voter,
                confidence=confidence,
                match_type=strategy.match_type,
                match_count=len(voters),
                tier=strategy.tier,
            )
            for voter in voters
        ]
    return []

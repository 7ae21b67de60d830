"""Vetting service: decides a supporter's voter-registration status.

``vet_supporter`` is called explicitly by the caller after a supporter is
persisted (there are no save hooks).  It runs the matcher and writes only the
vetting-owned fields: ``registered_voter``, ``verification_status``,
``verified_at`` and ``referred_from_jurisdiction_id``.
"""

import enum
import uuid
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.lib.matcher import MatchConfidence, MatcherConfig, MatchQuery, MatchType
from voter_vetting.models.roll_import import RollImport
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus
from voter_vetting.models.supporter import Supporter, SupporterStatus, VerificationStatus
from voter_vetting.services import roll_store
from voter_vetting.services.jurisdiction_service import get_jurisdiction, load_name_map, name_key
from voter_vetting.services.match_service import MatchCandidate, find_matches


class VettingOutcome(enum.StrEnum):
    """Result of vetting one supporter."""

    AUTO_VERIFIED = "auto_verified"
    REFERRAL = "referral"
    UNREGISTERED = "unregistered"
    SKIPPED = "skipped"
    NEEDS_REVIEW = "needs_review"


@dataclass
class VettingResult:
    """Outcome of ``vet_supporter`` plus the matcher's candidates."""

    outcome: VettingOutcome
    supporter: Supporter
    candidates: list[MatchCandidate] = field(default_factory=list)
    details: str = ""

    @property
    def best(self) -> MatchCandidate | None:
        return self.candidates[0] if self.candidates else None

    @property
    def match_count(self) -> int:
        return self.best.match_count if self.best else 0


@dataclass
class SupporterFilter:
    """Typed filter selecting supporters for bulk operations.

    Attributes:
        statuses: Supporter statuses to include (None for all).
        verification_statuses: Verification statuses to include (None for all).
        jurisdiction_id: Only supporters in this jurisdiction.
    """

    statuses: Sequence[str] | None = (SupporterStatus.ACTIVE,)
    verification_statuses: Sequence[str] | None = None
    jurisdiction_id: int | None = None

    def clauses(self) -> list[ColumnElement[bool]]:
        """Build the WHERE clauses for this filter."""
        clauses: list[ColumnElement[bool]] = []
        if self.statuses:
            clauses.append(Supporter.status.in_(list(self.statuses)))
        if self.verification_statuses:
            clauses.append(Supporter.verification_status.in_(list(self.verification_statuses)))
        if self.jurisdiction_id is not None:
            clauses.append(Supporter.jurisdiction_id == self.jurisdiction_id)
        return clauses


@dataclass
class ReviewItem:
    """A supporter awaiting manual review with its roll candidates."""

    supporter_id: int
    candidate_ids: list[int]
    confidence: str
    match_type: str


@dataclass
class BulkRevetResult:
    """Aggregate counts of a bulk re-vet."""

    total: int = 0
    counts: Counter[str] = field(default_factory=Counter)
    errors: int = 0
    stopped: bool = False
    review_queue: list[ReviewItem] = field(default_factory=list)


async def build_match_query(session: AsyncSession, supporter: Supporter) -> MatchQuery:
    """Build the matcher query for a supporter's identity fields."""
    jurisdiction_name = None
    if supporter.jurisdiction_id is not None:
        jurisdiction = await get_jurisdiction(session, supporter.jurisdiction_id)
        jurisdiction_name = jurisdiction.name if jurisdiction else None
    return MatchQuery(
        first_name=supporter.first_name,
        last_name=supporter.last_name,
        dob=supporter.dob,
        jurisdiction_name=jurisdiction_name,
    )


async def _referral_jurisdiction_id(session: AsyncSession, voter: RollVoter) -> int | None:
    if voter.jurisdiction_id is not None:
        return voter.jurisdiction_id
    names = await load_name_map(session)
    return names.get(name_key(voter.jurisdiction_name))


async def vet_supporter(
    session: AsyncSession,
    supporter: Supporter,
    *,
    config: MatcherConfig | None = None,
    roll_loaded: bool | None = None,
) -> VettingResult:
    """Vet one supporter against the active roll.

    Outcomes:
        - ``skipped``: no active roll data; nothing changes.
        - ``unregistered``: no candidates; ``registered_voter`` becomes False
          and the verification status is left as is.
        - ``referral``: the winning match is in a different jurisdiction; the
          supporter is flagged and the roll's jurisdiction is recorded.
        - ``auto_verified``: a single exact same-jurisdiction match.
        - ``needs_review``: any other match; nothing changes and the
          candidates are returned for manual review.

    Changes are flushed, not committed.

    Args:
        session: Database session.
        supporter: The persisted supporter.
        config: Matcher settings.
        roll_loaded: Pre-computed ``has_active_roll`` result (bulk callers).

    Returns:
        The vetting result.
    """
    if roll_loaded is None:
        roll_loaded = await roll_store.has_active_roll(session)
    if not roll_loaded:
        return VettingResult(VettingOutcome.SKIPPED, supporter, details="No roll data loaded")

    query = await build_match_query(session, supporter)
    candidates = await find_matches(session, query, config)

    if not candidates:
        supporter.registered_voter = False
        await session.flush()
        return VettingResult(VettingOutcome.UNREGISTERED, supporter, details="No match found on the roll")

    best = candidates[0]
    voter = best.roll_voter

    if best.match_type == MatchType.DIFFERENT_JURISDICTION:
        supporter.registered_voter = True
        supporter.verification_status = VerificationStatus.FLAGGED
        supporter.referred_from_jurisdiction_id = await _referral_jurisdiction_id(session, voter)
        await session.flush()
        submitted = query.jurisdiction_name or "the submitted jurisdiction"
        return VettingResult(
            VettingOutcome.REFERRAL,
            supporter,
            candidates,
            details=f"Registered in {voter.jurisdiction_name}, not {submitted}",
        )

    if best.confidence == MatchConfidence.EXACT and best.match_count == 1:
        supporter.registered_voter = True
        supporter.verification_status = VerificationStatus.VERIFIED
        supporter.verified_at = datetime.now(UTC)
        supporter.referred_from_jurisdiction_id = None
        await session.flush()
        return VettingResult(
            VettingOutcome.AUTO_VERIFIED,
            supporter,
            candidates,
            details=f"Exact match: {voter.first_name} {voter.last_name}, {voter.jurisdiction_name}",
        )

    return VettingResult(
        VettingOutcome.NEEDS_REVIEW,
        supporter,
        candidates,
        details=f"{best.match_count} {best.confidence} candidate(s) via {best.match_type}; needs manual review",
    )


def _review_item(result: VettingResult) -> ReviewItem:
    best = result.best
    return ReviewItem(
        supporter_id=result.supporter.id,
        candidate_ids=[c.roll_voter.id for c in result.candidates],
        confidence=str(best.confidence) if best else "",
        match_type=str(best.match_type) if best else "",
    )


async def _vet_one(
    session: AsyncSession, supporter: Supporter, config: MatcherConfig | None, summary: BulkRevetResult
) -> None:
    result = await vet_supporter(session, supporter, config=config, roll_loaded=True)
    summary.counts[result.outcome] += 1
    if result.outcome == VettingOutcome.NEEDS_REVIEW:
        summary.review_queue.append(_review_item(result))


async def bulk_revet(
    session: AsyncSession,
    filters: SupporterFilter | None = None,
    *,
    config: MatcherConfig | None = None,
    chunk_size: int = 500,
    should_stop: Callable[[], bool] | None = None,
) -> BulkRevetResult:
    """Re-vet every supporter selected by a filter.

    Supporters are processed in id order, one committed chunk at a time.
    ``should_stop`` is checked before each chunk.  When a chunk fails it is
    rolled back and retried one supporter at a time; supporters that still
    fail are counted in ``errors`` and skipped.

    Args:
        session: Database session.
        filters: Supporter selection (defaults to active supporters).
        config: Matcher settings.
        chunk_size: Supporters per committed chunk.
        should_stop: Callable returning True when the run should stop.

    Returns:
        Outcome counts, error count, and the manual-review queue.
    """
    filters = filters or SupporterFilter()
    clauses = filters.clauses()
    summary = BulkRevetResult()
    summary.total = (await session.execute(select(func.count(Supporter.id)).where(*clauses))).scalar_one()

    if not await roll_store.has_active_roll(session):
        summary.counts[VettingOutcome.SKIPPED] = summary.total
        logger.info(f"Bulk re-vet skipped: no roll data loaded ({summary.total} supporters)")
        return summary

    last_id = 0
    while True:
        if should_stop is not None and should_stop():
            summary.stopped = True
            logger.info(f"Bulk re-vet stopped after supporter {last_id}")
            break

        result = await session.execute(
            select(Supporter).where(*clauses, Supporter.id > last_id).order_by(Supporter.id).limit(chunk_size)
        )
        chunk = list(result.scalars().all())
        if not chunk:
            break
        chunk_ids = [s.id for s in chunk]
        last_id = chunk_ids[-1]

        chunk_summary = BulkRevetResult()
        try:
            for supporter in chunk:
                await _vet_one(session, supporter, config, chunk_summary)
            await session.commit()
        except Exception:
            logger.warning(f"Re-vet chunk ending at supporter {last_id} failed; retrying individually")
            await session.rollback()
            chunk_summary = BulkRevetResult()
            for supporter_id in chunk_ids:
                try:
                    supporter = await session.get(Supporter, supporter_id)
                    if supporter is None:
                        continue
                    await _vet_one(session, supporter, config, chunk_summary)
                    await session.commit()
                except Exception:
                    logger.exception(f"Re-vet failed for supporter {supporter_id}")
                    await session.rollback()
                    chunk_summary.errors += 1

        summary.counts.update(chunk_summary.counts)
        summary.errors += chunk_summary.errors
        summary.review_queue.extend(chunk_summary.review_queue)
        logger.info(f"Re-vetted supporters up to id {last_id}: {dict(summary.counts)}, {summary.errors} errors")

    return summary


async def _flag_matching_verified(
    session: AsyncSession,
    keys: set[tuple[int, str, str]],
    *,
    unregister: bool,
) -> int:
    """Flag verified supporters whose (jurisdiction_id, first, last) is in ``keys``."""
    if not keys:
        return 0
    jurisdiction_ids = sorted({key[0] for key in keys})
    result = await session.execute(
        select(Supporter).where(
            Supporter.status == SupporterStatus.ACTIVE,
            Supporter.verification_status == VerificationStatus.VERIFIED,
            Supporter.jurisdiction_id.in_(jurisdiction_ids),
        )
    )
    count = 0
    for supporter in result.scalars().all():
        key = (supporter.jurisdiction_id, supporter.first_name.strip().lower(), supporter.last_name.strip().lower())
        if key not in keys:
            continue
        supporter.verification_status = VerificationStatus.FLAGGED
        if unregister:
            supporter.registered_voter = False
        count += 1
    return count


async def reflag_after_import(session: AsyncSession, batch: RollImport) -> int:
    """Flag verified supporters affected by a completed import.

    Supporters verified in a jurisdiction the roll says a voter transferred
    out of are flagged; supporters verified against a record the import
    removed are flagged and marked unregistered.  Matching is by
    case-insensitive name within the jurisdiction.

    Args:
        session: Database session.
        batch: The completed import.

    Returns:
        Number of supporters re-flagged (flushed, not committed).
    """
    if not batch.transferred_records and not batch.removed_records:
        return 0
    names = await load_name_map(session)
    batch_id: uuid.UUID = batch.id

    transferred_keys: set[tuple[int, str, str]] = set()
    if batch.transferred_records:
        result = await session.execute(
            select(RollVoter).where(
                RollVoter.last_changed_import_id == batch_id,
                RollVoter.previous_jurisdiction_name.is_not(None),
                RollVoter.status == RollVoterStatus.ACTIVE,
            )
        )
        for voter in result.scalars().all():
            old_id = names.get(name_key(voter.previous_jurisdiction_name))
            if old_id is not None:
                transferred_keys.add((old_id, voter.first_name.lower(), voter.last_name.lower()))

    removed_keys: set[tuple[int, str, str]] = set()
    if batch.removed_records:
        result = await session.execute(
            select(RollVoter).where(RollVoter.removal_detected_by_import_id == batch_id)
        )
        for voter in result.scalars().all():
            jurisdiction_id = voter.jurisdiction_id or names.get(name_key(voter.jurisdiction_name))
            if jurisdiction_id is not None:
                removed_keys.add((jurisdiction_id, voter.first_name.lower(), voter.last_name.lower()))

    count = await _flag_matching_verified(session, transferred_keys, unregister=False)
    count += await _flag_matching_verified(session, removed_keys, unregister=True)
    await session.flush()
    if count:
        logger.info(f"Re-flagged {count} verified supporter(s) after roll import {batch_id}")
    return count

"""Duplicate detection service for supporter records.

Only supporters that are not removed and have not been dismissed as
duplicates take part.  Two supporters are duplicates when they share a
normalized phone, an email (case-insensitive), or the same first and last
name (as entered or swapped) within the same jurisdiction.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from voter_vetting.lib.contact import DuplicateReason, DuplicateScanConfig, build_duplicate_notes, normalize_email
from voter_vetting.models.supporter import Supporter, SupporterStatus


@dataclass
class DuplicateMatch:
    """Another supporter matching the one being checked."""

    supporter: Supporter
    reasons: set[str] = field(default_factory=set)


@dataclass
class DuplicateScanResult:
    """Counts of a full-table duplicate scan."""

    flagged: int = 0
    cleared: int = 0
    errors: int = 0
    stopped: bool = False


def _in_scope(model: Any = Supporter) -> list[ColumnElement[bool]]:
    return [model.status != SupporterStatus.REMOVED, model.duplicate_dismissed.is_(False)]


def _norm(column: Any) -> ColumnElement[str]:
    return func.lower(func.trim(column))


async def find_duplicate_matches(session: AsyncSession, supporter: Supporter) -> list[DuplicateMatch]:
    """Find in-scope supporters matching this one, with the reasons they match.

    Args:
        session: Database session.
        supporter: The supporter to check (need not be in scope itself).

    Returns:
        Matches ordered by supporter id; empty when the supporter has no
        phone, email or name-and-jurisdiction to compare.
    """
    conditions: list[tuple[str, ColumnElement[bool]]] = []
    if supporter.normalized_phone:
        conditions.append((DuplicateReason.PHONE, Supporter.normalized_phone == supporter.normalized_phone))
    email = normalize_email(supporter.email)
    if email:
        conditions.append((DuplicateReason.EMAIL, _norm(Supporter.email) == email))
    first = (supporter.first_name or "").strip().lower()
    last = (supporter.last_name or "").strip().lower()
    if first and last and supporter.jurisdiction_id is not None:
        same_place = Supporter.jurisdiction_id == supporter.jurisdiction_id
        conditions.append(
            (
                DuplicateReason.NAME_JURISDICTION,
                and_(same_place, _norm(Supporter.first_name) == first, _norm(Supporter.last_name) == last),
            )
        )
        conditions.append(
            (
                DuplicateReason.SWAPPED_NAME,
                and_(same_place, _norm(Supporter.first_name) == last, _norm(Supporter.last_name) == first),
            )
        )

    matches: dict[int, DuplicateMatch] = {}
    for reason, condition in conditions:
        query = select(Supporter).where(*_in_scope(), condition)
        if supporter.id is not None:
            query = query.where(Supporter.id != supporter.id)
        result = await session.execute(query)
        for other in result.scalars().all():
            matches.setdefault(other.id, DuplicateMatch(supporter=other)).reasons.add(reason)
    return [matches[key] for key in sorted(matches)]


async def find_duplicates(session: AsyncSession, supporter: Supporter) -> list[Supporter]:
    """Other in-scope supporters that look like the same person."""
    return [match.supporter for match in await find_duplicate_matches(session, supporter)]


async def flag_if_duplicate(session: AsyncSession, supporter: Supporter) -> bool:
    """Flag a single supporter (and its earliest match) when duplicates exist.

    A supporter with no remaining matches has a stale flag cleared.
    Dismissed and removed supporters are left alone.  Changes are flushed.

    Args:
        session: Database session.
        supporter: The persisted supporter.

    Returns:
        True if the supporter is flagged as a potential duplicate.
    """
    if supporter.duplicate_dismissed or supporter.status == SupporterStatus.REMOVED:
        return False

    now = datetime.now(UTC)
    matches = await find_duplicate_matches(session, supporter)
    supporter.duplicate_checked_at = now
    if not matches:
        if supporter.potential_duplicate:
            supporter.potential_duplicate = False
            supporter.duplicate_of_id = None
            supporter.duplicate_notes = None
        await session.flush()
        return False

    original = matches[0]
    supporter.potential_duplicate = True
    supporter.duplicate_of_id = original.supporter.id
    supporter.duplicate_notes = build_duplicate_notes(original.reasons, original.supporter.id)

    if not original.supporter.potential_duplicate:
        original.supporter.potential_duplicate = True
        original.supporter.duplicate_of_id = supporter.id
        original.supporter.duplicate_checked_at = now
        original.supporter.duplicate_notes = build_duplicate_notes(original.reasons, supporter.id)

    await session.flush()
    logger.info(f"Supporter {supporter.id} flagged as potential duplicate of {original.supporter.id}")
    return True


async def resolve_duplicate(session: AsyncSession, supporter: Supporter, *, action: str = "dismiss") -> Supporter:
    """Resolve a duplicate flag after manual review.

    ``dismiss`` clears the flag and excludes the supporter from later scans.

    Raises:
        ValueError: If the action is not supported.
    """
    if action != "dismiss":
        msg = f"Unsupported duplicate resolution: {action!r}"
        raise ValueError(msg)
    supporter.potential_duplicate = False
    supporter.duplicate_of_id = None
    supporter.duplicate_dismissed = True
    supporter.duplicate_checked_at = datetime.now(UTC)
    supporter.duplicate_notes = "Dismissed: not a duplicate"
    await session.commit()
    await session.refresh(supporter)
    return supporter


def _pair_query(join_condition: ColumnElement[bool], s1: Any, s2: Any) -> Any:
    return (
        select(s1.id, func.min(s2.id))
        .join(s2, and_(join_condition, s1.id != s2.id, *_in_scope(s2)))
        .where(*_in_scope(s1))
        .group_by(s1.id)
    )


async def find_duplicate_pairs(session: AsyncSession) -> dict[int, tuple[int, set[str]]]:
    """Find every in-scope supporter with at least one match, set-based.

    Returns:
        Mapping of supporter id → (lowest matching id, match reasons).
    """
    s1 = aliased(Supporter)
    s2 = aliased(Supporter)
    joins = {
        DuplicateReason.PHONE: and_(
            s1.normalized_phone.is_not(None),
            s1.normalized_phone != "",
            s1.normalized_phone == s2.normalized_phone,
        ),
        DuplicateReason.EMAIL: and_(
            s1.email.is_not(None),
            _norm(s1.email) != "",
            _norm(s1.email) == _norm(s2.email),
        ),
        DuplicateReason.NAME_JURISDICTION: and_(
            s1.jurisdiction_id.is_not(None),
            s1.jurisdiction_id == s2.jurisdiction_id,
            _norm(s1.first_name) == _norm(s2.first_name),
            _norm(s1.last_name) == _norm(s2.last_name),
        ),
        DuplicateReason.SWAPPED_NAME: and_(
            s1.jurisdiction_id.is_not(None),
            s1.jurisdiction_id == s2.jurisdiction_id,
            _norm(s1.first_name) == _norm(s2.last_name),
            _norm(s1.last_name) == _norm(s2.first_name),
        ),
    }

    found: dict[int, tuple[int, set[str]]] = {}
    for reason, condition in joins.items():
        result = await session.execute(_pair_query(condition, s1, s2))
        for supporter_id, partner_id in result.all():
            if supporter_id in found:
                best, reasons = found[supporter_id]
                reasons.add(reason)
                found[supporter_id] = (min(best, partner_id), reasons)
            else:
                found[supporter_id] = (partner_id, {reason})
    return found


async def _apply_updates(session: AsyncSession, updates: list[tuple[int, dict[str, Any]]]) -> None:
    for supporter_id, values in updates:
        await session.execute(
            update(Supporter)
            .where(Supporter.id == supporter_id)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )


async def scan_all(
    session: AsyncSession,
    *,
    config: DuplicateScanConfig | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> DuplicateScanResult:
    """Scan the whole supporter table for duplicates.

    Every in-scope supporter with a match is flagged with its lowest-id
    partner; flagged supporters with no remaining match are cleared.
    Updates are committed in chunks, ``should_stop`` is checked between
    chunks, and a failing chunk is retried one supporter at a time so a
    single bad record never aborts the scan.  Running it twice without data
    changes produces the same flags.

    Args:
        session: Database session.
        config: Chunk size settings.
        should_stop: Callable returning True when the scan should stop.

    Returns:
        Flagged, cleared and error counts.
    """
    config = config or DuplicateScanConfig()
    now = datetime.now(UTC)
    found = await find_duplicate_pairs(session)

    flagged_result = await session.execute(
        select(Supporter.id).where(Supporter.potential_duplicate.is_(True)).order_by(Supporter.id)
    )
    stale_ids = [supporter_id for supporter_id in flagged_result.scalars().all() if supporter_id not in found]
    logger.info(f"Duplicate scan found {len(found)} flagged and {len(stale_ids)} stale supporter(s)")

    updates: list[tuple[int, dict[str, Any]]] = [
        (
            supporter_id,
            {
                "potential_duplicate": True,
                "duplicate_of_id": partner_id,
                "duplicate_checked_at": now,
                "duplicate_notes": build_duplicate_notes(reasons, partner_id),
            },
        )
        for supporter_id, (partner_id, reasons) in sorted(found.items())
    ]
    updates.extend(
        (
            supporter_id,
            {
                "potential_duplicate": False,
                "duplicate_of_id": None,
                "duplicate_checked_at": now,
                "duplicate_notes": None,
            },
        )
        for supporter_id in stale_ids
    )

    summary = DuplicateScanResult()
    for start in range(0, len(updates), config.chunk_size):
        if should_stop is not None and should_stop():
            summary.stopped = True
            logger.info(f"Duplicate scan stopped after {start} update(s)")
            break
        chunk = updates[start : start + config.chunk_size]
        applied = chunk
        try:
            await _apply_updates(session, chunk)
            await session.commit()
        except Exception:
            logger.warning(f"Duplicate scan chunk at offset {start} failed; retrying individually")
            await session.rollback()
            applied = []
            for item in chunk:
                try:
                    await _apply_updates(session, [item])
                    await session.commit()
                    applied.append(item)
                except Exception:
                    logger.exception(f"Duplicate scan update failed for supporter {item[0]}")
                    await session.rollback()
                    summary.errors += 1
        for _supporter_id, values in applied:
            if values["potential_duplicate"]:
                summary.flagged += 1
            else:
                summary.cleared += 1

    logger.info(
        f"Duplicate scan complete: {summary.flagged} flagged, {summary.cleared} cleared, {summary.errors} errors"
    )
    return summary


async def count_flagged(session: AsyncSession) -> int:
    """Number of supporters currently flagged as potential duplicates."""
    result = await session.execute(
        select(func.count(Supporter.id)).where(Supporter.potential_duplicate.is_(True), *_in_scope())
    )
    return result.scalar_one()


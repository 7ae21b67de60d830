"""Supporter lifecycle service: create and edit supporter records.

After persisting, the lifecycle service explicitly runs vetting (for new
records and identity edits) and the single-record duplicate check (for new
records and identity or contact edits).  ``normalized_phone`` is recomputed
on every save.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.lib.contact import PhoneConfig, normalize_phone
from voter_vetting.lib.matcher import MatcherConfig
from voter_vetting.models.supporter import Supporter, SupporterStatus
from voter_vetting.services import duplicate_service, vetting_service
from voter_vetting.services.jurisdiction_service import get_jurisdiction
from voter_vetting.services.vetting_service import SupporterFilter, VettingResult

IDENTITY_FIELDS = frozenset({"first_name", "last_name", "dob", "jurisdiction_id"})
CONTACT_FIELDS = frozenset({"email", "contact_number"})
UPDATABLE_FIELDS = IDENTITY_FIELDS | CONTACT_FIELDS | {"status"}


@dataclass
class SupporterSaveResult:
    """A saved supporter with what the post-save pipeline decided."""

    supporter: Supporter
    vetting: VettingResult | None = None
    potential_duplicate: bool = False


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def _check_fields(session: AsyncSession, values: Mapping[str, Any]) -> None:
    for name in ("first_name", "last_name"):
        if name in values and not _clean(values[name]):
            msg = f"{name} must not be blank"
            raise ValueError(msg)
    if "status" in values and values["status"] not in {s.value for s in SupporterStatus}:
        msg = f"Unknown supporter status: {values['status']!r}"
        raise ValueError(msg)
    jurisdiction_id = values.get("jurisdiction_id")
    if jurisdiction_id is not None and await get_jurisdiction(session, jurisdiction_id) is None:
        msg = f"Jurisdiction {jurisdiction_id} not found"
        raise ValueError(msg)


async def create_supporter(
    session: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    dob: date | None = None,
    email: str | None = None,
    contact_number: str | None = None,
    jurisdiction_id: int | None = None,
    phone_config: PhoneConfig | None = None,
    matcher_config: MatcherConfig | None = None,
) -> SupporterSaveResult:
    """Create a supporter, then vet it and check it for duplicates.

    Args:
        session: Database session.
        first_name: First name (required).
        last_name: Last name (required).
        dob: Date of birth.
        email: Email address.
        contact_number: Phone number as entered.
        jurisdiction_id: Jurisdiction the supporter registered in.
        phone_config: Phone normalization rules.
        matcher_config: Matcher settings for vetting.

    Returns:
        The committed supporter with its vetting result and duplicate flag.

    Raises:
        ValueError: If a name is blank or the jurisdiction does not exist.
    """
    values = {
        "first_name": first_name,
        "last_name": last_name,
        "dob": dob,
        "email": email,
        "contact_number": contact_number,
        "jurisdiction_id": jurisdiction_id,
    }
    await _check_fields(session, values)

    supporter = Supporter(
        first_name=_clean(first_name),
        last_name=_clean(last_name),
        dob=dob,
        email=_clean(email),
        contact_number=_clean(contact_number),
        jurisdiction_id=jurisdiction_id,
        status=SupporterStatus.ACTIVE,
    )
    supporter.normalized_phone = normalize_phone(supporter.contact_number, phone_config)
    session.add(supporter)
    await session.flush()

    vetting = await vetting_service.vet_supporter(session, supporter, config=matcher_config)
    duplicate = await duplicate_service.flag_if_duplicate(session, supporter)
    await session.commit()
    await session.refresh(supporter)

    logger.info(f"Supporter {supporter.id} created: vetting={vetting.outcome}, potential_duplicate={duplicate}")
    return SupporterSaveResult(supporter=supporter, vetting=vetting, potential_duplicate=duplicate)


async def update_supporter(
    session: AsyncSession,
    supporter: Supporter,
    changes: Mapping[str, Any],
    *,
    phone_config: PhoneConfig | None = None,
    matcher_config: MatcherConfig | None = None,
) -> SupporterSaveResult:
    """Apply edits to a supporter and rerun the affected checks.

    Identity edits (name, dob, jurisdiction) re-vet the supporter and
    re-check duplicates.  Contact edits (email, phone) clear an earlier
    duplicate dismissal and re-check duplicates.

    Args:
        session: Database session.
        supporter: The supporter to edit.
        changes: Field name → new value; only identity, contact and status
            fields may be changed.
        phone_config: Phone normalization rules.
        matcher_config: Matcher settings for vetting.

    Returns:
        The committed supporter with the results of any checks that ran.

    Raises:
        ValueError: If a field is not editable or a value is invalid.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        msg = f"Fields cannot be updated: {', '.join(sorted(unknown))}"
        raise ValueError(msg)
    await _check_fields(session, changes)

    changed: set[str] = set()
    for name, value in changes.items():
        if isinstance(value, str):
            value = _clean(value)
        if getattr(supporter, name) != value:
            setattr(supporter, name, value)
            changed.add(name)
    supporter.normalized_phone = normalize_phone(supporter.contact_number, phone_config)
    await session.flush()

    result = SupporterSaveResult(supporter=supporter, potential_duplicate=supporter.potential_duplicate)
    if changed & IDENTITY_FIELDS:
        result.vetting = await vetting_service.vet_supporter(session, supporter, config=matcher_config)
    if changed & CONTACT_FIELDS:
        supporter.duplicate_dismissed = False
    if changed & (IDENTITY_FIELDS | CONTACT_FIELDS):
        result.potential_duplicate = await duplicate_service.flag_if_duplicate(session, supporter)

    await session.commit()
    await session.refresh(supporter)
    if changed:
        logger.info(f"Supporter {supporter.id} updated: {', '.join(sorted(changed))}")
    return result


async def get_supporter(session: AsyncSession, supporter_id: int) -> Supporter | None:
    """Get a supporter by id."""
    return await session.get(Supporter, supporter_id)


async def list_supporters(
    session: AsyncSession,
    filters: SupporterFilter | None = None,
    *,
    potential_duplicate: bool | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[Supporter], int]:
    """List supporters ordered by id.

    Args:
        session: Database session.
        filters: Typed supporter filter (defaults to active supporters).
        potential_duplicate: Only flagged (True) or unflagged (False) supporters.
        page: Page number (1-based).
        page_size: Items per page.

    Returns:
        Tuple of (supporters, total count).
    """
    clauses = (filters or SupporterFilter()).clauses()
    if potential_duplicate is not None:
        clauses.append(Supporter.potential_duplicate.is_(potential_duplicate))

    total = (await session.execute(select(func.count(Supporter.id)).where(*clauses))).scalar_one()
    query = select(Supporter).where(*clauses).order_by(Supporter.id).offset((page - 1) * page_size).limit(page_size)
    result = await session.execute(query)
    return list(result.scalars().all()), total

"""Tests for supporter duplicate detection."""

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.lib.contact import DuplicateScanConfig
from voter_vetting.models.jurisdiction import Jurisdiction
from voter_vetting.models.supporter import SupporterStatus
from voter_vetting.services.duplicate_service import (
    count_flagged,
    find_duplicate_matches,
    find_duplicate_pairs,
    find_duplicates,
    flag_if_duplicate,
    resolve_duplicate,
    scan_all,
)


class TestFindDuplicateMatches:
    """Tests for single-record matching."""

    async def test_phone_match(self, async_session: AsyncSession, add_supporter: Any) -> None:
        first = await add_supporter("Juan", "Cruz", normalized_phone="6715551234")
        second = await add_supporter("John", "Cruz", normalized_phone="6715551234")

        matches = await find_duplicate_matches(async_session, second)

        assert [m.supporter.id for m in matches] == [first.id]
        assert matches[0].reasons == {"phone"}

    async def test_email_case_insensitive(self, async_session: AsyncSession, add_supporter: Any) -> None:
        first = await add_supporter("Juan", "Cruz", email="Juan@Example.com")
        second = await add_supporter("J", "Cruz", email=" juan@example.COM ")

        assert await find_duplicates(async_session, second) == [first]

    async def test_name_and_jurisdiction(
        self, async_session: AsyncSession, jurisdictions: dict[str, Jurisdiction], add_supporter: Any
    ) -> None:
        hagatna = jurisdictions["Hagatna"].id
        first = await add_supporter("Juan", "Cruz", jurisdiction_id=hagatna)
        await add_supporter("Juan", "Cruz", jurisdiction_id=jurisdictions["Yigo"].id)
        second = await add_supporter(" juan", "CRUZ ", jurisdiction_id=hagatna)

        matches = await find_duplicate_matches(async_session, second)

        assert [m.supporter.id for m in matches] == [first.id]
        assert matches[0].reasons == {"name+jurisdiction"}

    async def test_swapped_names(
        self, async_session: AsyncSession, jurisdictions: dict[str, Jurisdiction], add_supporter: Any
    ) -> None:
        hagatna = jurisdictions["Hagatna"].id
        first = await add_supporter("Cruz", "Juan", jurisdiction_id=hagatna)
        second = await add_supporter("Juan", "Cruz", jurisdiction_id=hagatna)

        matches = await find_duplicate_matches(async_session, second)

        assert [m.supporter.id for m in matches] == [first.id]
        assert matches[0].reasons == {"swapped_name+jurisdiction"}

    async def test_multiple_reasons(
        self, async_session: AsyncSession, jurisdictions: dict[str, Jurisdiction], add_supporter: Any
    ) -> None:
        hagatna = jurisdictions["Hagatna"].id
        await add_supporter("Juan", "Cruz", jurisdiction_id=hagatna, normalized_phone="5551234")
        second = await add_supporter("Juan", "Cruz", jurisdiction_id=hagatna, normalized_phone="5551234")

        (match,) = await find_duplicate_matches(async_session, second)
        assert match.reasons == {"phone", "name+jurisdiction"}

    async def test_removed_and_dismissed_excluded(self, async_session: AsyncSession, add_supporter: Any) -> None:
        await add_supporter("A", "One", normalized_phone="5551234", status=SupporterStatus.REMOVED)
        await add_supporter("B", "Two", normalized_phone="5551234", duplicate_dismissed=True)
        third = await add_supporter("C", "Three", normalized_phone="5551234")

        assert await find_duplicate_matches(async_session, third) == []

    async def test_nothing_to_compare(self, async_session: AsyncSession, add_supporter: Any) -> None:
        await add_supporter("Juan", "Cruz")
        second = await add_supporter("Juan", "Cruz")
        assert await find_duplicate_matches(async_session, second) == []


class TestFlagIfDuplicate:
    """Tests for flagging a single supporter."""

    async def test_flags_both_records(self, async_session: AsyncSession, add_supporter: Any) -> None:
        first = await add_supporter("Juan", "Cruz", email="juan@example.com")
        second = await add_supporter("Juan", "Cruz", email="JUAN@example.com")

        assert await flag_if_duplicate(async_session, second)

        assert second.potential_duplicate
        assert second.duplicate_of_id == first.id
        assert second.duplicate_notes == f"Possible duplicate of #{first.id} (matched on email)"
        assert second.duplicate_checked_at is not None
        assert first.potential_duplicate
        assert first.duplicate_of_id == second.id

    async def test_clears_stale_flag(self, async_session: AsyncSession, add_supporter: Any) -> None:
        supporter = await add_supporter(
            "Juan", "Cruz", potential_duplicate=True, duplicate_of_id=None, duplicate_notes="old"
        )

        assert not await flag_if_duplicate(async_session, supporter)
        assert not supporter.potential_duplicate
        assert supporter.duplicate_notes is None

    async def test_dismissed_supporter_left_alone(self, async_session: AsyncSession, add_supporter: Any) -> None:
        await add_supporter("Juan", "Cruz", normalized_phone="5551234")
        second = await add_supporter("Juan", "Cruz", normalized_phone="5551234", duplicate_dismissed=True)

        assert not await flag_if_duplicate(async_session, second)
        assert not second.potential_duplicate

    async def test_resolve_dismiss(self, async_session: AsyncSession, add_supporter: Any) -> None:
        first = await add_supporter("Juan", "Cruz", normalized_phone="5551234")
        second = await add_supporter("Juan", "Cruz", normalized_phone="5551234")
        await flag_if_duplicate(async_session, second)

        await resolve_duplicate(async_session, second)

        assert second.duplicate_dismissed
        assert not second.potential_duplicate
        assert second.duplicate_of_id is None
        assert await find_duplicates(async_session, first) == []

    async def test_resolve_unknown_action(self, async_session: AsyncSession, add_supporter: Any) -> None:
        supporter = await add_supporter("Juan", "Cruz")
        with pytest.raises(ValueError, match="Unsupported duplicate resolution"):
            await resolve_duplicate(async_session, supporter, action="merge")


class TestScanAll:
    """Tests for the bulk duplicate scan."""

    async def test_find_pairs_uses_lowest_partner(self, async_session: AsyncSession, add_supporter: Any) -> None:
        a = await add_supporter("A", "One", normalized_phone="5551234")
        b = await add_supporter("B", "Two", normalized_phone="5551234")
        c = await add_supporter("C", "Three", normalized_phone="5551234", email="c@example.com")
        d = await add_supporter("D", "Four", email="C@example.com")

        pairs = await find_duplicate_pairs(async_session)

        assert pairs[a.id] == (b.id, {"phone"})
        assert pairs[b.id] == (a.id, {"phone"})
        assert pairs[c.id] == (a.id, {"phone", "email"})
        assert pairs[d.id] == (c.id, {"email"})

    async def test_scan_flags_and_clears(self, async_session: AsyncSession, add_supporter: Any) -> None:
        a = await add_supporter("A", "One", normalized_phone="5551234")
        b = await add_supporter("B", "Two", normalized_phone="5551234")
        stale = await add_supporter("C", "Three", potential_duplicate=True, duplicate_notes="old")

        result = await scan_all(async_session, config=DuplicateScanConfig(chunk_size=2))

        assert (result.flagged, result.cleared, result.errors) == (2, 1, 0)
        for supporter in (a, b, stale):
            await async_session.refresh(supporter)
        assert a.duplicate_of_id == b.id
        assert b.duplicate_of_id == a.id
        assert a.duplicate_notes == f"Possible duplicate of #{b.id} (matched on phone)"
        assert not stale.potential_duplicate
        assert stale.duplicate_notes is None
        assert await count_flagged(async_session) == 2

    async def test_scan_flags_phone_match_across_jurisdictions(
        self, async_session: AsyncSession, jurisdictions: dict[str, Jurisdiction], add_supporter: Any
    ) -> None:
        hagatna = await add_supporter(
            "Juan", "Cruz", normalized_phone="6715551234", jurisdiction_id=jurisdictions["Hagatna"].id
        )
        yigo = await add_supporter(
            "Ana", "Perez", normalized_phone="6715551234", jurisdiction_id=jurisdictions["Yigo"].id
        )

        result = await scan_all(async_session)

        assert result.flagged == 2
        await async_session.refresh(hagatna)
        await async_session.refresh(yigo)
        assert hagatna.potential_duplicate is True
        assert yigo.potential_duplicate is True
        assert (hagatna.duplicate_of_id, yigo.duplicate_of_id) == (yigo.id, hagatna.id)

    async def test_scan_is_idempotent(self, async_session: AsyncSession, add_supporter: Any) -> None:
        a = await add_supporter("A", "One", email="a@example.com")
        b = await add_supporter("B", "Two", email="a@example.com")
        await add_supporter("C", "Three")

        first = await scan_all(async_session)
        second = await scan_all(async_session)

        assert (first.flagged, first.cleared) == (2, 0)
        assert (second.flagged, second.cleared) == (2, 0)
        await async_session.refresh(a)
        await async_session.refresh(b)
        assert (a.duplicate_of_id, b.duplicate_of_id) == (b.id, a.id)

    async def test_scan_skips_dismissed(self, async_session: AsyncSession, add_supporter: Any) -> None:
        await add_supporter("A", "One", normalized_phone="5551234")
        await add_supporter("B", "Two", normalized_phone="5551234", duplicate_dismissed=True)

        result = await scan_all(async_session)

        assert result.flagged == 0
        assert await count_flagged(async_session) == 0

    async def test_scan_stops(self, async_session: AsyncSession, add_supporter: Any) -> None:
        await add_supporter("A", "One", normalized_phone="5551234")
        await add_supporter("B", "Two", normalized_phone="5551234")

        result = await scan_all(async_session, should_stop=lambda: True)

        assert result.stopped
        assert result.flagged == 0
        assert await count_flagged(async_session) == 0

"""Unit tests for the matcher tier table."""

from datetime import date

import pytest

from voter_vetting.lib.matcher.tiers import (
    STRATEGIES,
    JurisdictionScope,
    MatchConfidence,
    MatchQuery,
    MatchType,
    birth_year_confidence,
)


def _strategy(tier: int):  # noqa: ANN202
    return next(s for s in STRATEGIES if s.tier == tier)


class TestMatchQuery:
    """Tests for query normalization."""

    def test_birth_year_derived_from_dob(self) -> None:
        query = MatchQuery("Juan", "Cruz", dob=date(1985, 3, 4))
        assert query.birth_year == 1985

    def test_explicit_birth_year_kept(self) -> None:
        query = MatchQuery("Juan", "Cruz", dob=date(1985, 3, 4), birth_year=1984)
        assert query.birth_year == 1984

    def test_trims_and_blanks_jurisdiction(self) -> None:
        query = MatchQuery(" Juan ", " Cruz ", jurisdiction_name="  ")
        assert query.first_name == "Juan"
        assert query.last_name == "Cruz"
        assert query.jurisdiction_name is None

    def test_has_name_requires_both(self) -> None:
        assert not MatchQuery("Juan", "").has_name


class TestStrategyTable:
    """Tests for tier ordering and applicability."""

    def test_tiers_in_order(self) -> None:
        assert [s.tier for s in STRATEGIES] == [1, 2, 3, 4, 5, 6, 7]

    def test_exact_dob_tier(self) -> None:
        tier = _strategy(1)
        assert tier.match_type is MatchType.EXACT_DOB
        assert tier.jurisdiction_scope is JurisdictionScope.SAME
        assert tier.confidence_for(5) is MatchConfidence.EXACT

    def test_dob_tiers_need_dob(self) -> None:
        query = MatchQuery("Juan", "Cruz", birth_year=1985, jurisdiction_name="Hagatna")
        assert not _strategy(1).applies_to(query)
        assert not _strategy(2).applies_to(query)
        assert _strategy(3).applies_to(query)

    def test_jurisdiction_tiers_need_jurisdiction(self) -> None:
        query = MatchQuery("Juan", "Cruz", dob=date(1985, 3, 4))
        applicable = [s.tier for s in STRATEGIES if s.applies_to(query)]
        assert applicable == [5, 6]

    def test_name_only_tier_requires_no_birth_info(self) -> None:
        with_birth = MatchQuery("Juan", "Cruz", birth_year=1985, jurisdiction_name="Hagatna")
        without_birth = MatchQuery("Juan", "Cruz", jurisdiction_name="Hagatna")
        assert not _strategy(7).applies_to(with_birth)
        assert [s.tier for s in STRATEGIES if s.applies_to(without_birth)] == [7]

    def test_no_name_applies_nothing(self) -> None:
        query = MatchQuery("", "Cruz", dob=date(1985, 3, 4), jurisdiction_name="Hagatna")
        assert not any(s.applies_to(query) for s in STRATEGIES)

    def test_fuzzy_tier(self) -> None:
        tier = _strategy(6)
        assert tier.fuzzy
        assert tier.match_type is MatchType.FUZZY_NAME
        assert tier.confidence_for(1) is MatchConfidence.MEDIUM


class TestBirthYearConfidence:
    """Tests for the birth-year tier confidence rule."""

    @pytest.mark.parametrize(
        ("count", "expected"),
        [
            (1, MatchConfidence.EXACT),
            (2, MatchConfidence.HIGH),
            (3, MatchConfidence.HIGH),
            (4, MatchConfidence.MEDIUM),
            (10, MatchConfidence.MEDIUM),
        ],
    )
    def test_thresholds(self, count: int, expected: MatchConfidence) -> None:
        assert birth_year_confidence(count) is expected

    def test_tier_three_uses_count(self) -> None:
        assert _strategy(3).confidence_for(2) is MatchConfidence.HIGH

"""Candidate search tiers for matching a person against the voter roll.

The strategy table is ordered; the matcher runs each applicable strategy in
turn and stops at the first one that yields candidates.  Confidence is a
property of the winning strategy, and for the birth-year-in-jurisdiction tier
it also depends on how many candidates tied.
"""

import enum
from dataclasses import dataclass
from datetime import date


class MatchConfidence(enum.StrEnum):
    """Strength label attached to a roll candidate."""

    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MatchType(enum.StrEnum):
    """Which kind of evidence produced a candidate."""

    EXACT_DOB = "exact_dob"
    BIRTH_YEAR = "birth_year"
    DIFFERENT_JURISDICTION = "different_jurisdiction"
    NAME_BIRTH_YEAR = "name_birth_year"
    FUZZY_NAME = "fuzzy_name"
    NAME_JURISDICTION = "name_jurisdiction"


class BirthKey(enum.StrEnum):
    """Birth information a strategy compares on."""

    DOB = "dob"
    BIRTH_YEAR = "birth_year"
    NONE = "none"


class JurisdictionScope(enum.StrEnum):
    """How a strategy constrains the candidate's jurisdiction."""

    SAME = "same"
    DIFFERENT = "different"
    ANY = "any"


@dataclass(frozen=True)
class MatcherConfig:
    """Tunable matcher parameters."""

    fuzzy_threshold: float = 0.4
    fuzzy_limit: int = 5


@dataclass
class MatchQuery:
    """A (possibly partial) identity to look up on the roll.

    ``birth_year`` is derived from ``dob`` when not given.  Names and the
    jurisdiction are trimmed; blank jurisdiction becomes None.
    """

    first_name: str
    last_name: str
    dob: date | None = None
    birth_year: int | None = None
    jurisdiction_name: str | None = None

    def __post_init__(self) -> None:
        self.first_name = (self.first_name or "").strip()
        self.last_name = (self.last_name or "").strip()
        if self.jurisdiction_name is not None:
            self.jurisdiction_name = self.jurisdiction_name.strip() or None
        if self.birth_year is None and self.dob is not None:
            self.birth_year = self.dob.year

    @property
    def has_name(self) -> bool:
        return bool(self.first_name and self.last_name)

    @property
    def has_birth_info(self) -> bool:
        return self.dob is not None or self.birth_year is not None


def birth_year_confidence(candidate_count: int) -> MatchConfidence:
    """Confidence for a birth-year match inside the submitted jurisdiction.

    One candidate is exact, two or three are high, four or more are medium.
    """
    if candidate_count <= 1:
        return MatchConfidence.EXACT
    if candidate_count <= 3:
        return MatchConfidence.HIGH
    return MatchConfidence.MEDIUM


@dataclass(frozen=True)
class MatchStrategy:
    """One row of the tier table."""

    tier: int
    birth_key: BirthKey
    jurisdiction_scope: JurisdictionScope
    match_type: MatchType
    confidence: MatchConfidence | None = None
    fuzzy: bool = False
    requires_no_birth_info: bool = False

    def applies_to(self, query: MatchQuery) -> bool:
        """Whether the query carries every input this strategy needs."""
        if not query.has_name:
            return False
        if self.birth_key is BirthKey.DOB and query.dob is None:
            return False
        if self.birth_key is BirthKey.BIRTH_YEAR and query.birth_year is None:
            return False
        if self.requires_no_birth_info and query.has_birth_info:
            return False
        return not (self.jurisdiction_scope is not JurisdictionScope.ANY and query.jurisdiction_name is None)

    def confidence_for(self, candidate_count: int) -> MatchConfidence:
        """Confidence label for a winning candidate set of the given size."""
        if self.confidence is not None:
            return self.confidence
        return birth_year_confidence(candidate_count)


STRATEGIES: tuple[MatchStrategy, ...] = (
    MatchStrategy(
        tier=1,
        birth_key=BirthKey.DOB,
        jurisdiction_scope=JurisdictionScope.SAME,
        match_type=MatchType.EXACT_DOB,
        confidence=MatchConfidence.EXACT,
    ),
    MatchStrategy(
        tier=2,
        birth_key=BirthKey.DOB,
        jurisdiction_scope=JurisdictionScope.DIFFERENT,
        match_type=MatchType.DIFFERENT_JURISDICTION,
        confidence=MatchConfidence.HIGH,
    ),
    MatchStrategy(
        tier=3,
        birth_key=BirthKey.BIRTH_YEAR,
        jurisdiction_scope=JurisdictionScope.SAME,
        match_type=MatchType.BIRTH_YEAR,
    ),
    MatchStrategy(
        tier=4,
        birth_key=BirthKey.BIRTH_YEAR,
        jurisdiction_scope=JurisdictionScope.DIFFERENT,
        match_type=MatchType.DIFFERENT_JURISDICTION,
        confidence=MatchConfidence.HIGH,
    ),
    MatchStrategy(
        tier=5,
        birth_key=BirthKey.BIRTH_YEAR,
        jurisdiction_scope=JurisdictionScope.ANY,
        match_type=MatchType.NAME_BIRTH_YEAR,
        confidence=MatchConfidence.MEDIUM,
    ),
    MatchStrategy(
        tier=6,
        birth_key=BirthKey.BIRTH_YEAR,
        jurisdiction_scope=JurisdictionScope.ANY,
        match_type=MatchType.FUZZY_NAME,
        confidence=MatchConfidence.MEDIUM,
        fuzzy=True,
    ),
    MatchStrategy(
        tier=7,
        birth_key=BirthKey.NONE,
        jurisdiction_scope=JurisdictionScope.SAME,
        match_type=MatchType.NAME_JURISDICTION,
        confidence=MatchConfidence.LOW,
        requires_no_birth_info=True,
    ),
)

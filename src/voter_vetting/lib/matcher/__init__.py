"""Matcher library public API.

Provides the ordered candidate-search tiers, confidence rules, and a
pg_trgm-compatible trigram similarity.
"""

from voter_vetting.lib.matcher.tiers import (
    STRATEGIES,
    BirthKey,
    JurisdictionScope,
    MatchConfidence,
    MatcherConfig,
    MatchQuery,
    MatchStrategy,
    MatchType,
    birth_year_confidence,
)
from voter_vetting.lib.matcher.trigram import trigram_similarity, trigrams

__all__ = [
    "STRATEGIES",
    "BirthKey",
    "JurisdictionScope",
    "MatchConfidence",
    "MatchQuery",
    "MatchStrategy",
    "MatchType",
    "MatcherConfig",
    "birth_year_confidence",
    "trigram_similarity",
    "trigrams",
]

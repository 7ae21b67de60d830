"""Trigram similarity compatible with PostgreSQL's pg_trgm ``similarity()``.

Used to register a ``similarity`` SQL function on SQLite connections and for
in-memory ranking.  Follows pg_trgm: text is lowercased, split into words on
non-alphanumeric characters, each word is padded with two leading blanks and
one trailing blank, and the score is shared trigrams over total distinct
trigrams.
"""

import re

_WORD_SPLIT = re.compile(r"[^0-9a-z]+")


def trigrams(text: str) -> set[str]:
    """Return the pg_trgm trigram set of a string."""
    result: set[str] = set()
    for word in _WORD_SPLIT.split(text.lower()):
        if not word:
            continue
        padded = f"  {word} "
        result.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return result


def trigram_similarity(left: str, right: str) -> float:
    """Return the trigram similarity of two strings (0.0..1.0)."""
    left_set = trigrams(left)
    right_set = trigrams(right)
    if not left_set or not right_set:
        return 0.0
    shared = len(left_set & right_set)
    return shared / len(left_set | right_set)

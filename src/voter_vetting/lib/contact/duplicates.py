"""Duplicate-detection rules shared by the single-record and bulk paths."""

import enum
from collections.abc import Iterable
from dataclasses import dataclass


class DuplicateReason(enum.StrEnum):
    """Why two supporters are considered the same person."""

    PHONE = "phone"
    EMAIL = "email"
    NAME_JURISDICTION = "name+jurisdiction"
    SWAPPED_NAME = "swapped_name+jurisdiction"


@dataclass(frozen=True)
class DuplicateScanConfig:
    """Bulk duplicate-scan settings.

    Attributes:
        chunk_size: Supporters updated per committed chunk during ``scan_all``.
    """

    chunk_size: int = 1000


def build_duplicate_notes(reasons: Iterable[str], partner_id: int) -> str:
    """Human-readable note stored on a flagged supporter."""
    ordered = [reason.value for reason in DuplicateReason if reason.value in set(reasons)]
    return f"Possible duplicate of #{partner_id} (matched on {', '.join(ordered)})"

"""Roll diffing: correlate incoming rows with stored records by natural identity.

A natural identity is the case-insensitive (first name, last name) pair plus
birth information (full date of birth, or birth year when only that is
known).  Existing records are supplied by the caller; these helpers only
decide which one an incoming row corresponds to and what would change.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from voter_vetting.lib.roll_importer.types import ParsedRow

COMPARE_FIELDS = ["registration_number", "dob", "birth_year", "dob_ambiguous", "jurisdiction_name"]


def identity_key(first_name: str | None, last_name: str | None) -> tuple[str, str]:
    """Case-insensitive name key."""
    return ((first_name or "").strip().lower(), (last_name or "").strip().lower())


def _same_jurisdiction(left: str | None, right: str | None) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


def same_birth(existing: Any, row: ParsedRow) -> bool:
    """Whether a stored record's birth information agrees with the row's.

    A row with a full dob matches the same dob, or a year-only record of the
    same year.  A row with only a birth year matches any record of that year.
    """
    if row.dob is not None:
        if existing.dob is not None:
            return existing.dob == row.dob
        return existing.birth_year == row.dob.year
    if row.birth_year is not None:
        return existing.birth_year == row.birth_year
    return True


class StoredIndex:
    """Stored records of one chunk grouped by case-insensitive name.

    Lookups only scan records sharing the row's full name, so matching a
    chunk costs one pass over its rows rather than rows times surnames.
    Records are kept in id order so the oldest record wins ties.
    """

    def __init__(self, records: Iterable[Any]) -> None:
        self._by_name: dict[tuple[str, str], list[Any]] = defaultdict(list)
        for record in sorted(records, key=lambda r: r.id):
            self._by_name[identity_key(record.first_name, record.last_name)].append(record)

    def find(self, row: ParsedRow, claimed: set[int], *, any_jurisdiction: bool = False) -> Any | None:
        """Return the oldest unclaimed record with the row's natural identity.

        Args:
            row: The incoming row.
            claimed: Ids already matched during this import.
            any_jurisdiction: Accept a record in another jurisdiction (a
                transfer).  Rows without birth information never transfer.

        Returns:
            The matching record, or None.
        """
        if any_jurisdiction and not row.has_birth_info:
            return None
        for candidate in self._by_name.get(identity_key(row.first_name, row.last_name), ()):
            if candidate.id in claimed or not same_birth(candidate, row):
                continue
            if any_jurisdiction or _same_jurisdiction(candidate.jurisdiction_name, row.jurisdiction_name):
                return candidate
        return None


class SeenIdentities:
    """Records an import has already claimed or created.

    Keyed by name and jurisdiction, so a later row repeating an identity in
    the same jurisdiction folds onto the record instead of creating another.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str, str], list[Any]] = defaultdict(list)

    @staticmethod
    def _key(first_name: str | None, last_name: str | None, jurisdiction_name: str | None) -> tuple[str, str, str]:
        return (*identity_key(first_name, last_name), (jurisdiction_name or "").strip().lower())

    def add(self, record: Any) -> None:
        self._records[self._key(record.first_name, record.last_name, record.jurisdiction_name)].append(record)

    def find(self, row: ParsedRow) -> Any | None:
        """Return the record this import already holds for the row's identity."""
        for record in self._records.get(self._key(row.first_name, row.last_name, row.jurisdiction_name), ()):
            if same_birth(record, row):
                return record
        return None


def detect_field_changes(
    existing: dict[str, Any],
    incoming: dict[str, Any],
    compare_fields: list[str] | None = None,
) -> dict[str, tuple[Any, Any]]:
    """Detect field-level changes between existing and incoming records.

    Args:
        existing: The current database record as a dict.
        incoming: The incoming import record as a dict.
        compare_fields: Fields to compare (None = all shared keys).

    Returns:
        Dictionary of field_name → (old_value, new_value) for changed fields.
    """
    if compare_fields is None:
        compare_fields = [k for k in incoming if k in existing and not k.startswith("_")]

    changes = {}
    for name in compare_fields:
        old_val = existing.get(name)
        new_val = incoming.get(name)
        if old_val != new_val:
            changes[name] = (old_val, new_val)

    return changes


@dataclass
class RowUpdate:
    """Planned update of a stored record from an incoming row."""

    changes: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    transferred: bool = False
    previous_jurisdiction_name: str | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


def plan_update(existing: Any, row: ParsedRow) -> RowUpdate:
    """Work out which data fields an incoming row changes on a stored record.

    Blank incoming values keep the stored value.  A jurisdiction that differs
    only by case is not a change; any other difference is a transfer.
    """
    current = {name: getattr(existing, name) for name in COMPARE_FIELDS}
    incoming = dict(current)
    if row.registration_number:
        incoming["registration_number"] = row.registration_number
    if row.dob is not None:
        incoming["dob"] = row.dob
        incoming["dob_ambiguous"] = row.dob_ambiguous
    if row.birth_year is not None:
        incoming["birth_year"] = row.birth_year

    update = RowUpdate()
    if row.jurisdiction_name and not _same_jurisdiction(existing.jurisdiction_name, row.jurisdiction_name):
        incoming["jurisdiction_name"] = row.jurisdiction_name
        update.transferred = True
        update.previous_jurisdiction_name = existing.jurisdiction_name

    update.changes = detect_field_changes(current, incoming, COMPARE_FIELDS)
    return update

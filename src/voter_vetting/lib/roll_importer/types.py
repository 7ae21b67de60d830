"""Data types shared by the roll importer modules."""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

CANONICAL_COLUMNS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "dob",
    "birth_year",
    "jurisdiction_name",
    "registration_number",
)


@dataclass(frozen=True)
class ImportConfig:
    """Import processor settings.

    Attributes:
        batch_size: Rows read and flushed per chunk.
        day_first: Parse ambiguous slash dates as day/month/year.
        error_log_limit: Row-level errors kept on the import record.
    """

    batch_size: int = 5000
    day_first: bool = False
    error_log_limit: int = 50


@dataclass
class ParsedRow:
    """One roll row after value parsing.

    ``errors`` collects parse problems; the validator adds missing-field errors.
    """

    row_number: int
    first_name: str | None = None
    last_name: str | None = None
    dob: date | None = None
    birth_year: int | None = None
    dob_ambiguous: bool = False
    jurisdiction_name: str | None = None
    registration_number: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def has_birth_info(self) -> bool:
        return self.dob is not None or self.birth_year is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for previews and error logs."""
        data = asdict(self)
        data["dob"] = self.dob.isoformat() if self.dob else None
        return data

"""Roll row validation rules.

A row is importable when it carries a first name, last name and jurisdiction
and every present date field parsed cleanly.
"""

from voter_vetting.lib.roll_importer.types import ParsedRow

REQUIRED_FIELDS = ["first_name", "last_name", "jurisdiction_name"]


def validate_row(row: ParsedRow) -> tuple[bool, list[str]]:
    """Validate a single parsed roll row.

    Args:
        row: The parsed row.

    Returns:
        Tuple of (is_valid, list of error messages).
    """
    errors: list[str] = list(row.errors)

    for field in REQUIRED_FIELDS:
        if not getattr(row, field):
            errors.append(f"Row {row.row_number}: Missing required field: {field}")

    return len(errors) == 0, errors


def validate_batch(rows: list[ParsedRow]) -> tuple[list[ParsedRow], list[ParsedRow]]:
    """Validate a batch of parsed rows.

    Args:
        rows: Parsed roll rows.

    Returns:
        Tuple of (valid_rows, failed_rows with errors attached).
    """
    valid = []
    failed = []

    for row in rows:
        is_valid, errors = validate_row(row)
        if is_valid:
            valid.append(row)
        else:
            row.errors = errors
            failed.append(row)

    return valid, failed

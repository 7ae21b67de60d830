"""Unit tests for roll row validation."""

from voter_vetting.lib.roll_importer.parser import parse_row
from voter_vetting.lib.roll_importer.validator import validate_batch, validate_row


def _row(**raw: object):  # noqa: ANN202
    base = {"first_name": "Juan", "last_name": "Cruz", "dob": "1985-03-04", "jurisdiction_name": "Hagatna"}
    base.update(raw)
    return parse_row(base, row_number=3)


class TestValidateRow:
    """Tests for single-row validation."""

    def test_valid_row(self) -> None:
        is_valid, errors = validate_row(_row())
        assert is_valid
        assert errors == []

    def test_missing_last_name(self) -> None:
        is_valid, errors = validate_row(_row(last_name=""))
        assert not is_valid
        assert errors == ["Row 3: Missing required field: last_name"]

    def test_missing_jurisdiction(self) -> None:
        is_valid, errors = validate_row(_row(jurisdiction_name=None))
        assert not is_valid
        assert "Row 3: Missing required field: jurisdiction_name" in errors

    def test_parse_errors_fail_the_row(self) -> None:
        is_valid, errors = validate_row(_row(dob="unknown"))
        assert not is_valid
        assert errors[0].startswith("Row 3: Unparseable dob")

    def test_missing_birth_info_is_allowed(self) -> None:
        is_valid, _errors = validate_row(_row(dob=None))
        assert is_valid


class TestValidateBatch:
    """Tests for batch validation."""

    def test_splits_valid_and_failed(self) -> None:
        rows = [_row(), _row(first_name=" "), _row(last_name="Santos")]
        valid, failed = validate_batch(rows)
        assert [r.last_name for r in valid] == ["Cruz", "Santos"]
        assert len(failed) == 1
        assert failed[0].errors == ["Row 3: Missing required field: first_name"]

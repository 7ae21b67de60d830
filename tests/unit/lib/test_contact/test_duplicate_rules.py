"""Unit tests for duplicate-detection rules."""

from voter_vetting.lib.contact.duplicates import DuplicateReason, DuplicateScanConfig, build_duplicate_notes


class TestBuildDuplicateNotes:
    """Tests for the flagged-supporter note."""

    def test_reasons_in_canonical_order(self) -> None:
        notes = build_duplicate_notes({"email", "phone"}, 12)
        assert notes == "Possible duplicate of #12 (matched on phone, email)"

    def test_name_reasons(self) -> None:
        notes = build_duplicate_notes([DuplicateReason.SWAPPED_NAME, DuplicateReason.NAME_JURISDICTION], 3)
        assert notes == "Possible duplicate of #3 (matched on name+jurisdiction, swapped_name+jurisdiction)"

    def test_repeated_reason_listed_once(self) -> None:
        assert build_duplicate_notes(["phone", "phone"], 1) == "Possible duplicate of #1 (matched on phone)"


def test_scan_config_default() -> None:
    assert DuplicateScanConfig().chunk_size == 1000

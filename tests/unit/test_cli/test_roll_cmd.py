"""Unit tests for the roll CLI commands."""

from datetime import date
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from voter_vetting.cli.app import app
from voter_vetting.services.roll_store import JurisdictionCount, RollStats

runner = CliRunner()

CSV = (
    "First Name,Last Name,DOB,Village,Voter Reg\n"
    "Juan,Cruz,1985-03-04,Hagatna,A-1\n"
    "Ana,Perez,1970,Dededo,\n"
    "Maria,,1990-07-21,Yigo,C-3\n"
)


def _roll_file(tmp_path: Path) -> Path:
    path = tmp_path / "roll.csv"
    path.write_text(CSV)
    return path


def _batch(**counts: int) -> SimpleNamespace:
    fields = {
        "total_records": 0,
        "new_records": 0,
        "updated_records": 0,
        "removed_records": 0,
        "transferred_records": 0,
        "ambiguous_dob_count": 0,
        "skipped_records": 0,
        "re_vetted_count": 0,
    }
    fields.update(counts)
    return SimpleNamespace(id="a1b2", error_log=["Row 3: Missing required field: last_name"], **fields)


class TestImportCommand:
    """Tests for `roll import`."""

    def test_import_prints_counts(self, cli_db: SimpleNamespace, tmp_path: Path) -> None:
        path = _roll_file(tmp_path)
        batch = _batch(total_records=3, new_records=2, skipped_records=1)

        with (
            patch(
                "voter_vetting.services.roll_import_service.create_roll_import",
                new_callable=AsyncMock,
                return_value=batch,
            ) as create,
            patch(
                "voter_vetting.services.roll_import_service.process_roll_import",
                new_callable=AsyncMock,
                return_value=batch,
            ) as process,
        ):
            result = runner.invoke(
                app, ["roll", "import", str(path), "--list-date", "2024-01-01", "--uploaded-by", "Clerk"]
            )

        assert result.exit_code == 0, result.output
        assert "Roll import created: a1b2" in result.output
        assert "New:             2" in result.output
        assert "! Row 3: Missing required field: last_name" in result.output
        create.assert_awaited_once_with(
            cli_db.session,
            file_name="roll.csv",
            list_date=date(2024, 1, 1),
            import_type="full_list",
            uploaded_by="Clerk",
        )
        assert process.await_args.kwargs["config"] == cli_db.settings.import_config
        cli_db.init_engine.assert_called_once_with(cli_db.settings.database_url, schema=None)
        cli_db.dispose_engine.assert_awaited_once()

    def test_import_failure_exits_nonzero(self, cli_db: SimpleNamespace, tmp_path: Path) -> None:
        path = _roll_file(tmp_path)

        with (
            patch(
                "voter_vetting.services.roll_import_service.create_roll_import",
                new_callable=AsyncMock,
                return_value=_batch(),
            ),
            patch(
                "voter_vetting.services.roll_import_service.process_roll_import",
                new_callable=AsyncMock,
                side_effect=ValueError("Roll file is missing required columns: dob"),
            ),
        ):
            result = runner.invoke(app, ["roll", "import", str(path), "--list-date", "2024-01-01"])

        assert result.exit_code == 1
        assert "Import failed: Roll file is missing required columns: dob" in result.output
        cli_db.dispose_engine.assert_awaited_once()

    def test_missing_file(self, cli_db: SimpleNamespace, tmp_path: Path) -> None:
        result = runner.invoke(app, ["roll", "import", str(tmp_path / "nope.csv"), "--list-date", "2024-01-01"])
        assert result.exit_code != 0


class TestPreviewCommand:
    """Tests for `roll preview`."""

    def test_preview(self, cli_db: SimpleNamespace, tmp_path: Path) -> None:
        result = runner.invoke(app, ["roll", "preview", str(_roll_file(tmp_path))])

        assert result.exit_code == 0, result.output
        assert "Voter Reg -> registration_number" in result.output
        assert "Rows: 3 total, 2 valid, 1 ambiguous DOB" in result.output
        assert "1: Juan Cruz | 1985-03-04 | Hagatna" in result.output
        assert "2: Ana Perez | 1970 | Dededo" in result.output
        cli_db.init_engine.assert_not_called()

    def test_preview_bad_file(self, cli_db: SimpleNamespace, tmp_path: Path) -> None:
        path = tmp_path / "roll.csv"
        path.write_text("first_name,last_name\nJuan,Cruz\n")

        result = runner.invoke(app, ["roll", "preview", str(path)])

        assert result.exit_code == 1
        assert "missing required columns" in result.output


class TestMatchCommand:
    """Tests for `roll match`."""

    def test_no_match(self, cli_db: SimpleNamespace) -> None:
        with patch(
            "voter_vetting.services.match_service.find_matches", new_callable=AsyncMock, return_value=[]
        ) as find:
            result = runner.invoke(app, ["roll", "match", "Juan", "Cruz", "--dob", "1985-03-04"])

        assert result.exit_code == 0, result.output
        assert "No match found on the roll" in result.output
        query = find.await_args.args[1]
        assert (query.first_name, query.last_name, query.dob) == ("Juan", "Cruz", date(1985, 3, 4))

    def test_candidates_listed(self, cli_db: SimpleNamespace) -> None:
        voter = SimpleNamespace(
            id=7, first_name="Juan", last_name="Cruz", dob=None, birth_year=1985, jurisdiction_name="Dededo"
        )
        candidate = SimpleNamespace(
            roll_voter=voter, confidence="medium", match_type="name_birth_year", match_count=1, tier=5
        )

        with patch(
            "voter_vetting.services.match_service.find_matches", new_callable=AsyncMock, return_value=[candidate]
        ):
            result = runner.invoke(app, ["roll", "match", "Juan", "Cruz", "--birth-year", "1985"])

        assert "1 candidate(s), medium confidence via name_birth_year (tier 5)" in result.output
        assert "#7: Juan Cruz | 1985 | Dededo" in result.output


class TestStatsCommand:
    """Tests for `roll stats`."""

    def test_stats(self, cli_db: SimpleNamespace) -> None:
        stats = RollStats(
            total_active=2,
            total_removed=1,
            latest_list_date=date(2024, 1, 1),
            jurisdictions=[JurisdictionCount("Dededo", 1), JurisdictionCount("Hagatna", 1)],
        )

        with patch("voter_vetting.services.roll_store.get_roll_stats", new_callable=AsyncMock, return_value=stats):
            result = runner.invoke(app, ["roll", "stats"])

        assert result.exit_code == 0, result.output
        assert "Active records:  2" in result.output
        assert "Latest list:     2024-01-01" in result.output
        assert "Dededo: 1" in result.output
        assert "Latest import" not in result.output

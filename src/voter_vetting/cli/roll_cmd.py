"""Roll CLI commands: import, preview, match and stats."""

import asyncio
from datetime import date, datetime
from pathlib import Path

import typer

roll_app = typer.Typer()


@roll_app.command("import")
def import_roll(
    file: Path = typer.Argument(..., help="Path to roll CSV or Excel file", exists=True),  # noqa: B008
    list_date: datetime = typer.Option(  # noqa: B008
        ..., "--list-date", formats=["%Y-%m-%d"], help="Roll version date"
    ),
    import_type: str = typer.Option("full_list", "--type", help="full_list or changes_only"),
    sheet_name: str | None = typer.Option(None, "--sheet", help="Excel sheet to import"),
    uploaded_by: str | None = typer.Option(None, "--uploaded-by", help="Name recorded on the import"),
) -> None:
    """Import a voter roll file."""
    asyncio.run(_import_roll(file, list_date.date(), import_type, sheet_name, uploaded_by))


async def _import_roll(
    file_path: Path,
    list_date: date,
    import_type: str,
    sheet_name: str | None,
    uploaded_by: str | None,
) -> None:
    """Async implementation of roll import."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.services.roll_import_service import create_roll_import, process_roll_import

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            try:
                batch = await create_roll_import(
                    session,
                    file_name=file_path.name,
                    list_date=list_date,
                    import_type=import_type,
                    uploaded_by=uploaded_by,
                )
                typer.echo(f"Roll import created: {batch.id}")
                typer.echo(f"Processing {file_path}...")
                batch = await process_roll_import(
                    session, batch, file_path, config=settings.import_config, sheet_name=sheet_name
                )
            except Exception as e:
                typer.echo(f"Error: Import failed: {e}", err=True)
                raise typer.Exit(code=1) from e

            typer.echo("\nImport completed:")
            typer.echo(f"  Total records:   {batch.total_records}")
            typer.echo(f"  New:             {batch.new_records}")
            typer.echo(f"  Updated:         {batch.updated_records}")
            typer.echo(f"  Removed:         {batch.removed_records}")
            typer.echo(f"  Transferred:     {batch.transferred_records}")
            typer.echo(f"  Ambiguous DOB:   {batch.ambiguous_dob_count}")
            typer.echo(f"  Skipped:         {batch.skipped_records}")
            typer.echo(f"  Re-flagged:      {batch.re_vetted_count}")
            for message in batch.error_log or []:
                typer.echo(f"  ! {message}")
    finally:
        await dispose_engine()


@roll_app.command("preview")
def preview_roll(
    file: Path = typer.Argument(..., help="Path to roll CSV or Excel file", exists=True),  # noqa: B008
    sheet_name: str | None = typer.Option(None, "--sheet", help="Excel sheet to preview"),
    sample_size: int = typer.Option(10, "--sample", help="Rows to show"),
) -> None:
    """Parse a roll file and show a sample without importing it."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.services.roll_import_service import preview_roll_file

    settings = get_settings()
    try:
        preview = preview_roll_file(
            file, config=settings.import_config, sample_size=sample_size, sheet_name=sheet_name
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"File: {preview.file_name}")
    if preview.sheets:
        typer.echo(f"Sheets: {', '.join(preview.sheets)}")
    typer.echo("Columns:")
    for header, column in preview.column_map.items():
        typer.echo(f"  {header} -> {column}")
    typer.echo(
        f"Rows: {preview.total_rows} total, {preview.valid_rows} valid, "
        f"{preview.ambiguous_dob_count} ambiguous DOB"
    )
    for row in preview.sample:
        birth = row["dob"] or row["birth_year"] or "-"
        name = f"{row['first_name']} {row['last_name']}"
        typer.echo(f"  {row['row_number']}: {name} | {birth} | {row['jurisdiction_name']}")
    for message in preview.errors:
        typer.echo(f"  ! {message}")


@roll_app.command("match")
def match_person(
    first_name: str = typer.Argument(..., help="First name"),
    last_name: str = typer.Argument(..., help="Last name"),
    dob: datetime | None = typer.Option(None, "--dob", formats=["%Y-%m-%d"], help="Date of birth"),  # noqa: B008
    birth_year: int | None = typer.Option(None, "--birth-year", help="Birth year"),
    jurisdiction: str | None = typer.Option(None, "--jurisdiction", help="Jurisdiction name"),
) -> None:
    """Look a person up on the active roll."""
    asyncio.run(_match_person(first_name, last_name, dob.date() if dob else None, birth_year, jurisdiction))


async def _match_person(
    first_name: str,
    last_name: str,
    dob: date | None,
    birth_year: int | None,
    jurisdiction: str | None,
) -> None:
    """Async implementation of roll match."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.lib.matcher import MatchQuery
    from voter_vetting.services.match_service import find_matches

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            query = MatchQuery(
                first_name=first_name,
                last_name=last_name,
                dob=dob,
                birth_year=birth_year,
                jurisdiction_name=jurisdiction,
            )
            candidates = await find_matches(session, query, settings.matcher_config)
    finally:
        await dispose_engine()

    if not candidates:
        typer.echo("No match found on the roll")
        return
    best = candidates[0]
    typer.echo(
        f"{best.match_count} candidate(s), {best.confidence} confidence via {best.match_type} (tier {best.tier})"
    )
    for candidate in candidates:
        voter = candidate.roll_voter
        birth = voter.dob.isoformat() if voter.dob else voter.birth_year or "-"
        typer.echo(f"  #{voter.id}: {voter.first_name} {voter.last_name} | {birth} | {voter.jurisdiction_name}")


@roll_app.command("stats")
def roll_stats() -> None:
    """Show an overview of the active roll."""
    asyncio.run(_roll_stats())


async def _roll_stats() -> None:
    """Async implementation of roll stats."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.services.roll_store import get_roll_stats

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            stats = await get_roll_stats(session)
    finally:
        await dispose_engine()

    typer.echo(f"Active records:  {stats.total_active}")
    typer.echo(f"Removed records: {stats.total_removed}")
    typer.echo(f"Ambiguous DOB:   {stats.ambiguous_dob_count}")
    typer.echo(f"Latest list:     {stats.latest_list_date or '-'}")
    if stats.latest_import is not None:
        typer.echo(f"Latest import:   {stats.latest_import.file_name} ({stats.latest_import.status})")
    for item in stats.jurisdictions:
        typer.echo(f"  {item.name}: {item.count}")

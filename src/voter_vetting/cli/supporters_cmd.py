"""Supporter CLI commands: bulk re-vetting and the full duplicate scan."""

import asyncio

import typer

supporters_app = typer.Typer()


@supporters_app.command("revet")
def revet(
    status: list[str] = typer.Option(  # noqa: B008
        ["active"], "--status", help="Supporter status to include (repeatable)"
    ),
    verification_status: list[str] | None = typer.Option(  # noqa: B008
        None, "--verification-status", help="Verification status to include (repeatable)"
    ),
    jurisdiction_id: int | None = typer.Option(None, "--jurisdiction-id", help="Only this jurisdiction"),
    show_review: bool = typer.Option(False, "--show-review", help="List supporters needing manual review"),
) -> None:
    """Re-vet supporters against the current roll."""
    asyncio.run(_revet(status, verification_status or None, jurisdiction_id, show_review))


async def _revet(
    statuses: list[str],
    verification_statuses: list[str] | None,
    jurisdiction_id: int | None,
    show_review: bool,
) -> None:
    """Async implementation of bulk re-vet."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.services.audit_service import log_event
    from voter_vetting.services.vetting_service import SupporterFilter, bulk_revet

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    filters = SupporterFilter(
        statuses=statuses,
        verification_statuses=verification_statuses,
        jurisdiction_id=jurisdiction_id,
    )
    try:
        factory = get_session_factory()
        async with factory() as session:
            result = await bulk_revet(
                session, filters, config=settings.matcher_config, chunk_size=settings.revet_chunk_size
            )
            await log_event(
                session,
                actor="cli",
                action="bulk_revet",
                entity_kind="supporter",
                details={"total": result.total, "counts": dict(result.counts), "errors": result.errors},
            )
    finally:
        await dispose_engine()

    typer.echo(f"Re-vetted {result.total} supporter(s):")
    for outcome, count in sorted(result.counts.items()):
        typer.echo(f"  {outcome}: {count}")
    typer.echo(f"  errors: {result.errors}")
    if show_review:
        for item in result.review_queue:
            candidates = ", ".join(f"#{c}" for c in item.candidate_ids)
            typer.echo(f"  review #{item.supporter_id}: {item.confidence} via {item.match_type} -> {candidates}")
    if result.errors:
        raise typer.Exit(code=1)


@supporters_app.command("scan-duplicates")
def scan_duplicates() -> None:
    """Scan every supporter for potential duplicates."""
    asyncio.run(_scan_duplicates())


async def _scan_duplicates() -> None:
    """Async implementation of the duplicate scan."""
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.services.audit_service import log_event
    from voter_vetting.services.duplicate_service import count_flagged, scan_all

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            result = await scan_all(session, config=settings.duplicate_scan_config)
            flagged_total = await count_flagged(session)
            await log_event(
                session,
                actor="cli",
                action="duplicate_scan",
                entity_kind="supporter",
                details={"flagged": result.flagged, "cleared": result.cleared, "errors": result.errors},
            )
    finally:
        await dispose_engine()

    typer.echo("Duplicate scan complete:")
    typer.echo(f"  Flagged:        {result.flagged}")
    typer.echo(f"  Cleared:        {result.cleared}")
    typer.echo(f"  Errors:         {result.errors}")
    typer.echo(f"  Now flagged:    {flagged_total}")
    if result.errors:
        raise typer.Exit(code=1)

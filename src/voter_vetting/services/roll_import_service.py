"""Roll import service: diffs an uploaded roll against the stored roll.

An import runs as one unit of work: rows are parsed, validated and matched to
stored records by natural identity chunk by chunk, changes are flushed per
chunk, and the batch is committed once at the end together with its counts.
Any failure rolls the roll back to its previous state and marks the batch
failed.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pandas as pd
from loguru import logger
from sqlalchemy import func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.lib.roll_importer import (
    ImportConfig,
    ParsedRow,
    SeenIdentities,
    StoredIndex,
    build_column_map,
    list_sheets,
    parse_row,
    plan_update,
    read_headers,
    read_roll_chunks,
    validate_batch,
)
from voter_vetting.models.roll_import import ImportStatus, ImportType, RollImport
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus
from voter_vetting.services import audit_service, roll_store, vetting_service
from voter_vetting.services.jurisdiction_service import load_name_map, name_key

# Serializes imports on PostgreSQL (pg_advisory_xact_lock key)
_IMPORT_LOCK_KEY = 0x56_4F_54_45

# asyncpg has a hard limit of 32767 query parameters
_IN_CLAUSE_BATCH = 5000

RowChunk = list[Mapping[str, Any]]


@dataclass
class _ImportState:
    """Running totals and bookkeeping for one import."""

    batch_id: uuid.UUID
    list_date: date
    config: ImportConfig
    jurisdiction_ids: dict[str, int]
    claimed: set[int] = field(default_factory=set)
    seen: SeenIdentities = field(default_factory=SeenIdentities)
    rows_seen: int = 0
    total: int = 0
    new: int = 0
    updated: int = 0
    transferred: int = 0
    ambiguous: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def record_errors(self, messages: Iterable[str]) -> None:
        for message in messages:
            if len(self.errors) >= self.config.error_log_limit:
                return
            self.errors.append(message)


@dataclass
class RollPreview:
    """Result of a preview: parsing only, nothing written."""

    file_name: str
    headers: list[str]
    column_map: dict[str, str]
    sheets: list[str]
    total_rows: int = 0
    valid_rows: int = 0
    ambiguous_dob_count: int = 0
    sample: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ImportChangeSummary:
    """Roll record ids touched by one import."""

    import_id: uuid.UUID
    added: list[int]
    updated: list[int]
    removed: list[int]
    added_count: int
    updated_count: int
    removed_count: int
    transferred_count: int


def _now() -> datetime:
    return datetime.now(UTC)


async def create_roll_import(
    session: AsyncSession,
    *,
    file_name: str,
    list_date: date,
    import_type: str = ImportType.FULL_LIST,
    uploaded_by: str | None = None,
) -> RollImport:
    """Create a new pending roll import record.

    Args:
        session: Database session.
        file_name: Original filename.
        list_date: Roll version date declared for this upload.
        import_type: ``full_list`` or ``changes_only``.
        uploaded_by: Free-text name of the uploader.

    Returns:
        The created RollImport.

    Raises:
        ValueError: If the import type is unknown.
    """
    if import_type not in {t.value for t in ImportType}:
        msg = f"Unknown import_type: {import_type!r}"
        raise ValueError(msg)
    batch = RollImport(
        file_name=file_name,
        list_date=list_date,
        import_type=import_type,
        status=ImportStatus.PENDING,
        uploaded_by=uploaded_by,
    )
    session.add(batch)
    await session.commit()
    await session.refresh(batch)
    return batch


async def _acquire_import_lock(session: AsyncSession) -> None:
    """Take a transaction-scoped advisory lock so imports never interleave."""
    connection = await session.connection()
    if connection.dialect.name == "postgresql":
        await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": _IMPORT_LOCK_KEY})


def _new_roll_voter(row: ParsedRow, state: _ImportState) -> RollVoter:
    return RollVoter(
        first_name=row.first_name,
        last_name=row.last_name,
        dob=row.dob,
        birth_year=row.birth_year,
        dob_ambiguous=row.dob_ambiguous,
        jurisdiction_name=row.jurisdiction_name,
        jurisdiction_id=state.jurisdiction_ids.get(name_key(row.jurisdiction_name)),
        registration_number=row.registration_number,
        status=RollVoterStatus.ACTIVE,
        list_date=state.list_date,
        imported_at=_now(),
        first_seen_import_id=state.batch_id,
        last_changed_import_id=state.batch_id,
        last_seen_import_id=state.batch_id,
    )


def _apply_row(existing: RollVoter, row: ParsedRow, state: _ImportState, *, reinstated: bool) -> None:
    """Apply an incoming row to the stored record it was matched to."""
    plan = plan_update(existing, row)
    for name, (_old, new) in plan.changes.items():
        setattr(existing, name, new)

    if plan.transferred:
        existing.previous_jurisdiction_name = plan.previous_jurisdiction_name
        existing.jurisdiction_id = state.jurisdiction_ids.get(name_key(existing.jurisdiction_name))
        state.transferred += 1
    elif existing.jurisdiction_id is None:
        existing.jurisdiction_id = state.jurisdiction_ids.get(name_key(existing.jurisdiction_name))

    if reinstated:
        existing.status = RollVoterStatus.ACTIVE
        existing.removed_at = None
        existing.removal_detected_by_import_id = None

    if plan.has_changes or reinstated:
        state.updated += 1
        existing.last_changed_import_id = state.batch_id

    existing.last_seen_import_id = state.batch_id
    if existing.list_date is None or existing.list_date < state.list_date:
        existing.list_date = state.list_date


def _fold_row(existing: RollVoter, row: ParsedRow, state: _ImportState) -> None:
    """Merge a row repeating an identity this import already holds."""
    plan = plan_update(existing, row)
    for name, (_old, new) in plan.changes.items():
        setattr(existing, name, new)
    state.skipped += 1
    state.record_errors([f"Row {row.row_number}: Duplicate of an earlier row for the same voter"])
    logger.debug(f"Folding duplicate roll row {row.row_number} onto an existing record")


async def _process_chunk(session: AsyncSession, records: RowChunk, state: _ImportState) -> None:
    """Parse, validate, match and stage one chunk of canonical rows.

    Same-jurisdiction matches for every row are settled before any row may
    fall back to a record in another jurisdiction, so a transfer never takes
    a record whose own row appears later in the chunk.
    """
    parsed = []
    for record in records:
        state.rows_seen += 1
        parsed.append(parse_row(record, row_number=state.rows_seen, day_first=state.config.day_first))
    state.total += len(parsed)

    valid_rows, failed_rows = validate_batch(parsed)
    state.skipped += len(failed_rows)
    for failed in failed_rows:
        state.record_errors(failed.errors)
        logger.debug(f"Skipping roll row {failed.row_number}: {'; '.join(failed.errors)}")
    state.ambiguous += sum(1 for row in valid_rows if row.dob_ambiguous)

    stored = await roll_store.load_by_last_names(session, (row.last_name for row in valid_rows), status=None)
    active = StoredIndex(r for r in stored if r.status == RollVoterStatus.ACTIVE)
    removed = StoredIndex(r for r in stored if r.status == RollVoterStatus.REMOVED)

    leftover: list[ParsedRow] = []
    for row in valid_rows:
        seen = state.seen.find(row)
        if seen is not None:
            _fold_row(seen, row, state)
            continue
        existing = active.find(row, state.claimed)
        if existing is None:
            leftover.append(row)
            continue
        state.claimed.add(existing.id)
        _apply_row(existing, row, state, reinstated=False)
        state.seen.add(existing)

    created: list[RollVoter] = []
    for row in leftover:
        seen = state.seen.find(row)
        if seen is not None:
            _fold_row(seen, row, state)
            continue
        existing = active.find(row, state.claimed, any_jurisdiction=True)
        reinstated = False
        if existing is None:
            existing = removed.find(row, state.claimed) or removed.find(row, state.claimed, any_jurisdiction=True)
            reinstated = existing is not None
        if existing is None:
            voter = _new_roll_voter(row, state)
            session.add(voter)
            created.append(voter)
            state.seen.add(voter)
            state.new += 1
            continue
        state.claimed.add(existing.id)
        _apply_row(existing, row, state, reinstated=reinstated)
        state.seen.add(existing)

    await session.flush()
    state.claimed.update(voter.id for voter in created)
    logger.info(
        f"Chunk processed: {len(parsed)} rows ({len(valid_rows)} valid, {len(failed_rows)} skipped) "
        f"| running total: {state.new} new, {state.updated} updated"
    )


async def _iterate_chunks(chunks: Iterable[RowChunk] | AsyncIterable[RowChunk]) -> AsyncIterator[RowChunk]:
    if isinstance(chunks, AsyncIterable):
        async for records in chunks:
            yield records
    else:
        for records in chunks:
            yield records


async def _mark_absent_removed(session: AsyncSession, batch_id: uuid.UUID) -> int:
    """Flip active records this import did not see to removed."""
    result = await session.execute(
        select(RollVoter.id).where(
            RollVoter.status == RollVoterStatus.ACTIVE,
            or_(RollVoter.last_seen_import_id.is_(None), RollVoter.last_seen_import_id != batch_id),
        )
    )
    absent_ids = list(result.scalars().all())

    now = _now()
    for i in range(0, len(absent_ids), _IN_CLAUSE_BATCH):
        await session.execute(
            update(RollVoter)
            .where(RollVoter.id.in_(absent_ids[i : i + _IN_CLAUSE_BATCH]))
            .values(
                status=RollVoterStatus.REMOVED,
                removed_at=now,
                removal_detected_by_import_id=batch_id,
            )
            .execution_options(synchronize_session="evaluate")
        )
    return len(absent_ids)


async def process_roll_rows(
    session: AsyncSession,
    batch: RollImport,
    chunks: Iterable[RowChunk] | AsyncIterable[RowChunk],
    *,
    config: ImportConfig | None = None,
) -> RollImport:
    """Import chunks of canonical roll rows into the roll.

    Each row is matched to the active record with the same natural identity
    (same jurisdiction first, then any jurisdiction); unmatched rows reinstate
    a removed record with that identity or create a new one.  A row repeating
    an identity already matched or created in the same jurisdiction folds onto
    that record and counts as skipped.  Full-list
    imports then mark every active record they did not see as removed.  After
    the commit, verified supporters affected by transfers or removals are
    re-flagged.

    Args:
        session: Database session.
        batch: The RollImport tracking this upload.
        chunks: Sync or async iterable of row chunks; each row maps canonical column names
            (first_name, last_name, dob, birth_year, jurisdiction_name,
            registration_number) to raw values.
        config: Import settings (defaults to ``ImportConfig()``).

    Returns:
        The completed RollImport with final counts.

    Raises:
        Exception: Any infrastructure failure; the roll is left untouched and
            the batch is marked failed before re-raising.
    """
    config = config or ImportConfig()
    batch_id = batch.id
    batch.status = ImportStatus.PROCESSING
    batch.started_at = _now()
    await session.commit()

    state: _ImportState | None = None
    try:
        import_start = time.monotonic()
        await _acquire_import_lock(session)
        state = _ImportState(
            batch_id=batch_id,
            list_date=batch.list_date,
            config=config,
            jurisdiction_ids=await load_name_map(session),
        )

        async for records in _iterate_chunks(chunks):
            if records:
                await _process_chunk(session, records, state)

        removed = 0
        if batch.import_type == ImportType.FULL_LIST:
            removed = await _mark_absent_removed(session, batch_id)
        else:
            logger.info("Changes-only import: skipping removal of absent records")

        batch.status = ImportStatus.COMPLETED
        batch.total_records = state.total
        batch.new_records = state.new
        batch.updated_records = state.updated
        batch.removed_records = removed
        batch.transferred_records = state.transferred
        batch.ambiguous_dob_count = state.ambiguous
        batch.skipped_records = state.skipped
        batch.error_log = state.errors or None
        batch.completed_at = _now()
        await session.commit()

        logger.info(
            f"Roll import {batch_id} completed in {time.monotonic() - import_start:.1f}s: "
            f"{state.total} total, {state.new} new, {state.updated} updated, {removed} removed, "
            f"{state.transferred} transferred, {state.ambiguous} ambiguous, {state.skipped} skipped"
        )

    except Exception as exc:
        logger.exception(f"Roll import {batch_id} failed")
        await session.rollback()
        errors = list(state.errors) if state is not None else []
        errors.append(f"Import failed: {exc}")
        batch.status = ImportStatus.FAILED
        batch.error_log = errors
        batch.completed_at = _now()
        await session.commit()
        await session.refresh(batch)
        raise

    batch.re_vetted_count = await vetting_service.reflag_after_import(session, batch)
    await session.commit()

    await audit_service.log_event(
        session,
        actor=batch.uploaded_by or "system",
        action="roll_import",
        entity_kind="roll_import",
        entity_id=str(batch_id),
        details={
            "file_name": batch.file_name,
            "list_date": batch.list_date.isoformat(),
            "new": batch.new_records,
            "updated": batch.updated_records,
            "removed": batch.removed_records,
        },
    )
    return batch


def _next_records(chunks: Iterator[pd.DataFrame]) -> RowChunk | None:
    chunk = next(chunks, None)
    return None if chunk is None else chunk.to_dict("records")


async def _read_file_chunks(file_path: Path, batch_size: int, sheet_name: str | None) -> AsyncIterator[RowChunk]:
    """Read file chunks on a worker thread so pandas parsing never blocks the event loop."""
    chunks = read_roll_chunks(file_path, batch_size, sheet_name)
    while True:
        records = await asyncio.to_thread(_next_records, chunks)
        if records is None:
            return
        yield records


async def process_roll_import(
    session: AsyncSession,
    batch: RollImport,
    file_path: Path,
    *,
    config: ImportConfig | None = None,
    sheet_name: str | None = None,
) -> RollImport:
    """Import a roll file (CSV or Excel).

    Args:
        session: Database session.
        batch: The RollImport tracking this upload.
        file_path: Path to the uploaded file.
        config: Import settings.
        sheet_name: Excel sheet to import (first sheet when omitted).

    Returns:
        The completed RollImport.
    """
    config = config or ImportConfig()
    chunks = _read_file_chunks(file_path, config.batch_size, sheet_name)
    return await process_roll_rows(session, batch, chunks, config=config)


def preview_rows(
    records: Iterable[Mapping[str, Any]],
    preview: RollPreview,
    *,
    config: ImportConfig | None = None,
    sample_size: int = 20,
) -> RollPreview:
    """Parse canonical rows for a preview without touching the database."""
    config = config or ImportConfig()
    for record in records:
        preview.total_rows += 1
        row = parse_row(record, row_number=preview.total_rows, day_first=config.day_first)
        valid, _failed = validate_batch([row])
        if valid:
            preview.valid_rows += 1
            preview.ambiguous_dob_count += int(row.dob_ambiguous)
        for message in row.errors:
            if len(preview.errors) >= config.error_log_limit:
                break
            preview.errors.append(message)
        if len(preview.sample) < sample_size:
            preview.sample.append(row.to_dict())
    return preview


def preview_roll_file(
    file_path: Path,
    *,
    config: ImportConfig | None = None,
    sample_size: int = 20,
    sheet_name: str | None = None,
    file_name: str | None = None,
) -> RollPreview:
    """Preview a roll file: column mapping, row sample, and ambiguity counts.

    Nothing is written.

    Args:
        file_path: Path to the file.
        config: Import settings (batch size, date order, error limit).
        sample_size: Number of parsed rows to include.
        sheet_name: Excel sheet to preview.
        file_name: Display name (defaults to the path's name).

    Returns:
        The preview.

    Raises:
        ValueError: If the file cannot be read or lacks required columns.
    """
    config = config or ImportConfig()
    headers = read_headers(file_path, sheet_name)
    preview = RollPreview(
        file_name=file_name or file_path.name,
        headers=headers,
        column_map=build_column_map(headers),
        sheets=list_sheets(file_path),
    )
    for chunk in read_roll_chunks(file_path, config.batch_size, sheet_name):
        preview_rows(chunk.to_dict("records"), preview, config=config, sample_size=sample_size)
    return preview


async def get_roll_import(session: AsyncSession, import_id: uuid.UUID) -> RollImport | None:
    """Get a roll import by ID."""
    result = await session.execute(select(RollImport).where(RollImport.id == import_id))
    return result.scalar_one_or_none()


async def list_roll_imports(
    session: AsyncSession,
    *,
    status: str | None = None,
    import_type: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[RollImport], int]:
    """List roll imports, newest first.

    Args:
        session: Database session.
        status: Filter by status.
        import_type: Filter by import type.
        page: Page number.
        page_size: Items per page.

    Returns:
        Tuple of (imports, total count).
    """
    query = select(RollImport)
    count_query = select(func.count(RollImport.id))

    if status:
        query = query.where(RollImport.status == status)
        count_query = count_query.where(RollImport.status == status)
    if import_type:
        query = query.where(RollImport.import_type == import_type)
        count_query = count_query.where(RollImport.import_type == import_type)

    total = (await session.execute(count_query)).scalar_one()
    offset = (page - 1) * page_size
    query = query.order_by(RollImport.created_at.desc()).offset(offset).limit(page_size)
    result = await session.execute(query)
    return list(result.scalars().all()), total


async def change_summary(
    session: AsyncSession,
    import_id: uuid.UUID,
    *,
    limit: int = 100,
) -> ImportChangeSummary | None:
    """Roll records added, updated and removed by one import.

    Id lists are capped at ``limit``; counts come from the import record.

    Args:
        session: Database session.
        import_id: The roll import ID.
        limit: Maximum ids returned per list.

    Returns:
        The summary, or None if the import does not exist.
    """
    batch = await get_roll_import(session, import_id)
    if batch is None:
        return None

    async def _ids(*clauses: Any) -> list[int]:
        result = await session.execute(select(RollVoter.id).where(*clauses).order_by(RollVoter.id).limit(limit))
        return list(result.scalars().all())

    return ImportChangeSummary(
        import_id=import_id,
        added=await _ids(RollVoter.first_seen_import_id == import_id),
        updated=await _ids(
            RollVoter.last_changed_import_id == import_id,
            or_(RollVoter.first_seen_import_id.is_(None), RollVoter.first_seen_import_id != import_id),
        ),
        removed=await _ids(RollVoter.removal_detected_by_import_id == import_id),
        added_count=batch.new_records,
        updated_count=batch.updated_records,
        removed_count=batch.removed_records,
        transferred_count=batch.transferred_records,
    )

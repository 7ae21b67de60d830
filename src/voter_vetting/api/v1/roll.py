"""Roll API endpoints.

POST /roll/imports (multipart upload, processed in the background),
POST /roll/imports/preview, GET /roll/imports, GET /roll/imports/{id},
GET /roll/imports/{id}/changes, GET /roll/voters, POST /roll/match,
GET /roll/stats.
"""

import asyncio
import tempfile
import uuid
from datetime import date
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.core.background import task_runner
from voter_vetting.core.config import Settings, get_settings
from voter_vetting.core.dependencies import get_async_session
from voter_vetting.lib.matcher import MatchQuery
from voter_vetting.lib.roll_importer.reader import EXCEL_SUFFIXES
from voter_vetting.models.roll_import import ImportType
from voter_vetting.schemas.common import PaginationMeta, PaginationParams
from voter_vetting.schemas.roll import (
    ImportChangeSummaryResponse,
    MatchCandidateResponse,
    MatchRequest,
    MatchResponse,
    PaginatedRollImportResponse,
    PaginatedRollVoterResponse,
    RollImportAccepted,
    RollImportResponse,
    RollPreviewResponse,
    RollStatsResponse,
    RollVoterResponse,
)
from voter_vetting.services import roll_import_service, roll_store
from voter_vetting.services.match_service import find_matches
from voter_vetting.services.roll_store import RollVoterFilter

roll_router = APIRouter(prefix="/roll", tags=["roll"])

ALLOWED_SUFFIXES = {".csv", ".txt", ".tsv"} | EXCEL_SUFFIXES
_NO_FILE_DETAIL = "No file provided"


async def _save_upload(file: UploadFile, max_size_mb: int) -> Path:
    """Write an uploaded roll file to a temp path, enforcing type and size."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_NO_FILE_DETAIL)
    suffix = Path(file.filename).suffix.lower()
    if suffix not in ALLOWED_SUFFIXES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file format: {suffix or 'none'}",
        )

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        content = await file.read()
        if len(content) > max_size_mb * 1024 * 1024:
            Path(tmp.name).unlink(missing_ok=True)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds maximum size of {max_size_mb} MB",
            )
        tmp.write(content)
        return Path(tmp.name)


@roll_router.post("/imports", response_model=RollImportAccepted, status_code=202)
async def upload_roll(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    file: Annotated[UploadFile, File()],
    list_date: Annotated[date, Form()],
    import_type: Annotated[str, Form()] = ImportType.FULL_LIST,
    sheet_name: Annotated[str | None, Form()] = None,
    uploaded_by: Annotated[str | None, Form()] = None,
) -> RollImportAccepted:
    """Upload a roll file (CSV or Excel) and import it in the background."""
    tmp_path = await _save_upload(file, settings.max_upload_size_mb)
    try:
        batch = await roll_import_service.create_roll_import(
            session,
            file_name=file.filename or tmp_path.name,
            list_date=list_date,
            import_type=import_type,
            uploaded_by=uploaded_by,
        )
    except ValueError:
        tmp_path.unlink(missing_ok=True)
        raise

    import_id = batch.id
    config = settings.import_config

    async def _run_import(_stop: asyncio.Event) -> dict:
        from voter_vetting.core.database import get_session_factory

        try:
            factory = get_session_factory()
            async with factory() as bg_session:
                bg_batch = await roll_import_service.get_roll_import(bg_session, import_id)
                if bg_batch is None:
                    return {"import_id": str(import_id), "status": "missing"}
                done = await roll_import_service.process_roll_import(
                    bg_session, bg_batch, tmp_path, config=config, sheet_name=sheet_name
                )
                return {"import_id": str(import_id), "status": str(done.status)}
        finally:
            tmp_path.unlink(missing_ok=True)

    job_id = task_runner.submit_task(_run_import, name="roll_import")
    return RollImportAccepted(import_id=import_id, job_id=job_id, status=str(batch.status))


@roll_router.post("/imports/preview", response_model=RollPreviewResponse)
async def preview_roll(
    settings: Annotated[Settings, Depends(get_settings)],
    file: Annotated[UploadFile, File()],
    sheet_name: Annotated[str | None, Form()] = None,
    sample_size: Annotated[int, Form(ge=1, le=200)] = 20,
) -> RollPreviewResponse:
    """Parse an uploaded roll file and return a sample; nothing is written."""
    tmp_path = await _save_upload(file, settings.max_upload_size_mb)
    try:
        preview = await asyncio.to_thread(
            roll_import_service.preview_roll_file,
            tmp_path,
            config=settings.import_config,
            sample_size=sample_size,
            sheet_name=sheet_name,
            file_name=file.filename,
        )
    finally:
        tmp_path.unlink(missing_ok=True)
    return RollPreviewResponse.model_validate(preview)


@roll_router.get("/imports", response_model=PaginatedRollImportResponse)
async def list_imports(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    import_status: str | None = None,
    import_type: str | None = None,
) -> PaginatedRollImportResponse:
    """List roll imports, newest first."""
    batches, total = await roll_import_service.list_roll_imports(
        session,
        status=import_status,
        import_type=import_type,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedRollImportResponse(
        items=[RollImportResponse.model_validate(b) for b in batches],
        pagination=PaginationMeta.build(total, pagination.page, pagination.page_size),
    )


@roll_router.get("/imports/{import_id}", response_model=RollImportResponse)
async def get_import(
    import_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> RollImportResponse:
    """Get roll import status and counts by ID."""
    batch = await roll_import_service.get_roll_import(session, import_id)
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Roll import not found")
    return RollImportResponse.model_validate(batch)


@roll_router.get("/imports/{import_id}/changes", response_model=ImportChangeSummaryResponse)
async def get_import_changes(
    import_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    limit: int = Query(100, ge=1, le=1000),
) -> ImportChangeSummaryResponse:
    """Roll records added, updated and removed by an import."""
    summary = await roll_import_service.change_summary(session, import_id, limit=limit)
    if summary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Roll import not found")
    return ImportChangeSummaryResponse.model_validate(summary)


@roll_router.get("/voters", response_model=PaginatedRollVoterResponse)
async def list_roll_voters(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    voter_status: str | None = Query("active", alias="status"),
    jurisdiction_name: str | None = None,
    jurisdiction_id: int | None = None,
    first_name: str | None = Query(None, description="First-name prefix"),
    last_name: str | None = Query(None, description="Last-name prefix"),
    list_date: date | None = None,
    dob_ambiguous: bool | None = None,
) -> PaginatedRollVoterResponse:
    """Browse roll records."""
    filters = RollVoterFilter(
        status=voter_status,
        jurisdiction_name=jurisdiction_name,
        jurisdiction_id=jurisdiction_id,
        first_name_prefix=first_name,
        last_name_prefix=last_name,
        list_date=list_date,
        dob_ambiguous=dob_ambiguous,
    )
    voters, total = await roll_store.list_roll_voters(
        session, filters, page=pagination.page, page_size=pagination.page_size
    )
    return PaginatedRollVoterResponse(
        items=[RollVoterResponse.model_validate(v) for v in voters],
        pagination=PaginationMeta.build(total, pagination.page, pagination.page_size),
    )


@roll_router.post("/match", response_model=MatchResponse)
async def match_person(
    request: MatchRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MatchResponse:
    """Look a person up on the active roll."""
    query = MatchQuery(
        first_name=request.first_name,
        last_name=request.last_name,
        dob=request.dob,
        birth_year=request.birth_year,
        jurisdiction_name=request.jurisdiction_name,
    )
    candidates = await find_matches(session, query, settings.matcher_config)
    return MatchResponse(candidates=[MatchCandidateResponse.model_validate(c) for c in candidates])


@roll_router.get("/stats", response_model=RollStatsResponse)
async def roll_stats(
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> RollStatsResponse:
    """Overview of the active roll and the latest import."""
    stats = await roll_store.get_roll_stats(session)
    return RollStatsResponse.model_validate(stats)

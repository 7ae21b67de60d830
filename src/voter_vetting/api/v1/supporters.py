"""Supporter API endpoints.

Create/edit return the vetting outcome and duplicate flag computed after the
save.  Bulk re-vetting and the full duplicate scan run as background jobs
whose progress is polled through /jobs/{id}.
"""

import asyncio
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from voter_vetting.core.background import task_runner
from voter_vetting.core.config import Settings, get_settings
from voter_vetting.core.dependencies import get_async_session
from voter_vetting.schemas.common import PaginationMeta, PaginationParams
from voter_vetting.schemas.jobs import JobAccepted
from voter_vetting.schemas.supporter import (
    DuplicateListResponse,
    DuplicateMatchResponse,
    PaginatedSupporterResponse,
    RevetRequest,
    SupporterCreateRequest,
    SupporterResponse,
    SupporterSaveResponse,
    SupporterUpdateRequest,
    VettingResponse,
)
from voter_vetting.services import audit_service, duplicate_service, supporter_service, vetting_service
from voter_vetting.services.supporter_service import SupporterSaveResult
from voter_vetting.services.vetting_service import BulkRevetResult, SupporterFilter, VettingResult

supporters_router = APIRouter(prefix="/supporters", tags=["supporters"])

_NOT_FOUND_DETAIL = "Supporter not found"


def _vetting_response(result: VettingResult | None) -> VettingResponse | None:
    if result is None:
        return None
    return VettingResponse(
        outcome=str(result.outcome),
        details=result.details,
        match_count=result.match_count,
        candidate_ids=[c.roll_voter.id for c in result.candidates],
    )


def _save_response(result: SupporterSaveResult) -> SupporterSaveResponse:
    return SupporterSaveResponse(
        supporter=SupporterResponse.model_validate(result.supporter),
        vetting=_vetting_response(result.vetting),
        potential_duplicate=result.potential_duplicate,
    )


def revet_summary(result: BulkRevetResult) -> dict:
    """JSON-friendly summary of a bulk re-vet run."""
    return {
        "total": result.total,
        "counts": dict(result.counts),
        "errors": result.errors,
        "stopped": result.stopped,
        "review_queue": [asdict(item) for item in result.review_queue],
    }


@supporters_router.post("", response_model=SupporterSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_supporter(
    request: SupporterCreateRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SupporterSaveResponse:
    """Create a supporter, vet it against the roll, and check for duplicates."""
    result = await supporter_service.create_supporter(
        session,
        first_name=request.first_name,
        last_name=request.last_name,
        dob=request.dob,
        email=request.email,
        contact_number=request.contact_number,
        jurisdiction_id=request.jurisdiction_id,
        phone_config=settings.phone_config,
        matcher_config=settings.matcher_config,
    )
    return _save_response(result)


@supporters_router.get("", response_model=PaginatedSupporterResponse)
async def list_supporters(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
    supporter_status: list[str] | None = Query(None, alias="status"),
    verification_status: list[str] | None = Query(None),
    jurisdiction_id: int | None = None,
    potential_duplicate: bool | None = None,
) -> PaginatedSupporterResponse:
    """List supporters with optional filters (active supporters by default)."""
    filters = SupporterFilter(
        statuses=supporter_status or ("active",),
        verification_statuses=verification_status,
        jurisdiction_id=jurisdiction_id,
    )
    supporters, total = await supporter_service.list_supporters(
        session,
        filters,
        potential_duplicate=potential_duplicate,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedSupporterResponse(
        items=[SupporterResponse.model_validate(s) for s in supporters],
        pagination=PaginationMeta.build(total, pagination.page, pagination.page_size),
    )


@supporters_router.post("/revet", response_model=JobAccepted, status_code=202)
async def revet_supporters(
    request: RevetRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> JobAccepted:
    """Re-vet the selected supporters in the background."""
    filters = SupporterFilter(
        statuses=request.statuses,
        verification_statuses=request.verification_statuses,
        jurisdiction_id=request.jurisdiction_id,
    )
    config = settings.matcher_config
    chunk_size = settings.revet_chunk_size

    async def _run_revet(stop: asyncio.Event) -> dict:
        from voter_vetting.core.database import get_session_factory

        factory = get_session_factory()
        async with factory() as bg_session:
            result = await vetting_service.bulk_revet(
                bg_session, filters, config=config, chunk_size=chunk_size, should_stop=stop.is_set
            )
            summary = revet_summary(result)
            await audit_service.log_event(
                bg_session,
                actor="api",
                action="bulk_revet",
                entity_kind="supporter",
                details={k: v for k, v in summary.items() if k != "review_queue"},
            )
        return summary

    job_id = task_runner.submit_task(_run_revet, name="bulk_revet")
    return JobAccepted(job_id=job_id, name="bulk_revet", status=str(task_runner.get_job(job_id).status))


@supporters_router.post("/duplicates/scan", response_model=JobAccepted, status_code=202)
async def scan_duplicates(
    settings: Annotated[Settings, Depends(get_settings)],
) -> JobAccepted:
    """Scan every supporter for duplicates in the background."""
    config = settings.duplicate_scan_config

    async def _run_scan(stop: asyncio.Event) -> dict:
        from voter_vetting.core.database import get_session_factory

        factory = get_session_factory()
        async with factory() as bg_session:
            result = await duplicate_service.scan_all(bg_session, config=config, should_stop=stop.is_set)
            await audit_service.log_event(
                bg_session,
                actor="api",
                action="duplicate_scan",
                entity_kind="supporter",
                details=asdict(result),
            )
        return asdict(result)

    job_id = task_runner.submit_task(_run_scan, name="duplicate_scan")
    return JobAccepted(job_id=job_id, name="duplicate_scan", status=str(task_runner.get_job(job_id).status))


@supporters_router.get("/{supporter_id}", response_model=SupporterResponse)
async def get_supporter(
    supporter_id: int,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SupporterResponse:
    """Get a supporter by ID."""
    supporter = await supporter_service.get_supporter(session, supporter_id)
    if supporter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND_DETAIL)
    return SupporterResponse.model_validate(supporter)


@supporters_router.patch("/{supporter_id}", response_model=SupporterSaveResponse)
async def update_supporter(
    supporter_id: int,
    request: SupporterUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SupporterSaveResponse:
    """Edit a supporter; identity edits re-vet, identity and contact edits re-check duplicates."""
    supporter = await supporter_service.get_supporter(session, supporter_id)
    if supporter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND_DETAIL)
    result = await supporter_service.update_supporter(
        session,
        supporter,
        request.model_dump(exclude_unset=True),
        phone_config=settings.phone_config,
        matcher_config=settings.matcher_config,
    )
    return _save_response(result)


@supporters_router.get("/{supporter_id}/duplicates", response_model=DuplicateListResponse)
async def list_duplicates(
    supporter_id: int,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> DuplicateListResponse:
    """Other supporters matching this one, with the reasons they match."""
    supporter = await supporter_service.get_supporter(session, supporter_id)
    if supporter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND_DETAIL)
    matches = await duplicate_service.find_duplicate_matches(session, supporter)
    return DuplicateListResponse(
        supporter_id=supporter_id,
        duplicates=[
            DuplicateMatchResponse(
                supporter=SupporterResponse.model_validate(m.supporter),
                reasons=sorted(m.reasons),
            )
            for m in matches
        ],
    )


@supporters_router.post("/{supporter_id}/duplicates/dismiss", response_model=SupporterResponse)
async def dismiss_duplicate(
    supporter_id: int,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SupporterResponse:
    """Mark a flagged supporter as not a duplicate."""
    supporter = await supporter_service.get_supporter(session, supporter_id)
    if supporter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND_DETAIL)
    supporter = await duplicate_service.resolve_duplicate(session, supporter, action="dismiss")
    await audit_service.log_event(
        session,
        actor="api",
        action="duplicate_dismissed",
        entity_kind="supporter",
        entity_id=str(supporter_id),
    )
    return SupporterResponse.model_validate(supporter)

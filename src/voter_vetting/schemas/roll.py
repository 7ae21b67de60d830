"""Roll import, roll record and match Pydantic v2 schemas."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from voter_vetting.schemas.common import PaginationMeta


class RollImportResponse(BaseModel):
    """Roll import status and counts."""

    id: UUID
    list_date: date
    file_name: str
    import_type: str
    status: str
    total_records: int = 0
    new_records: int = 0
    updated_records: int = 0
    removed_records: int = 0
    transferred_records: int = 0
    ambiguous_dob_count: int = 0
    skipped_records: int = 0
    re_vetted_count: int = 0
    error_log: list[str] | None = None
    uploaded_by: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaginatedRollImportResponse(BaseModel):
    """Paginated list of roll imports."""

    items: list[RollImportResponse]
    pagination: PaginationMeta


class RollImportAccepted(BaseModel):
    """Response for a queued import."""

    import_id: UUID
    job_id: str
    status: str


class ImportChangeSummaryResponse(BaseModel):
    """Roll record ids touched by one import."""

    import_id: UUID
    added: list[int] = Field(default_factory=list, description="Roll records created by the import")
    updated: list[int] = Field(default_factory=list, description="Roll records changed by the import")
    removed: list[int] = Field(default_factory=list, description="Roll records removed by the import")
    added_count: int
    updated_count: int
    removed_count: int
    transferred_count: int

    model_config = {"from_attributes": True}


class RollPreviewResponse(BaseModel):
    """Parsed sample of a roll file; nothing is written."""

    file_name: str
    headers: list[str]
    column_map: dict[str, str]
    sheets: list[str]
    total_rows: int
    valid_rows: int
    ambiguous_dob_count: int
    sample: list[dict[str, Any]]
    errors: list[str]

    model_config = {"from_attributes": True}


class RollVoterResponse(BaseModel):
    """A roll record."""

    id: int
    first_name: str
    last_name: str
    dob: date | None = None
    birth_year: int | None = None
    dob_ambiguous: bool
    jurisdiction_name: str
    jurisdiction_id: int | None = None
    previous_jurisdiction_name: str | None = None
    registration_number: str | None = None
    status: str
    list_date: date
    removed_at: datetime | None = None

    model_config = {"from_attributes": True}


class PaginatedRollVoterResponse(BaseModel):
    """Paginated list of roll records."""

    items: list[RollVoterResponse]
    pagination: PaginationMeta


class MatchRequest(BaseModel):
    """Identity to look up on the roll."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    dob: date | None = None
    birth_year: int | None = Field(default=None, ge=1900, le=2100)
    jurisdiction_name: str | None = Field(default=None, max_length=100)


class MatchCandidateResponse(BaseModel):
    """One roll candidate."""

    roll_voter: RollVoterResponse
    confidence: str
    match_type: str
    match_count: int
    tier: int

    model_config = {"from_attributes": True}


class MatchResponse(BaseModel):
    """Candidates of the winning strategy (empty when nothing matched)."""

    candidates: list[MatchCandidateResponse]


class JurisdictionCountResponse(BaseModel):
    name: str
    count: int

    model_config = {"from_attributes": True}


class RollStatsResponse(BaseModel):
    """Overview of the active roll."""

    total_active: int
    total_removed: int
    ambiguous_dob_count: int
    latest_list_date: date | None = None
    latest_import: RollImportResponse | None = None
    jurisdictions: list[JurisdictionCountResponse]

    model_config = {"from_attributes": True}

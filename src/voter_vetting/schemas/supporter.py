"""Supporter Pydantic v2 request/response schemas."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field

from voter_vetting.schemas.common import PaginationMeta


class SupporterCreateRequest(BaseModel):
    """New supporter record."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    dob: date | None = None
    email: EmailStr | None = None
    contact_number: str | None = Field(default=None, max_length=50)
    jurisdiction_id: int | None = None


class SupporterUpdateRequest(BaseModel):
    """Partial supporter edit; omitted fields are unchanged."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    dob: date | None = None
    email: EmailStr | None = None
    contact_number: str | None = Field(default=None, max_length=50)
    jurisdiction_id: int | None = None
    status: str | None = None


class SupporterResponse(BaseModel):
    """A supporter with its vetting and duplicate fields."""

    id: int
    first_name: str
    last_name: str
    dob: date | None = None
    email: str | None = None
    contact_number: str | None = None
    jurisdiction_id: int | None = None
    status: str
    registered_voter: bool | None = None
    verification_status: str
    verified_at: datetime | None = None
    referred_from_jurisdiction_id: int | None = None
    normalized_phone: str | None = None
    potential_duplicate: bool
    duplicate_of_id: int | None = None
    duplicate_checked_at: datetime | None = None
    duplicate_notes: str | None = None
    duplicate_dismissed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaginatedSupporterResponse(BaseModel):
    """Paginated list of supporters."""

    items: list[SupporterResponse]
    pagination: PaginationMeta


class VettingResponse(BaseModel):
    """Vetting outcome attached to a saved supporter."""

    outcome: str
    details: str
    match_count: int
    candidate_ids: list[int] = Field(default_factory=list)


class SupporterSaveResponse(BaseModel):
    """A created or edited supporter with the post-save pipeline results."""

    supporter: SupporterResponse
    vetting: VettingResponse | None = None
    potential_duplicate: bool


class RevetRequest(BaseModel):
    """Selection of supporters to re-vet."""

    statuses: list[str] | None = Field(default=["active"], description="Supporter statuses to include")
    verification_statuses: list[str] | None = Field(
        default=None, description="Verification statuses to include (e.g. unverified)"
    )
    jurisdiction_id: int | None = None


class DuplicateMatchResponse(BaseModel):
    """Another supporter matching the one requested."""

    supporter: SupporterResponse
    reasons: list[str]


class DuplicateListResponse(BaseModel):
    supporter_id: int
    duplicates: list[DuplicateMatchResponse]

"""Background job Pydantic v2 schemas."""

from typing import Any

from pydantic import BaseModel


class JobAccepted(BaseModel):
    """Response for a submitted background job."""

    job_id: str
    name: str
    status: str


class JobResponse(BaseModel):
    """Status of a background job and its result once finished."""

    job_id: str
    name: str
    status: str
    result: dict[str, Any] | None = None
    error: str | None = None

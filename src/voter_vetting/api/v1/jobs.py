"""Background job endpoints: GET /jobs/{id} (status) and POST /jobs/{id}/stop."""

from fastapi import APIRouter, HTTPException, status

from voter_vetting.core.background import JobRecord, task_runner
from voter_vetting.schemas.jobs import JobResponse

jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


def _job_response(job_id: str, record: JobRecord) -> JobResponse:
    result = record.result if isinstance(record.result, dict) else None
    return JobResponse(job_id=job_id, name=record.name, status=str(record.status), result=result, error=record.error)


@jobs_router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str) -> JobResponse:
    """Get the status and, once finished, the result of a background job."""
    try:
        record = task_runner.get_job(job_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found") from None
    return _job_response(job_id, record)


@jobs_router.post("/{job_id}/stop", response_model=JobResponse, status_code=202)
async def stop_job(job_id: str) -> JobResponse:
    """Ask a running job to stop at its next chunk boundary."""
    try:
        task_runner.request_stop(job_id)
        record = task_runner.get_job(job_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found") from None
    return _job_response(job_id, record)

"""Tests for the /api/v1/jobs endpoints."""

import asyncio
import uuid
from typing import Any

from httpx import AsyncClient

from voter_vetting.core.background import task_runner


class TestJobsApi:
    """Tests for job status polling and stopping."""

    async def test_unknown_job(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/jobs/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found"

    async def test_stop_unknown_job(self, client: AsyncClient) -> None:
        response = await client.post(f"/api/v1/jobs/{uuid.uuid4()}/stop")
        assert response.status_code == 404

    async def test_stop_running_job(self, client: AsyncClient, wait_for_job: Any) -> None:
        async def wait_until_stopped(stop: asyncio.Event) -> dict:
            await stop.wait()
            return {"processed": 0}

        job_id = task_runner.submit_task(wait_until_stopped, name="test_job")
        await asyncio.sleep(0)

        running = (await client.get(f"/api/v1/jobs/{job_id}")).json()
        assert running == {"job_id": job_id, "name": "test_job", "status": "running", "result": None, "error": None}

        response = await client.post(f"/api/v1/jobs/{job_id}/stop")
        assert response.status_code == 202

        job = await wait_for_job(job_id)
        assert job["status"] == "stopped"
        assert job["result"] == {"processed": 0}

    async def test_failed_job_reports_error(self, client: AsyncClient, wait_for_job: Any) -> None:
        async def broken(_stop: asyncio.Event) -> None:
            msg = "roll file vanished"
            raise RuntimeError(msg)

        job_id = task_runner.submit_task(broken, name="broken_job")

        job = await wait_for_job(job_id)
        assert job["status"] == "failed"
        assert job["error"] == "roll file vanished"

"""Tests for the /api/v1/roll endpoints."""

import threading
import uuid
from datetime import date
from typing import Any
from unittest.mock import patch

from httpx import AsyncClient

from voter_vetting.core.config import Settings
from voter_vetting.services import roll_import_service
from voter_vetting.models.roll_voter import RollVoterStatus

CSV = (
    "First Name,Last Name,DOB,Village,Voter Reg\n"
    "Juan,Cruz,1985-03-04,Hagatna,A-1\n"
    "Ana,Perez,1970,Dededo,\n"
    "Maria,,1990-07-21,Yigo,C-3\n"
)


async def _upload(client: AsyncClient, content: str = CSV, **data: str) -> Any:
    form = {"list_date": "2024-01-01", **data}
    return await client.post(
        "/api/v1/roll/imports", files={"file": ("roll.csv", content.encode(), "text/csv")}, data=form
    )


class TestUploadRoll:
    """Tests for POST /roll/imports."""

    async def test_import_runs_in_background(
        self, client: AsyncClient, jurisdictions: dict, wait_for_job: Any
    ) -> None:
        response = await _upload(client, uploaded_by="Clerk")

        assert response.status_code == 202
        accepted = response.json()
        assert accepted["status"] == "pending"

        job = await wait_for_job(accepted["job_id"])
        assert job["status"] == "completed"
        assert job["result"] == {"import_id": accepted["import_id"], "status": "completed"}

        detail = (await client.get(f"/api/v1/roll/imports/{accepted['import_id']}")).json()
        assert detail["status"] == "completed"
        assert detail["new_records"] == 2
        assert detail["skipped_records"] == 1
        assert detail["uploaded_by"] == "Clerk"
        assert len(detail["error_log"]) == 1
        assert "Missing required field: last_name" in detail["error_log"][0]

    async def test_unsupported_format(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/roll/imports",
            files={"file": ("roll.pdf", b"%PDF", "application/pdf")},
            data={"list_date": "2024-01-01"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Unsupported file format: .pdf"

    async def test_file_too_large(self, client: AsyncClient, settings: Settings) -> None:
        settings.max_upload_size_mb = 1
        response = await _upload(client, "a" * (1024 * 1024 + 1))
        assert response.status_code == 413

    async def test_unknown_import_type(self, client: AsyncClient) -> None:
        response = await _upload(client, import_type="weekly")
        assert response.status_code == 400
        assert "Unknown import_type" in response.json()["detail"]

    async def test_list_date_required(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/roll/imports", files={"file": ("roll.csv", CSV.encode(), "text/csv")}
        )
        assert response.status_code == 422


class TestPreviewRoll:
    """Tests for POST /roll/imports/preview."""

    async def test_preview(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/roll/imports/preview",
            files={"file": ("roll.csv", CSV.encode(), "text/csv")},
            data={"sample_size": "2"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["file_name"] == "roll.csv"
        assert body["column_map"]["Voter Reg"] == "registration_number"
        assert body["total_rows"] == 3
        assert body["valid_rows"] == 2
        assert body["ambiguous_dob_count"] == 1
        assert len(body["sample"]) == 2
        assert body["errors"] == ["Row 3: Missing required field: last_name"]

        imports = (await client.get("/api/v1/roll/imports")).json()
        assert imports["pagination"]["total"] == 0

    async def test_preview_missing_columns(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/roll/imports/preview",
            files={"file": ("roll.csv", b"first_name,last_name\nJuan,Cruz\n", "text/csv")},
        )
        assert response.status_code == 400
        assert "missing required columns" in response.json()["detail"]

    async def test_preview_parses_off_the_event_loop(self, client: AsyncClient) -> None:
        threads: list[int] = []
        original = roll_import_service.preview_roll_file

        def _recording(*args: Any, **kwargs: Any) -> Any:
            threads.append(threading.get_ident())
            return original(*args, **kwargs)

        with patch.object(roll_import_service, "preview_roll_file", side_effect=_recording):
            response = await client.post(
                "/api/v1/roll/imports/preview", files={"file": ("roll.csv", CSV.encode(), "text/csv")}
            )

        assert response.status_code == 200
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()


class TestImportQueries:
    """Tests for GET /roll/imports and its detail endpoints."""

    async def test_get_import_not_found(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/roll/imports/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Roll import not found"

    async def test_changes_not_found(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/roll/imports/{uuid.uuid4()}/changes")
        assert response.status_code == 404

    async def test_list_and_changes(self, client: AsyncClient, jurisdictions: dict, wait_for_job: Any) -> None:
        accepted = (await _upload(client)).json()
        await wait_for_job(accepted["job_id"])

        listing = (await client.get("/api/v1/roll/imports", params={"import_status": "completed"})).json()
        assert listing["pagination"]["total"] == 1
        assert listing["items"][0]["id"] == accepted["import_id"]

        changes = (await client.get(f"/api/v1/roll/imports/{accepted['import_id']}/changes")).json()
        assert changes["added_count"] == 2
        assert len(changes["added"]) == 2
        assert changes["removed"] == []


class TestRollVoters:
    """Tests for GET /roll/voters."""

    async def test_filters(self, client: AsyncClient, add_roll_voter: Any) -> None:
        await add_roll_voter("Juan", "Cruz", "Hagatna", dob=date(1985, 3, 4), dob_ambiguous=True)
        await add_roll_voter("Juanita", "Cruz", "Dededo")
        await add_roll_voter("Ana", "Perez", "Dededo", status=RollVoterStatus.REMOVED)

        body = (await client.get("/api/v1/roll/voters")).json()
        assert body["pagination"]["total"] == 2

        params = {"first_name": "juan", "jurisdiction_name": "dededo"}
        body = (await client.get("/api/v1/roll/voters", params=params)).json()
        assert [v["first_name"] for v in body["items"]] == ["Juanita"]

        body = (await client.get("/api/v1/roll/voters", params={"status": "removed"})).json()
        assert [v["last_name"] for v in body["items"]] == ["Perez"]

        body = (await client.get("/api/v1/roll/voters", params={"dob_ambiguous": "true"})).json()
        assert [v["first_name"] for v in body["items"]] == ["Juan"]


class TestMatchAndStats:
    """Tests for POST /roll/match and GET /roll/stats."""

    async def test_match(self, client: AsyncClient, add_roll_voter: Any) -> None:
        voter = await add_roll_voter("Juan", "Cruz", "Dededo", dob=date(1985, 3, 4))

        response = await client.post(
            "/api/v1/roll/match",
            json={"first_name": "Juan", "last_name": "Cruz", "dob": "1985-03-04", "jurisdiction_name": "Hagatna"},
        )

        assert response.status_code == 200
        (candidate,) = response.json()["candidates"]
        assert candidate["roll_voter"]["id"] == voter.id
        assert candidate["match_type"] == "different_jurisdiction"
        assert candidate["confidence"] == "high"
        assert candidate["tier"] == 2

    async def test_no_match(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/roll/match", json={"first_name": "Juan", "last_name": "Cruz"})
        assert response.json() == {"candidates": []}

    async def test_match_requires_names(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/roll/match", json={"first_name": "", "last_name": "Cruz"})
        assert response.status_code == 422

    async def test_stats(self, client: AsyncClient, add_roll_voter: Any) -> None:
        await add_roll_voter("Juan", "Cruz", "Hagatna")
        await add_roll_voter("Ana", "Perez", "Dededo")
        await add_roll_voter("Maria", "Santos", "Dededo", status=RollVoterStatus.REMOVED)

        body = (await client.get("/api/v1/roll/stats")).json()

        assert body["total_active"] == 2
        assert body["total_removed"] == 1
        assert body["latest_list_date"] == "2024-01-01"
        assert body["latest_import"] is None
        assert body["jurisdictions"] == [{"name": "Dededo", "count": 1}, {"name": "Hagatna", "count": 1}]

"""API test fixtures: the application wired to the in-memory test database."""

import asyncio
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voter_vetting.core.config import Settings, get_settings
from voter_vetting.core.dependencies import get_async_session
from voter_vetting.main import create_app


@pytest.fixture
def app(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Application with sessions and settings pointed at the test database.

    Background jobs open their own sessions through ``get_session_factory``,
    which is patched to the test factory for the duration of the test.
    """
    with patch("voter_vetting.main.get_settings", return_value=settings):
        test_app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    test_app.dependency_overrides[get_async_session] = _session
    test_app.dependency_overrides[get_settings] = lambda: settings
    return test_app


@pytest.fixture
async def client(app: FastAPI, session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient]:
    """Async test client; background jobs use the test session factory."""
    with patch("voter_vetting.core.database.get_session_factory", return_value=session_factory):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
            yield test_client


@pytest.fixture
def wait_for_job(client: AsyncClient) -> Any:
    """Poll GET /jobs/{id} until the job leaves pending/running."""

    async def _wait(job_id: str, timeout: float = 5.0) -> dict[str, Any]:
        body: dict[str, Any] = {}
        for _ in range(int(timeout / 0.05)):
            response = await client.get(f"/api/v1/jobs/{job_id}")
            body = response.json()
            if body["status"] not in ("pending", "running"):
                return body
            await asyncio.sleep(0.05)
        return body

    return _wait

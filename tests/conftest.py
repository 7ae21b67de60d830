"""Shared test fixtures for the async database, sessions, and seed data."""

from collections.abc import AsyncGenerator, Callable
from datetime import date
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from voter_vetting.core.config import Settings
from voter_vetting.core.database import register_sqlite_functions
from voter_vetting.models.base import Base
from voter_vetting.models.jurisdiction import Jurisdiction
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus
from voter_vetting.models.supporter import Supporter

JURISDICTIONS = ["Hagatna", "Dededo", "Yigo", "Tamuning"]


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(database_url="sqlite+aiosqlite:///:memory:", _env_file=None)  # type: ignore[call-arg]


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    register_sqlite_functions(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def jurisdictions(async_session: AsyncSession) -> dict[str, Jurisdiction]:
    """Seed the standard jurisdictions, keyed by name."""
    rows = {name: Jurisdiction(name=name) for name in JURISDICTIONS}
    async_session.add_all(rows.values())
    await async_session.commit()
    return rows


@pytest.fixture
def add_roll_voter(async_session: AsyncSession) -> Callable[..., Any]:
    """Factory inserting a committed roll record."""

    async def _add(
        first_name: str,
        last_name: str,
        jurisdiction_name: str = "Hagatna",
        *,
        dob: date | None = None,
        birth_year: int | None = None,
        status: str = RollVoterStatus.ACTIVE,
        list_date: date = date(2024, 1, 1),
        **extra: Any,
    ) -> RollVoter:
        voter = RollVoter(
            first_name=first_name,
            last_name=last_name,
            jurisdiction_name=jurisdiction_name,
            dob=dob,
            birth_year=birth_year if birth_year is not None else (dob.year if dob else None),
            status=status,
            list_date=list_date,
            **extra,
        )
        async_session.add(voter)
        await async_session.commit()
        return voter

    return _add


@pytest.fixture
def add_supporter(async_session: AsyncSession) -> Callable[..., Any]:
    """Factory inserting a committed supporter without running any checks."""

    async def _add(first_name: str, last_name: str, **fields: Any) -> Supporter:
        supporter = Supporter(first_name=first_name, last_name=last_name, **fields)
        async_session.add(supporter)
        await async_session.commit()
        return supporter

    return _add

"""CLI test fixtures: settings and a mocked database layer."""

from collections.abc import Generator
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from voter_vetting.core.config import Settings


@pytest.fixture
def cli_db(settings: Settings) -> Generator[SimpleNamespace]:
    """Patch settings, engine lifecycle and the session factory used by CLI commands.

    Commands open ``get_session_factory()()`` as an async context manager;
    the yielded session is an ``AsyncMock``.
    """
    session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session

    with (
        patch("voter_vetting.cli.app.get_settings", return_value=settings),
        patch("voter_vetting.cli.app.setup_logging"),
        patch("voter_vetting.core.config.get_settings", return_value=settings),
        patch("voter_vetting.core.database.init_engine") as init_engine,
        patch("voter_vetting.core.database.dispose_engine", new_callable=AsyncMock) as dispose_engine,
        patch("voter_vetting.core.database.get_session_factory", return_value=factory),
    ):
        yield SimpleNamespace(
            settings=settings, session=session, init_engine=init_engine, dispose_engine=dispose_engine
        )

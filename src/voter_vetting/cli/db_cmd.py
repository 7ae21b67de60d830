"""Database CLI commands: Alembic migrations and jurisdiction seeding."""

import asyncio

import typer
from loguru import logger

db_app = typer.Typer()


def _alembic_config(config_path: str):  # noqa: ANN202
    from alembic.config import Config

    return Config(config_path)


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config_path: str = typer.Option("alembic.ini", "--config", help="Path to alembic.ini"),
) -> None:
    """Run database migrations up to the target revision."""
    from alembic import command

    logger.info(f"Upgrading database to {revision}")
    command.upgrade(_alembic_config(config_path), revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config_path: str = typer.Option("alembic.ini", "--config", help="Path to alembic.ini"),
) -> None:
    """Rollback database migration to the target revision."""
    from alembic import command

    logger.info(f"Downgrading database to {revision}")
    command.downgrade(_alembic_config(config_path), revision)
    logger.info("Database downgrade complete")


@db_app.command("seed-jurisdictions")
def seed_jurisdictions(
    names: list[str] = typer.Argument(..., help="Jurisdiction names to create"),  # noqa: B008
) -> None:
    """Create jurisdictions that do not exist yet (matched case-insensitively)."""
    asyncio.run(_seed_jurisdictions(names))


async def _seed_jurisdictions(names: list[str]) -> None:
    from voter_vetting.core.config import get_settings
    from voter_vetting.core.database import dispose_engine, get_session_factory, init_engine
    from voter_vetting.services.jurisdiction_service import get_or_create_jurisdiction

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            for name in names:
                try:
                    jurisdiction = await get_or_create_jurisdiction(session, name)
                except ValueError as e:
                    typer.echo(f"Error: {e}", err=True)
                    raise typer.Exit(code=1) from e
                typer.echo(f"  {jurisdiction.id}: {jurisdiction.name}")
            await session.commit()
    finally:
        await dispose_engine()

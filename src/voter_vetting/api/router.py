"""Root API router with /api/v1 prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from voter_vetting.api.middleware import RequestLoggingMiddleware, setup_cors
from voter_vetting.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from voter_vetting.api.v1.jobs import jobs_router
    from voter_vetting.api.v1.roll import roll_router
    from voter_vetting.api.v1.supporters import supporters_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(roll_router)
    root_router.include_router(supporters_router)
    root_router.include_router(jobs_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(RequestLoggingMiddleware)

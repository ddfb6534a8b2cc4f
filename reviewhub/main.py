from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from reviewhub.access import (
    AccessDenied,
    AccessError,
    CycleError,
    NotFound,
    QuotaExceeded,
    StoreUnavailable,
    build_access_services,
)
from reviewhub.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from reviewhub.db.init_db import init_db
from reviewhub.db.repository import SqlAlchemyAccessRepository
from reviewhub.db.session import SessionLocal
from reviewhub.logging_config import configure_app_logging
from reviewhub.routers import access, groups, health, locations
from reviewhub.security.config import load_access_config
from reviewhub.settings import get_settings

logger = logging.getLogger(__name__)


def error_status(exc: AccessError) -> int:
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (CycleError, QuotaExceeded)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AccessDenied):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, StoreUnavailable):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    # OrganizationMismatch, HierarchyError, InvalidGrant
    return status.HTTP_422_UNPROCESSABLE_ENTITY


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    code = error_status(exc)
    if code >= 500:
        logger.warning("Access store failure path=%s method=%s", request.url.path, request.method)
    # AccessDenied details name the location and permission; keep them out of the response.
    detail = "Access denied" if isinstance(exc, AccessDenied) else str(exc)
    return JSONResponse(status_code=code, content={"detail": detail, "error": type(exc).__name__})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        config = load_access_config(settings.resolved_access_config_path())
        app.state.access_config = config
        logger.info("Loaded access config: %s", settings.resolved_access_config_path())

        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        app.state.access = build_access_services(
            SqlAlchemyAccessRepository(SessionLocal),
            known_permissions=config.permission_names,
            cache_ttl_seconds=settings.access_cache_ttl_seconds,
        )

        yield
        # Shutdown (nothing to clean up)

    app = FastAPI(title="reviewhub location access", lifespan=lifespan)
    app.add_exception_handler(AccessError, access_error_handler)

    app.include_router(health.router)
    app.include_router(locations.router)
    app.include_router(groups.router)
    app.include_router(access.router)

    return app


app = create_app()

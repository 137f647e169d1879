"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from leadhub.config.logging import setup_logging
from leadhub.config.settings import get_settings
from leadhub.exceptions import AccessError
from leadhub.storage.database import get_engine
from leadhub.web.health import check_health
from leadhub.web.middleware import RequestIDMiddleware
from leadhub.web.routes.activities import router as activities_router
from leadhub.web.routes.campaigns import router as campaigns_router
from leadhub.web.routes.deals import router as deals_router
from leadhub.web.routes.leads import router as leads_router
from leadhub.web.routes.memberships import router as memberships_router
from leadhub.web.routes.search import router as search_router
from leadhub.web.routes.tasks import router as tasks_router
from leadhub.web.routes.users import router as users_router

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="LeadHub",
        description="Multi-tenant CRM backend",
        version="0.1.0",
    )

    # Guards raise typed access errors; render them as {"detail": message}
    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
        logger.info(
            "access_denied",
            path=request.url.path,
            status_code=exc.status_code,
            error_type=type(exc).__name__,
            reason=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Middleware (order matters: last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Health check (public)
    @app.get("/api/health")
    async def health_check(engine: AsyncEngine = Depends(get_engine)) -> dict[str, object]:
        return await check_health(engine)

    # Every router guards itself through require_user / require_tenant
    for router in (
        users_router,
        memberships_router,
        leads_router,
        deals_router,
        tasks_router,
        campaigns_router,
        activities_router,
        search_router,
    ):
        app.include_router(router)

    logger.info("app_created")
    return app

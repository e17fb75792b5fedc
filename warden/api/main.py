"""
WARDEN API - Main Application Entry Point

FastAPI adapter for the multi-tenant authorization engine.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.warden_core.exceptions import WardenError
from warden.api.config import settings
from warden.api.db.session import init_db, close_db
from warden.api.dependencies import get_audit_logger, get_privilege_cache
from warden.api.errors import warden_error_handler


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply LOG_LEVEL to the root logger."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging()
    await init_db()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # Shutdown
    audit = app.dependency_overrides.get(get_audit_logger, get_audit_logger)()
    await audit.drain()
    if audit.failed_writes:
        logger.warning("%d audit write(s) went to the fallback log", audit.failed_writes)
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="WARDEN - Multi-tenant authorization engine API",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WardenError, warden_error_handler)

    # Include routers
    from warden.api.access.routes import router as audit_router
    from warden.api.access.routes import checks_router
    from warden.api.bootstrap.routes import router as tenants_router
    from warden.api.configuration.routes import router as configuration_router
    from warden.api.credentials.routes import router as credentials_router
    from warden.api.principals.routes import router as principals_router

    app.include_router(tenants_router, prefix="/api/v1/tenants", tags=["Tenants"])
    app.include_router(principals_router, prefix="/api/v1/principals", tags=["Principals"])
    app.include_router(credentials_router, prefix="/api/v1/credentials", tags=["Credentials"])
    app.include_router(configuration_router, prefix="/api/v1/configuration", tags=["Configuration"])
    app.include_router(audit_router, prefix="/api/v1/audit", tags=["Audit"])
    app.include_router(checks_router, prefix="/api/v1", tags=["Authorization"])

    # Health check endpoint
    @app.get("/api/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "service": settings.APP_NAME,
            "privilege_cache": get_privilege_cache().stats(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "warden.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )

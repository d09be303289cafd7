"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Each app owns its own local store, so tests don't share state

For local development:
    SNOWFLAKE_MOCK_MODE=true uvicorn src.main:app --reload

For production (Snowflake; workers share nothing but the database):
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker

The local store lives in one process's memory and rewrites its JSON file
whole, so mock mode must run a single worker. Several workers would each
keep their own copy and overwrite each other's writes.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import balances, health, substitutions, trainers
from .config.settings import Settings, get_settings
from .core.ledger.errors import InvalidInputError, NotFoundError, StorageError
from .infrastructure.local.store import LocalLedgerStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs startup configuration and warns about anything missing.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Substitution ledger API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.snowflake_mock_mode,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Substitution ledger API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Pass settings to build an app with a specific configuration (tests);
    otherwise they are loaded from the environment.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Tracks substitution debt between gym trainers.

        When a trainer covers for an absent colleague, the absent trainer
        owes them a day. Covering back works the debt off.

        ## Authentication

        All endpoints except health require an API key in the `X-API-Key` header.

        ## Workflow

        1. **Add trainers**: `POST /api/v1/trainers`
        2. **Record substitutions**: `POST /api/v1/substitutions`
        3. **Check who owes whom**: `GET /api/v1/balances`
        4. **Undo a mistake**: `DELETE /api/v1/substitutions/{id}`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    if settings.snowflake_mock_mode:
        path = Path(settings.local_store_path) if settings.local_store_path else None
        app.state.local_store = LocalLedgerStore(path)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        trainers.router,
        prefix="/api/v1/trainers",
        tags=["Trainers"],
    )

    app.include_router(
        substitutions.router,
        prefix="/api/v1/substitutions",
        tags=["Substitutions"],
    )

    app.include_router(
        balances.router,
        prefix="/api/v1/balances",
        tags=["Balances"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    # Ledger errors map onto HTTP status codes
    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "Ledger storage failure",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Ledger storage is unavailable. Please try again."},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )

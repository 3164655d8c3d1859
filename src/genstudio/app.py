"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from genstudio.api.routes import generation
from genstudio.core import timezone  # noqa: F401  # sets TZ=UTC
from genstudio.core.config import Settings, configure_logging
from genstudio.core.database import setup_db_session
from genstudio.services.exceptions import GenerationError
from genstudio.services.generation.replicate_client import ReplicateProvider
from genstudio.services.generation.service import GenerationService
from genstudio.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, initialize database session factory and the
      generation service
    - Shutdown: Dispose of the database engine
    """
    # Load settings
    settings = Settings()  # type: ignore[call-arg]

    # Configure logging
    configure_logging(settings)

    # Setup database session factory
    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    # Create UoW factory for dependency injection
    uow_factory = create_uow_factory(session_factory)

    provider = ReplicateProvider(api_token=settings.replicate_api_token)
    service = GenerationService.from_settings(settings, provider, uow_factory)

    # Store in app.state for access in routes
    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.generation_service = service

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        max_inflight_jobs=settings.max_inflight_jobs,
        poll_interval_seconds=settings.poll_interval_seconds,
        poll_max_attempts=settings.poll_max_attempts,
    )

    yield

    logger.info("application.shutdown", in_flight=service.gate.in_flight)

    # Close database connection pool
    engine = session_factory.kw.get("bind")
    if engine is not None:
        await engine.dispose()


async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Render a GenerationError as `{"success": false, "message": ...}`."""
    if exc.status_code >= 500:
        logger.error(
            "request.failed",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
    else:
        logger.info(
            "request.rejected",
            path=request.url.path,
            status_code=exc.status_code,
            error_type=type(exc).__name__,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc)},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are answered like any other bad input (400)."""
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    logger.info("request.invalid", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": message},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="genstudio Backend API",
        description="Image and video generation service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GenerationError, generation_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Register API routers
    app.include_router(generation.router)  # Generation router has prefix="/api" in definition

    # Health check endpoint with database validation
    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            # Test database connection with simple query
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            # Log error and return unhealthy status
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()

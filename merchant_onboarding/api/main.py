"""
Main FastAPI application.

Merchant onboarding API with:
- Per-request database environment resolution
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from merchant_onboarding import __version__
from merchant_onboarding.config import get_settings
from merchant_onboarding.core.environment import get_environment_resolver
from merchant_onboarding.core.errors import OnboardingError
from merchant_onboarding.database.connection import close_db, init_db
from merchant_onboarding.monitoring.logging import setup_logging
from merchant_onboarding.monitoring.metrics import metrics

from .routes import (
    agent_router,
    application_router,
    environment_router,
    monitoring_router,
    prospect_router,
    signature_router,
)

# Setup logging first
setup_logging()
logger = structlog.get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        env=settings.app_env,
        global_environment=get_environment_resolver().global_environment.value,
    )

    if settings.database_auto_create:
        try:
            await init_db()
        except Exception as e:
            logger.error("database_initialization_failed", error_type=type(e).__name__)
            raise

    yield

    logger.info("application_shutdown")
    try:
        await close_db()
        logger.info("database_connections_closed")
    except Exception as e:
        logger.error("database_shutdown_error", error=str(e))


app = FastAPI(
    title="Merchant Onboarding Service",
    description=(
        "Merchant onboarding workflow: acquirer applications, owner signatures "
        "and per-hostname database environment isolation."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def environment_and_request_id_middleware(request: Request, call_next: Any) -> Response:
    """
    Resolve the database environment once per request and tag the request.

    The resolved EnvironmentConfig is immutable, so a concurrent change of the
    global selector never affects a request already in flight.
    """
    request_id = str(uuid.uuid4())
    start_time = time.time()

    env_config = get_environment_resolver().resolve(request.url.hostname)
    request.state.environment = env_config
    request.state.request_id = request_id

    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        environment=env_config.environment.value,
    )

    logger.info(
        "request_started",
        client_host=request.client.host if request.client else None,
    )

    try:
        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Database-Environment"] = env_config.environment.value

        duration = time.time() - start_time
        metrics.record_request(env_config.environment.value, response.status_code, duration)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=duration,
        )

        return response

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            "request_failed",
            error_type=type(e).__name__,
            duration_seconds=duration,
        )
        raise

    finally:
        structlog.contextvars.clear_contextvars()


@app.exception_handler(OnboardingError)
async def onboarding_exception_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Map workflow errors to their fixed HTTP status."""
    log = logger.error if exc.http_status >= 500 else logger.info
    log(
        "request_error",
        error_code=exc.error_code,
        http_status=exc.http_status,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "An unexpected error occurred. Please try again later.",
            "code": "internal_error",
        },
    )


app.include_router(application_router)
app.include_router(prospect_router)
app.include_router(agent_router)
app.include_router(signature_router)
app.include_router(environment_router)
app.include_router(monitoring_router)


@app.get("/", tags=["root"])
async def root(request: Request) -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": __version__,
        "status": "operational",
        "environment": request.state.environment.environment.value,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "merchant_onboarding.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1,
        log_level=settings.log_level.lower(),
    )

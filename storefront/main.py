"""
FastAPI application entry point with health endpoints and API routing.

This module provides the main FastAPI application instance with CORS
configuration, rate limiting, request correlation, health check endpoints
and the exception handlers that render every error into the
``{success, error}`` response envelope.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api.v1 import api_router
from storefront.core.config import get_settings
from storefront.core.errors import StorefrontError
from storefront.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from storefront.database.connection import check_database_health, close_database_connections
from storefront.services.orders.scheduler import get_auto_processor

# Configure logging before application initialization
configure_logging()
logger = get_logger(__name__)

settings = get_settings()

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=not settings.is_test,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan context manager for startup and shutdown events.

    On shutdown pending automatic order processing is cancelled and the
    database pool is disposed.
    """
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        version=settings.app_version,
    )

    yield

    logger.info("Application shutting down")
    with log_performance(logger, "application_shutdown"):
        await get_auto_processor().shutdown()
        await close_database_connections()
        logger.info("Resources cleaned up successfully")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Storefront order lifecycle, discount and reward API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

# Configure rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind a request id for log correlation and echo it in X-Request-ID."""
    request_id = set_request_id(request.headers.get("X-Request-ID"))
    try:
        with log_performance(
            logger,
            "http_request",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """Render an error into the response envelope."""
    content = {"success": False, "error": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(
    request: Request, exc: StorefrontError
) -> JSONResponse:
    """Map service errors onto their HTTP status."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    The first error becomes the envelope message; the full list is
    returned under ``details``.
    """
    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        errors=errors,
    )

    message = "Request validation failed"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first['msg']}" if location else first["msg"]

    return error_response(
        status.HTTP_400_BAD_REQUEST,
        message,
        details=[
            {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
            for error in errors
        ],
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client_host=request.client.host if request.client else None,
    )
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Rate limit exceeded: {exc.detail}",
    )


@app.exception_handler(Exception)
async def global_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs error with full context and returns a generic message to avoid
    exposing internal details.
    """
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        request_id=get_request_id(),
    )


def _service_info() -> dict[str, str]:
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/health", tags=["Health"], summary="Health check")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", **_service_info()}


@app.get("/live", tags=["Health"], summary="Liveness check")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive", **_service_info()}


@app.get("/ready", tags=["Health"], summary="Readiness check")
async def readiness_check():
    """Ready once the database answers; 503 otherwise."""
    if not await check_database_health(max_retries=1):
        logger.warning("Readiness check failed", database="unhealthy")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "dependencies_ready": False,
                "database": "unhealthy",
                **_service_info(),
            },
        )
    return {
        "status": "ready",
        "dependencies_ready": True,
        "database": "healthy",
        **_service_info(),
    }


app.include_router(api_router, prefix=settings.api_prefix)

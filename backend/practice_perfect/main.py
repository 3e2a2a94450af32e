"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Lifespan wiring for the database handle and the artifact sweeper
- Exception handlers for auth service errors
- API router mounting
- Health check endpoint
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from practice_perfect.api.router import router as api_router
from practice_perfect.core.config import settings
from practice_perfect.core.database import Database
from practice_perfect.core.errors import AuthServiceError, RateLimitedError
from practice_perfect.core.rate_limiting import limiter, rate_limit_exceeded_handler
from practice_perfect.core.responses import ErrorDetail, ErrorResponse
from practice_perfect.services.artifact_sweeper import ArtifactSweeper

logger = structlog.get_logger()

_HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage
    - Cache-Control: Prevents caching of credentials on API responses
    - Content-Security-Policy: API returns no HTML
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        # The magic link redirect sets a stricter policy of its own
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )

        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump(),
        headers=headers,
    )


def auth_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Handle auth service errors.

    Server-side failures are logged with their cause; the client only ever
    sees the generic message.

    Args:
        request: The incoming request.
        exc: The AuthServiceError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    if exc.status_code >= 500:
        logger.error(
            "Auth service failure",
            code=exc.code,
            path=str(request.url.path),
            cause=repr(exc.__cause__) if exc.__cause__ else None,
        )

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}

    return _error_response(
        exc.status_code, exc.code, exc.message, exc.details, headers
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's validation errors to the INVALID_INPUT envelope.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with INVALID_INPUT code and field-level details.
    """
    return _error_response(
        400,
        "INVALID_INPUT",
        "Request validation failed",
        [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ],
    )


def http_error_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap routing errors (404, 405) in the standard envelope.

    Headers such as ``Allow`` on a 405 are preserved.
    """
    return _error_response(
        exc.status_code,
        _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        str(exc.detail),
        headers=exc.headers,
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    WHY: Never expose internal error details to clients. Log for debugging.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build process-wide resources on startup and release them on shutdown.

    Refuses to start when DATABASE_URL, AUTH_SECRET, or RESEND_API_KEY is
    missing, rather than failing on the first sign-in request.
    """
    settings.require_runtime_secrets()
    logging.basicConfig(level=settings.log_level.upper())

    database = Database(settings.async_database_url)
    app.state.database = database

    sweeper: ArtifactSweeper | None = None
    if settings.artifact_sweep_interval_seconds > 0:
        sweeper = ArtifactSweeper(
            database.session_factory,
            interval_seconds=settings.artifact_sweep_interval_seconds,
        )
        sweeper.start()
    logger.info("Application started", environment=settings.environment)

    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        await database.dispose()
        logger.info("Application stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    WHY FACTORY FUNCTION:
    - Enables testing with different configurations
    - Clear separation between app creation and startup
    - Standard FastAPI pattern

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="PracticePerfect Auth API",
        version="1.0.0",
        description="Passwordless sign-in for PracticePerfect",
        lifespan=lifespan,
    )

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # CORS must run first to handle preflight requests, so add it last.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(AuthServiceError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter

    app.include_router(api_router, prefix="/api")

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "healthy"} if service is running.
        """
        return {"status": "healthy"}

    return app


# Used by uvicorn: uvicorn practice_perfect.main:app
app = create_app()

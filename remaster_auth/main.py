"""FastAPI application entry point.

create_app() wires together:
- structlog configuration
- CORS and security headers
- Exception handlers mapping APIError subclasses to the error envelope
- /api/v1 (auth, users), the root-level /refresh_token route, /health
- A lifespan that releases the database pool and the code cache client
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from remaster_auth.api import refresh_token
from remaster_auth.api.v1.router import router as v1_router
from remaster_auth.core.config import settings
from remaster_auth.core.database import dispose_engine
from remaster_auth.core.errors import APIError
from remaster_auth.core.logging import configure_logging
from remaster_auth.core.responses import ErrorResponse
from remaster_auth.services.code_store import close_code_store

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response.

    Token-bearing paths (/api/* and the refresh endpoint) are additionally
    marked no-store: access tokens travel in JSON bodies and must not land
    in a shared cache.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        headers = response.headers

        headers["X-Frame-Options"] = "DENY"
        headers["X-Content-Type-Options"] = "nosniff"
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON only, nothing to load
        headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        path = request.url.path
        if path.startswith("/api/") or path == settings.refresh_cookie_path:
            headers["Cache-Control"] = "no-store, max-age=0"

        # HTTPS terminates at the reverse proxy in production
        if settings.environment == "production":
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError as the error envelope with its own status code."""
    if exc.status_code >= 500:
        logger.warning(
            "Request failed on a backing service",
            path=request.url.path,
            code=exc.code,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.of(exc.code, exc.message, exc.details),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request-body validation failures as 400 VALIDATION_ERROR.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with one detail entry per invalid location.
    """
    details = [
        {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse.of(
            "VALIDATION_ERROR", "Request validation failed", details
        ),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return a generic 500."""
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse.of("INTERNAL_ERROR", "An unexpected error occurred"),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Release the code cache client and the database pool on shutdown."""
    yield
    await close_code_store()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build the application.

    Returns:
        Configured FastAPI instance.
    """
    configure_logging(settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Remaster Auth API",
        version="1.0.0",
        description="Token lifecycle and account recovery service",
        lifespan=lifespan,
    )

    # Starlette runs the last-added middleware first; CORS must see
    # preflight requests before anything else.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(v1_router, prefix="/api/v1")
    # The qid cookie is scoped to /refresh_token, so the route cannot be versioned
    app.include_router(refresh_token.router, tags=["auth"])

    @app.get("/health")
    def health_check() -> dict:
        """Liveness check."""
        return {"status": "healthy"}

    return app


# uvicorn remaster_auth.main:app
app = create_app()


def run() -> None:
    """Serve the app on API_HOST:API_PORT (the remaster-auth console script)."""
    uvicorn.run(
        "remaster_auth.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()

"""Entrypoint for the FastAPI application."""

import os

from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import time
import uuid

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import clients, health, invoices, sessions, user_profile, week
from .core.config import get_settings
from .core.errors import (
    ConcurrentBillingConflict,
    DomainError,
    IllegalTransition,
    NoBillableSessions,
    NotFound,
    SequenceAllocationFailed,
    ValidationFailed,
)
from .core.logging import configure_logging

LOGGER = structlog.get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationFailed, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (IllegalTransition, status.HTTP_409_CONFLICT),
    (NoBillableSessions, status.HTTP_409_CONFLICT),
    (ConcurrentBillingConflict, status.HTTP_503_SERVICE_UNAVAILABLE),
    (SequenceAllocationFailed, status.HTTP_503_SERVICE_UNAVAILABLE),
)


SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'"
    ),
}


def status_for_error(exc: DomainError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for_error(exc)
    LOGGER.warning(
        "request_failed",
        path=request.url.path,
        status_code=status_code,
        error=exc.code,
        context=exc.context,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.message,
            "code": exc.code,
            "details": {key: _jsonable(value) for key, value in exc.context.items()},
        },
    )


def _jsonable(value: object) -> object:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


async def request_context_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Tag each request with an id and write one access log line for it."""

    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        LOGGER.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            user_agent=request.headers.get("user-agent", "unknown"),
        )
        return response
    finally:
        structlog.contextvars.clear_contextvars()


async def security_headers_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(
        title="VereinsKnete",
        version="0.1.0",
        docs_url=None if settings.is_production else "/docs",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(health.router)
    app.include_router(user_profile.router, prefix="/api")
    app.include_router(clients.router, prefix="/api")
    app.include_router(sessions.router, prefix="/api")
    app.include_router(invoices.router, prefix="/api")
    app.include_router(week.router, prefix="/api")

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""

    settings = get_settings()
    uvicorn.run(
        "vereinsknete.backend.src.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()

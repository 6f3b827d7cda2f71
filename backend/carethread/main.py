"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.middleware.base import BaseHTTPMiddleware

from carethread.config import Settings, settings
from carethread.database import build_engine, build_session_maker, create_schema
from carethread.errors import (
    CannotRemoveOwner,
    InvalidAttachment,
    InvalidMessage,
    InvalidTransition,
    MembershipLimitReached,
    MessageNotFound,
    PermissionDenied,
    StorageUnavailable,
    ThreadClosed,
    ThreadError,
    ThreadNotFound,
)
from carethread.repositories import InMemoryThreadStore, SqlThreadStore
from carethread.routes import audit, threads
from carethread.services.engine import ThreadEngine

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[ThreadError], int] = {
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    ThreadClosed: status.HTTP_409_CONFLICT,
    CannotRemoveOwner: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    MembershipLimitReached: status.HTTP_409_CONFLICT,
    InvalidAttachment: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidMessage: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ThreadNotFound: status.HTTP_404_NOT_FOUND,
    MessageNotFound: status.HTTP_404_NOT_FOUND,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def build_thread_engine(config: Settings) -> tuple[ThreadEngine, AsyncEngine | None]:
    """Build an engine for the configured store and load existing threads.

    Returns:
        The engine and the SQLAlchemy engine to dispose on shutdown, if any.
    """
    db_engine = None
    if config.store_backend == "sql":
        db_engine = build_engine(config.database_url, echo=config.debug)
        await create_schema(db_engine)
        store = SqlThreadStore(build_session_maker(db_engine))
    else:
        store = InMemoryThreadStore()

    engine = ThreadEngine(store, config=config)
    await engine.hydrate()
    return engine, db_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events for startup/shutdown."""
    logging.getLogger("carethread").setLevel(settings.log_level.upper())

    engine, db_engine = await build_thread_engine(settings)
    app.state.engine = engine
    logger.info("Thread engine ready (store=%s)", settings.store_backend)

    yield  # Application runs here

    if db_engine is not None:
        await db_engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Message payloads carry patient data
        response.headers["Cache-Control"] = "no-store"
        return response


app = FastAPI(
    title="CareThread",
    description="Patient-centric care-team messaging for hospital admissions",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(ThreadError)
async def thread_error_handler(request: Request, exc: ThreadError) -> JSONResponse:
    """Render engine failures as ``{"detail", "code"}`` with a mapped status."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


app.add_middleware(SecurityHeadersMiddleware)

# Parse comma-separated origins from config
_cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["X-User-Id", "X-User-Role", "Content-Type"],
)

app.include_router(threads.router, prefix="/api")
app.include_router(audit.router, prefix="/api")


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}

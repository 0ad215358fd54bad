"""
Userhub Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes collaborator construction, middleware registration, route
       mounting, and lifecycle management in one place.
How:   create_app() builds the Database, the BlobStore and the services,
       attaches them to `app.state`, and returns a configured FastAPI app.
Who:   uvicorn (`uvicorn userhub.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │  Middleware:  RequestID → Logging → GZip → CORS          │
    │                                                          │
    │  Routes:                                                 │
    │   POST /api/upload        POST /api/updateProfile        │
    │   POST /api/register      POST /api/login                │
    │   GET  /api/users/{id}    GET  /api/blobs/{key}          │
    │   GET  /health            /media  (static, local store)  │
    │                                                          │
    │  app.state: settings, database, blob_store,              │
    │             profile_service, account_service             │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, log the storage backend
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from userhub import __version__
from userhub.config import Settings, settings as default_settings
from userhub.database import Database
from userhub.dependencies import build_blob_store
from userhub.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    ImageDecodeError,
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
    TransformIOError,
    UserhubError,
)
from userhub.middleware.logging import RequestLoggingMiddleware
from userhub.middleware.request_id import RequestIDMiddleware, request_id_var
from userhub.routes import auth, health, media, upload, users
from userhub.services.account_service import AccountService
from userhub.services.blob_store_base import BlobStore
from userhub.services.image_service import ImageService
from userhub.services.local_blob_store import LocalBlobStore
from userhub.services.profile_service import ProfileService
from userhub.services.upload_service import UploadService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # These log every operation at DEBUG/INFO
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "PIL", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Userhub Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and the error log show what is wrong
        logger.error("Configuration error: %s", str(e))

    logger.info("Blob store backend: %s", app.state.blob_store.backend_name)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Userhub Backend shutting down...")
    await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and response bodies.

    Handler table:
        InvalidInputError (+ UnsupportedMediaType, PayloadTooLarge) → 400
        ImageDecodeError                                            → 400
        AuthenticationError                                         → 401
        AuthorizationError                                          → 403
        NotFoundError                                               → 404
        TransformIOError / StoreUnavailableError / DatabaseError    → 500
        UserhubError (base), Exception (fallback)                   → 500

    5xx responses never include internal context; it is logged instead.
    """

    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError):
        """Client input rejected; the message says what and why."""
        logger.warning("[%s] %s: %s", request_id_var.get(""), exc.error_code, exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(ImageDecodeError)
    async def handle_decode_error(request: Request, exc: ImageDecodeError):
        logger.warning("[%s] Image decode failed: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=400,
            content=_error_body("image_decode_error", exc.message),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication(request: Request, exc: AuthenticationError):
        body = _error_body("unauthenticated", exc.message)
        # Login clients check `success`
        body["success"] = False
        return JSONResponse(status_code=401, content=body)

    @app.exception_handler(AuthorizationError)
    async def handle_authorization(request: Request, exc: AuthorizationError):
        return JSONResponse(
            status_code=403,
            content=_error_body("forbidden", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(TransformIOError)
    @app.exception_handler(StoreUnavailableError)
    async def handle_storage_error(request: Request, exc: UserhubError):
        """Disk or bucket failure: generic message, details logged."""
        logger.error(
            "[%s] %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(UserhubError)
    async def handle_app_error(request: Request, exc: UserhubError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace goes to the log only."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be passed in; whatever is omitted is built from
    `settings` (default: the environment). Collaborators are built here and
    not in the lifespan so an app driven without lifespan events (httpx
    ASGITransport in tests) is fully wired.
    """
    settings = settings or default_settings

    database = database or Database(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=settings.log_level == "DEBUG",
    )
    blob_store = blob_store or build_blob_store(settings)

    upload_service = UploadService(blob_store, max_upload_size=settings.max_upload_size)
    image_service = ImageService(blob_store, max_dimension=settings.image_max_dimension)

    app = FastAPI(
        title="Userhub API",
        description=(
            "User accounts with registration, login, partial profile updates "
            "and profile-picture uploads (validated, resized to 800x800, stored on "
            "local disk or S3)."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.blob_store = blob_store
    app.state.profile_service = ProfileService(blob_store, upload_service, image_service)
    app.state.account_service = AccountService(bcrypt_rounds=settings.bcrypt_rounds)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "user_id", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(upload.router)
    app.include_router(users.router)
    app.include_router(auth.router)
    app.include_router(media.router)
    app.include_router(health.router)

    # Public objects of the local store are plain static files
    if isinstance(blob_store, LocalBlobStore):
        app.mount(
            blob_store.url_prefix,
            StaticFiles(directory=str(blob_store.media_root)),
            name="media",
        )

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `userhub.main:app` to be importable
app = create_app()

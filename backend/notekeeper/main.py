"""
NoteKeeper Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: `create_app()` returns a configured FastAPI instance.
Who:   uvicorn (`uvicorn notekeeper.main:app`) and the test suite, which
       passes its own Settings and an already-initialized storage provider.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Request ID → Access Log → GZip → CORS      │
    │                                                          │
    │  Routes:  /api/auth  /api/notes  /api/categories         │
    │           /api/admin  /health                            │
    │                                                          │
    │  app.state:  settings, storage, password_hasher,         │
    │              token_service                               │
    │                                                          │
    │  Exception handlers:  NoteKeeperError (by kind)          │
    │                       RequestValidationError → 400       │
    │                       Exception → 500                    │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Log insecure-default warnings (default admin password, random JWT secret)
    3. Build the storage provider if none was injected, then initialize it
       (tables/directories, default admin seed)
    Shutdown:
    1. Close the storage provider (dispose engine / no-op for files)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notekeeper import __version__
from notekeeper.config import Settings, settings as default_settings
from notekeeper.exceptions import ErrorKind, NoteKeeperError
from notekeeper.middleware.logging import RequestLoggingMiddleware
from notekeeper.middleware.request_id import RequestIDMiddleware, request_id_var
from notekeeper.routes import admin, auth, categories, health, notes
from notekeeper.security import PasswordHasher, TokenService
from notekeeper.storage import AdminSeed, StorageProvider, create_storage

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger once, at startup.

    Format: 2024-01-15T12:00:00 [INFO] notekeeper.storage.sql: message
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

def build_admin_seed(config: Settings, hasher: PasswordHasher) -> AdminSeed:
    return AdminSeed(
        username=config.bootstrap_admin_username,
        email=config.bootstrap_admin_email,
        password_hash=hasher.hash(config.bootstrap_admin_password),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("NoteKeeper Backend %s starting up...", __version__)

    for warning in config.security_warnings():
        logger.warning("Insecure configuration: %s", warning)

    if getattr(app.state, "storage", None) is None:
        seed = build_admin_seed(config, app.state.password_hasher)
        app.state.storage = create_storage(config, admin_seed=seed)
        await app.state.storage.initialize()

    logger.info("Storage backend: %s", app.state.storage.kind)
    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("NoteKeeper Backend shutting down...")
    await app.state.storage.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# ErrorKind → HTTP status. Every NoteKeeperError goes through one handler.
STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.LAST_ADMIN_PROTECTED: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE: 500,
    ErrorKind.STORAGE_UNAVAILABLE: 503,
}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render every error as {error, message, details?, request_id}.

    Server-side context (paths, SQL, driver errors) is logged, never
    returned; only validation errors echo their context as `details`.
    """

    @app.exception_handler(NoteKeeperError)
    async def handle_notekeeper_error(request: Request, exc: NoteKeeperError):
        rid = request_id_var.get("")
        status_code = STATUS_BY_KIND.get(exc.kind, 500)
        if status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, exc.kind.value, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, exc.kind.value, exc.message)

        content = {
            "error": exc.kind.value,
            "message": exc.message,
            "request_id": rid,
        }
        if exc.kind is ErrorKind.VALIDATION and exc.context:
            content["details"] = exc.context
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Malformed JSON or wrong types in the body/query: same shape as ValidationError."""
        rid = request_id_var.get("")
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.info("[%s] Request validation failed: %s", rid, errors)
        return JSONResponse(
            status_code=400,
            content={
                "error": ErrorKind.VALIDATION.value,
                "message": "Request body or parameters are invalid",
                "details": {"errors": errors},
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace goes to the log only."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    storage: Optional[StorageProvider] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        config:  settings to run with; defaults to the environment-loaded ones
        storage: an initialized provider to use instead of building one in
                 the lifespan (tests inject one per backend)
    """
    config = config or default_settings

    app = FastAPI(
        title="NoteKeeper API",
        description=(
            "Multi-user notes with categories, favorites, archive and an admin "
            "dashboard, on a relational or file-based storage backend."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.password_hasher = PasswordHasher(rounds=config.bcrypt_rounds)
    app.state.token_service = TokenService(
        secret=config.jwt_secret,
        algorithm=config.jwt_algorithm,
        expire_minutes=config.access_token_expire_minutes,
    )
    app.state.storage = storage

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(notes.router)
    app.include_router(categories.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


# uvicorn expects `notekeeper.main:app` to be importable.
app = create_app()

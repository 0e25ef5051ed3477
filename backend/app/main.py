"""
SavingsVault FastAPI application.
Main entry point for the backend API.
"""
import sqlite3
import subprocess
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api.router import router as api_router
from backend.app.config import get_settings, set_test_mode, is_test_mode
from backend.app.errors import AppError
from backend.app.logging_config import bind_request_context, configure_logging, get_logger

# Check for --test flag in command line arguments
# This must be done before any imports that might use settings
if "--test" in sys.argv:
    set_test_mode(True)
    print("[SavingsVault] Test mode enabled (--test flag detected)")
    sys.argv.remove("--test")  # Remove flag so uvicorn doesn't complain

# Get settings after test mode is set
settings = get_settings()

# Configure logging with settings
configure_logging(settings.LOG_LEVEL, enable_file_logging=settings.LOG_TO_FILE)
logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent


def _sqlite_path(db_url: str) -> Path | None:
    """Filesystem path of a sqlite:/// URL (relative paths resolve from the project root)."""
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if db_url.startswith(prefix):
            path = Path(db_url[len(prefix):])
            return path if path.is_absolute() else PROJECT_ROOT / path
    return None


def ensure_database_exists():
    """
    Ensure database exists and is migrated.
    If the database file doesn't exist, is empty or has no tables, run
    `alembic upgrade head`.

    Used by the server on startup (via lifespan) and by user_cli.py.
    """
    # Get settings at call time to respect test mode
    db_path = _sqlite_path(get_settings().DATABASE_URL)
    if db_path is None:
        logger.info("Non-SQLite database, skipping automatic migration check")
        return

    needs_migration = False

    if not db_path.exists():
        logger.warning("Database file not found, running migrations", db_path=str(db_path))
        needs_migration = True
    elif db_path.stat().st_size == 0:
        logger.warning("Database file is empty (0 bytes), running migrations", db_path=str(db_path))
        needs_migration = True
    else:
        # Check if database has tables using SQLite directly
        try:
            conn = sqlite3.connect(str(db_path))
            try:
                cursor = conn.execute(
                    "SELECT count(*) FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                    )
                table_count = cursor.fetchone()[0]
            finally:
                conn.close()

            if table_count == 0:
                logger.warning("Database has no tables, running migrations", db_path=str(db_path))
                needs_migration = True
            else:
                logger.info(f"Database initialized with {table_count} tables", db_path=str(db_path))
        except sqlite3.DatabaseError as e:
            logger.warning(f"Database appears corrupted, running migrations: {e}", db_path=str(db_path))
            needs_migration = True

    if not needs_migration:
        return

    db_path.parent.mkdir(parents=True, exist_ok=True)

    alembic_ini = PROJECT_ROOT / "backend" / "alembic.ini"
    logger.info("Running Alembic migrations...")
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "-c", str(alembic_ini), "upgrade", "head"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        )

    if result.returncode != 0:
        logger.error("Failed to create database", stderr=result.stderr)
        raise RuntimeError("Database migration failed")

    logger.info("Database created and migrated successfully")


async def seed_configured_admin() -> None:
    """Seed the admin from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_DEVICE_ID."""
    from backend.app.db.session import new_session
    from backend.app.services.seed_service import seed_admin_user

    current = get_settings()
    async with new_session() as session:
        await seed_admin_user(session, current.ADMIN_EMAIL, current.ADMIN_PASSWORD, current.ADMIN_DEVICE_ID)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting SavingsVault",
        version=settings.VERSION,
        database_url=settings.DATABASE_URL.split("///")[-1],
        test_mode=is_test_mode(),
        )

    ensure_database_exists()
    await seed_configured_admin()

    yield
    # Shutdown
    logger.info("Shutting down SavingsVault")


# =============================================================================
# Error handling
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Map errors to `{"error": message}` bodies."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        level = logger.error if exc.status_code >= 500 else logger.info
        level("Request failed", path=request.url.path, status_code=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
            ]
        logger.info("Request validation failed", path=request.url.path, errors=errors)
        return JSONResponse(status_code=400, content={"error": "Validation failed", "errors": errors})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
    )

register_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind a request id to every log line of the request and log its outcome."""
    structlog.contextvars.clear_contextvars()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    bind_request_context(request_id=request_id, method=request.method, path=request.url.path)

    start = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "Request handled",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
    return response


# Mount API router
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """
    Root endpoint.
    Provides basic API information.
    """
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": f"{settings.API_PREFIX}/docs",
        }


@app.get("/health")
async def health_check():
    """
    Health check endpoint, outside the API prefix.

    Returns:
        dict: Status message
    """
    logger.debug("Health check requested")
    return {"status": "ok"}

"""
Main FastAPI application for the Propel PRD backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db
from app.routers import generation, health, prds
from app.routers import settings as settings_router
from app.utils.helpers import utc_now

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


def _check_gemini() -> bool:
    """Report whether a fallback Gemini key is configured.  Never raises."""
    if settings.GEMINI_API_KEY:
        logger.info("✓ Gemini fallback key configured (model: %s)", settings.GEMINI_MODEL)
        return True
    logger.warning(
        "⚠ GEMINI_API_KEY not set; generation works only for users who save a key in Settings"
    )
    return False


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Propel PRD backend …")
    logger.info("=" * 60)

    # 1. Database (required; raises on failure)
    await _check_database()

    # 2. Gemini (optional; logs a warning but continues)
    _check_gemini()

    logger.info("=" * 60)
    logger.info("  Propel PRD backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Propel PRD backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Propel PRD API",
    description=(
        "**Propel PRD**: AI-assisted Product Requirements Document editor.\n\n"
        "Draft PRDs section by section, generate content with Gemini, "
        "publish a shareable page and collect comments, upvotes and approvals.\n\n"
        "Key endpoints:\n"
        "- `GET  /api/prds/{id}`: load a PRD\n"
        "- `PUT  /api/prds/{id}`: save a PRD\n"
        "- `POST /api/prds/import`: import an exported PRD\n"
        "- `GET  /api/prds/{id}/export?format=markdown`: download\n"
        "- `POST /api/generate/section`: generate one section\n"
        "- `PUT  /api/settings`: model, API key and webhook URL\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling from the frontend
    if request.url.path not in ("/api/health/", "/api/health", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": utc_now().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,          prefix="/api/health",   tags=["Health"])
app.include_router(prds.router,            prefix="/api/prds",     tags=["PRDs"])
app.include_router(settings_router.router, prefix="/api/settings", tags=["Settings"])
app.include_router(generation.router,      prefix="/api/generate", tags=["Generation"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: basic service info."""
    return {
        "name": "Propel PRD API",
        "version": "0.1.0",
        "description": "PRD Editor Backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "prds": "/api/prds",
            "settings": "/api/settings",
            "generate": "/api/generate",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )

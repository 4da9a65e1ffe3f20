"""Metrics Sync - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import engine
from models import Base
from routers import instagram_router, sync_router, youtube_router
from services.channel_sync import close_orchestrator
from services.errors import QuotaExceeded, SyncError
from services.scheduler import start_scheduler, stop_scheduler
from middleware.rate_limit import limiter, rate_limit_exceeded_handler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - create tables on startup, cleanup on shutdown."""
    # Startup: create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not settings.service_role_key:
        print("⚠ SERVICE_ROLE_KEY not set - cron endpoints will reject every caller")
    if not settings.google_client_id or not settings.google_client_secret:
        print("⚠ Google OAuth client not configured - YouTube tokens cannot be refreshed")

    # Start background scheduler for periodic syncs
    start_scheduler()

    yield

    # Shutdown: stop scheduler and release upstream connections
    stop_scheduler()
    await close_orchestrator()


app = FastAPI(
    title="Metrics Sync API",
    description="Analytics ingestion and synchronization for YouTube and Instagram accounts",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every error body is {"error": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters are client errors, reported as 400."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "; ".join(problems) or "Invalid request"})


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    status_code = 429 if isinstance(exc, QuotaExceeded) else 500
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(instagram_router)
app.include_router(sync_router)
app.include_router(youtube_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "metrics-sync"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Metrics Sync API",
        "version": "0.1.0",
        "docs": "/docs",
    }

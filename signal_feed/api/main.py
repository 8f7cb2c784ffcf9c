"""
FastAPI application entry point.

Usage:
    uvicorn signal_feed.api.main:app --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signal_feed import __version__
from signal_feed.api.routes import data, health, stream, webhook
from signal_feed.config.settings import get_settings
from signal_feed.core.exceptions import SignalFeedError
from signal_feed.core.notifier import build_notifier
from signal_feed.models.base import init_db
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the change notifier and optionally create tables."""
    settings = get_settings()

    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")

    notifier = build_notifier(settings)
    await notifier.start()
    app.state.notifier = notifier
    logger.info(f"Signal feed started (env={settings.ENV}, notifier={settings.NOTIFIER_BACKEND})")

    yield

    await notifier.stop()
    logger.info("Signal feed stopped")


app = FastAPI(
    title="Signal Feed API",
    description="Trading signal webhook ingestion and live feed",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(data.router, prefix="/api", tags=["Feed"])
app.include_router(webhook.router, prefix="/api", tags=["Webhook"])
app.include_router(stream.router, tags=["Stream"])


@app.exception_handler(SignalFeedError)
async def signal_feed_error_handler(request: Request, exc: SignalFeedError):
    """Every known failure leaves as the ``{success, message}`` envelope."""
    if exc.status_code >= 500:
        logger.error(f"Request to {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed query parameters use the same envelope as payload errors."""
    fields = ", ".join(str(error["loc"][-1]) for error in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"Invalid parameters: {fields}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path, error=repr(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


@app.get("/")
def root():
    """Service information."""
    return {
        "service": "signal-feed",
        "version": __version__,
        "endpoints": {
            "data": "/api/data?page=0&limit=10",
            "webhook": "/api/webhook",
            "websocket": "/ws",
            "events": "/api/stream",
            "health": "/health",
            "metrics": "/metrics",
        },
    }

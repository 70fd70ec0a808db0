"""Sealed-bid OTC matcher — FastAPI Application Entry Point."""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shutter_otc.config import settings
from shutter_otc.database import engine, Base
from shutter_otc.errors import OTCError
from shutter_otc.middleware.rate_limit import limiter
from shutter_otc.routers import trades
import shutter_otc.models  # noqa: F401  (registers tables on Base)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create all tables on startup
Base.metadata.create_all(bind=engine)

_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Shutter OTC",
    description="Sealed-bid OTC trade matching on time-lock encryption.",
    version="1.0.0",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OTCError)
async def otc_error_handler(request: Request, exc: OTCError):
    """Render core failures as {success, message, retryable}."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    else:
        logger.info("%s %s: %s", request.method, request.url.path, exc.public_message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.public_message, "retryable": exc.retryable},
    )


# Routers
app.include_router(trades.router)


@app.get("/api")
def root():
    return {
        "name": "Shutter OTC API",
        "version": "1.0.0",
        "docs": "/docs",
        "oracle": settings.SHUTTER_API_URL,
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# Browser client; mounted last so API routes take precedence
if Path(settings.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")

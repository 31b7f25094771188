"""GrazeTrack Backend: FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backend import config
from backend.database import init_db
from backend.errors import register_error_handlers
from backend.logging_config import configure_logging
from backend.middleware.rate_limit import RateLimitMiddleware
from backend.routes import animals, herds, land, me, medication_purchases, medications, ranches, zones

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging()
    init_db()
    os.makedirs(config.IMAGES_ROOT, exist_ok=True)
    logger.info("GrazeTrack API ready (images at %s)", config.IMAGES_ROOT)
    yield


app = FastAPI(
    title="GrazeTrack API",
    description="Ranch management backend: herds, animals, land and medications",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
    upload_requests_per_minute=config.UPLOAD_RATE_LIMIT_PER_MINUTE,
)

# Outermost, so 429 responses also carry CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CORS_ORIGIN],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Ranch-Id"],
)

# Uploaded ranch, animal and medication images
app.mount("/images", StaticFiles(directory=config.IMAGES_ROOT, check_dir=False), name="images")

# Register route modules
app.include_router(me.router, prefix="/api", tags=["Me"])
app.include_router(ranches.router, prefix="/api", tags=["Ranches"])
app.include_router(herds.router, prefix="/api", tags=["Herds"])
app.include_router(zones.router, prefix="/api", tags=["Zones"])
app.include_router(land.router, prefix="/api", tags=["Land"])
app.include_router(animals.router, prefix="/api", tags=["Animals"])
app.include_router(medications.router, prefix="/api", tags=["Medications"])
app.include_router(medication_purchases.router, prefix="/api", tags=["Medications"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "grazetrack-backend"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host=config.API_HOST, port=config.API_PORT)

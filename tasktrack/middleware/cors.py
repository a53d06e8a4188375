"""CORS configuration driven by settings."""
from fastapi.middleware.cors import CORSMiddleware
import logging

from tasktrack.config import Settings

logger = logging.getLogger(__name__)

PRODUCTION_ORIGIN_REGEX = r"https://.*\.vercel\.app"


def add_cors_middleware(app, settings: Settings):
    """Add CORS middleware to the FastAPI application."""
    # In production, use allow_origin_regex for wildcard support (preview deployments)
    if settings.environment == "production":
        logger.info("Using production CORS with origin regex %s", PRODUCTION_ORIGIN_REGEX)
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=PRODUCTION_ORIGIN_REGEX,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info("Using development CORS with origins: %s", settings.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

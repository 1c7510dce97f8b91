"""FastAPI application for matchfacts."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from matchfacts.config import get_settings
from matchfacts.pipeline import Pipeline
from matchfacts.routes.api import router as api_router
from matchfacts.routes.core import router as core_router
from matchfacts.security import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting matchfacts...")
    app.state.pipeline = Pipeline(settings)
    yield
    logger.info("Shutting down...")
    await app.state.pipeline.close()


app = FastAPI(
    title="matchfacts",
    description="Match-event and player-stat extraction for FotMob matches",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Include routers
app.include_router(core_router)
app.include_router(api_router)

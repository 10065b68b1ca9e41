"""
FastAPI REST API server for chargeline.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from chargeline import __version__
from chargeline.api.routes import router
from chargeline.config import API_HOST, API_PORT, CORS_ORIGINS, LOG_DIR, LOG_LEVEL
from chargeline.database import close_db, init_db
from chargeline.utils import utc_now_iso

# Configure logging
logger.add(
    LOG_DIR / "chargeline.log",
    rotation="1 day",
    retention="7 days",
    level=LOG_LEVEL,
    format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup and clean up on shutdown."""
    logger.info("Starting chargeline API server...")
    await init_db()
    logger.info("API server startup complete")

    yield

    logger.info("Shutting down chargeline API server...")
    await close_db()
    logger.info("API server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Chargeline API",
    description="Charging station availability, bookings and billing",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Chargeline API is running", "version": __version__, "docs": "/docs"}


@app.get("/health")
async def health_check():
    """Health check for monitoring."""
    return {"status": "healthy", "timestamp": utc_now_iso()}


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting chargeline API server with uvicorn...")
    uvicorn.run(
        "chargeline.api_server:app",
        host=API_HOST,
        port=API_PORT,
        reload=True,
        log_level="info",
    )

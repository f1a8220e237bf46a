"""
NFL Playoff Odds Simulator - FastAPI Application

Main entry point for the web API.
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.routes import simulations_router
from .tasks import task_store


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger("playoff_odds")

TASK_RETENTION_HOURS = int(os.getenv("TASK_RETENTION_HOURS", "24"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Playoff odds API starting")
    yield
    removed = task_store.cleanup_old_tasks(TASK_RETENTION_HOURS)
    logger.info("Playoff odds API stopping (%d stale tasks dropped)", removed)


# Create FastAPI app
app = FastAPI(
    title="NFL Playoff Odds Simulator",
    description="Monte Carlo simulation of the remaining NFL season with league tiebreakers.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# CORS configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(simulations_router, prefix="/api")


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "NFL Playoff Odds Simulator API",
        "version": __version__,
        "docs": "/api/docs",
        "health": "/api/health"
    }


def run():
    """Serve the API with uvicorn (``playoff-odds-api`` console script)."""
    import uvicorn

    uvicorn.run(
        "playoff_odds.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )


if __name__ == "__main__":
    run()

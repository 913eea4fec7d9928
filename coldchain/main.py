"""Cold-chain alert escalation FastAPI application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coldchain.config import settings
from coldchain.database import close_database, create_all_tables, is_sqlite
from coldchain.logging_config import get_logger, setup_logging
from coldchain.middleware import CorrelationIdMiddleware
from coldchain.routers import escalation, health
from coldchain.services.scheduler import start_scheduler, stop_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    # PostgreSQL is migrated with `alembic upgrade head` before uvicorn starts
    if is_sqlite(settings.database_url):
        await create_all_tables()
        logger.info("SQLite schema ensured")

    logger.info("Cold-chain escalation API started", timezone=settings.timezone)

    start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down cold-chain escalation API...")
    stop_scheduler()
    await close_database()
    logger.info("Cold-chain escalation API shutdown complete")


app = FastAPI(
    title="Cold-Chain Escalation API",
    description="Alert escalation engine for cold-chain monitoring",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(escalation.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "Cold-Chain Escalation API",
        "version": "0.1.0",
        "docs": "/docs",
    }

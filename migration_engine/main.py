"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers all API routers.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from migration_engine import __version__
from migration_engine.api.dependencies import shutdown_worker_pool
from migration_engine.api.routers import connectors, migrations, tasks, templates
from migration_engine.core.config import settings
from migration_engine.core.logging_config import configure_logging
from migration_engine.utils.date import utcnow

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the migration tables on startup; stop the worker pool on shutdown."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        shutdown_worker_pool()
        return

    from migration_engine.db.models import create_all_tables
    from migration_engine.db.session import get_engine

    try:
        create_all_tables(get_engine())
        logger.info("Migration tables ready")
    except Exception:
        logger.exception("Failed to initialize database tables; the service cannot start")
        raise

    yield

    shutdown_worker_pool()


app = FastAPI(
    title="Migration Engine API",
    version=__version__,
    description="Imports case data exported from other compliance systems",
    lifespan=lifespan,
)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
allowed_origins = [origin.strip() for origin in allowed_origins]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(migrations.router)
app.include_router(templates.router)
app.include_router(connectors.router)
app.include_router(tasks.router)


@app.get("/")
async def root():
    return {"message": "Migration Engine API", "version": __version__}


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "service": "migration-engine",
    }

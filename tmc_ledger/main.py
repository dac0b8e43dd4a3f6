"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — logging, table creation, cashbox and cost bootstrap
  2. Middleware — request logging and CORS
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn tmc_ledger.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession

import tmc_ledger.models  # noqa: F401  (registers every table on Base.metadata)
from tmc_ledger.config import settings
from tmc_ledger.database import Base, engine, run_in_transaction
from tmc_ledger.exceptions import register_exception_handlers
from tmc_ledger.logging_config import configure_logging
from tmc_ledger.middleware import RequestLogMiddleware
from tmc_ledger.routers import admin, auth, credits, tmc
from tmc_ledger.services import cashbox_service, function_cost_service

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def bootstrap(db: AsyncSession) -> None:
    """Create the cashbox account and seed default feature prices."""
    await cashbox_service.ensure_cashbox(db)
    added = await function_cost_service.seed_default_costs(db)
    if added:
        logger.info("seeded %d default function costs", added)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all tables if they don't exist (production deployments should
      manage the schema with migrations), then bootstraps the platform data.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    configure_logging()
    _ensure_sqlite_directory(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await run_in_transaction(bootstrap)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Credit ledger for the telemedicine portal: balances, transfers, "
                "commissions, the platform cashbox and credit purchases",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(credits.router, prefix="/credits", tags=["Credits"])
app.include_router(tmc.router, prefix="/tmc", tags=["Ledger"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok", "version": settings.APP_VERSION}

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    sync_state: str
    sync_running: bool
    cache_backend_available: bool
    cache_hit_ratio: float


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - REDIS_URL is required whenever CACHE_BACKEND is redis (the default).
    - EXTRACT_PARTY_SHAPE_ORDER may only name known party shapes.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not (database_url or cloud_database_url or local_database_url):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    # --- Cache backend --------------------------------------------------
    cache_backend = os.getenv("CACHE_BACKEND", "redis").strip().lower()
    if cache_backend not in {"redis", "memory"}:
        errors.append(
            f"CACHE_BACKEND='{cache_backend}' is not valid. Allowed values: ['memory', 'redis']."
        )
    elif cache_backend == "redis" and not os.getenv("REDIS_URL", "").strip():
        errors.append(
            "REDIS_URL is not set but CACHE_BACKEND is redis. "
            "Set REDIS_URL or use CACHE_BACKEND=memory for a single process."
        )

    # --- Party shape order ----------------------------------------------
    shape_order = os.getenv("EXTRACT_PARTY_SHAPE_ORDER", "").strip()
    if shape_order:
        from app.extraction.party_shapes import validate_shape_order

        try:
            validate_shape_order([item.strip().lower() for item in shape_order.split(",") if item.strip()])
        except ValueError as exc:
            errors.append(f"EXTRACT_PARTY_SHAPE_ORDER is invalid: {exc}")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup. Table names
    are canonical; nothing is probed case-insensitively.

    Does NOT create or migrate tables.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Apply the schema and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Apply the schema and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the scheduler on boot; shut it down on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    from app.scheduler.jobs import build_scheduler
    from app.services.sync_runner import get_sync_runner

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        get_sync_runner().request_cancel()
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Contract Registry API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import cache_admin_router, contracts_router, sync_router
    from app.cache.query_cache import get_query_cache
    from app.services.sync_runner import get_sync_runner

    application.include_router(sync_router)
    application.include_router(cache_admin_router)
    application.include_router(contracts_router)

    @application.get("/health")
    def healthcheck() -> HealthResponse:
        runner = get_sync_runner()
        cache = get_query_cache()
        metrics = cache.health_metrics()
        return HealthResponse(
            status="ok",
            sync_state=runner.state,
            sync_running=runner.is_running,
            cache_backend_available=metrics.backend_available,
            cache_hit_ratio=metrics.hit_ratio,
        )

    return application


app = create_app()

"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from booking_core.api.middleware import (
    RequestLoggingMiddleware,
    TenantResolutionMiddleware,
)
from booking_core.api.routes.appointments import router as appointments_router
from booking_core.api.routes.businesses import router as businesses_router
from booking_core.cache import MemoryCacheStore, create_cache_store
from booking_core.config import settings
from booking_core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from booking_core.logging_config import configure_logging
from booking_core.pipeline.setup import create_mediator
from booking_core.storage.database import async_session, engine
from booking_core.storage.repositories import SessionTenantLookup
from booking_core.tenancy.resolver import TenantResolver

logger = structlog.get_logger()


async def _purge_loop(store: MemoryCacheStore, interval_seconds: float) -> None:
    """Periodic removal of expired in-memory cache entries."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            purged = await asyncio.to_thread(store.purge_expired)
            if purged:
                logger.debug("cache_purge", keys_removed=purged)
        except Exception:
            logger.exception("cache_purge_error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Build the cache store, the operation mediator and the tenant
          resolver.
        - Start the expired-entry purge task for the in-memory cache.
    Shutdown:
        - Cancel purge task, close cache connections.
        - Dispose database engine (close connection pool).
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )

    cache_store = create_cache_store(settings)
    app.state.cache_store = cache_store
    app.state.mediator = create_mediator(settings, cache_store)
    app.state.tenant_resolver = TenantResolver(
        SessionTenantLookup(async_session),
        header_name=settings.tenant_header_name,
        claim_name=settings.tenant_claim_name,
        non_tenant_subdomains=settings.non_tenant_subdomains,
    )

    purge_task: asyncio.Task[None] | None = None
    if isinstance(cache_store, MemoryCacheStore):
        purge_task = asyncio.create_task(
            _purge_loop(cache_store, settings.cache_purge_interval_seconds)
        )

    logger.info("app_started", environment=str(settings.environment))
    yield

    if purge_task is not None:
        purge_task.cancel()
    await cache_store.close()
    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="Booking Core",
    description="Multi-tenant appointment booking backend",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

# A bearer-token middleware that sets request.state.token_claims must be
# added after this line so that it runs before tenant resolution.
app.add_middleware(TenantResolutionMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
)


HEALTH_CHECK_TIMEOUT = 5.0


@app.get("/health")
async def health() -> JSONResponse:
    """Deep health check: verifies DB and cache connectivity."""
    checks: dict[str, str] = {}
    overall = "ok"

    try:
        async with async_session() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        checks["db"] = "ok"
    except (TimeoutError, OperationalError, SQLAlchemyError) as e:
        logger.warning("health_check_db_error", error=type(e).__name__)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"
    except Exception as e:
        logger.error("health_check_db_unexpected", error=str(e), exc_info=True)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"

    try:
        cache_ok = await asyncio.wait_for(
            app.state.cache_store.ping(),
            timeout=HEALTH_CHECK_TIMEOUT,
        )
        checks["cache"] = "ok" if cache_ok else "error: unreachable"
        if not cache_ok:
            overall = "degraded"
    except TimeoutError as e:
        logger.warning("health_check_cache_error", error=type(e).__name__)
        checks["cache"] = f"error: {type(e).__name__}"
        overall = "degraded"

    status_code = 200 if overall == "ok" else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        },
    )


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(appointments_router, prefix="/api/v1")
app.include_router(businesses_router, prefix="/api/v1")

"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from api.core.config import get_settings
from api.core.database import get_database_manager, init_database_manager
from api.core.dependencies import close_clients
from api.core.logging import setup_logging
from api.routers import auth_router, emotes_router, user_config_router
from shared.database import DatabaseManager
from shared.migrations.runner import run_migrations

logger = logging.getLogger(__name__)

SERVICE_NAME = "emotechief-api"
VERSION = "1.0.0"

# Track server start time
_start_time: float = 0.0
_pool_heartbeat_task: asyncio.Task | None = None
_db_retry_task: asyncio.Task | None = None


async def _connect_and_migrate(db_manager: DatabaseManager) -> None:
    await db_manager.connect()
    applied = await run_migrations(db_manager.pool)
    if applied:
        logger.info(f"Applied migrations: {', '.join(applied)}")


async def _pool_heartbeat_loop() -> None:
    """Periodically ping the DB pool to keep idle connections alive.

    heartbeat(15s) must stay below the pool's max_inactive lifetime.
    On failure, backs off to avoid flooding logs and wasting connections.
    """
    interval = 15
    fail_count = 0
    while True:
        await asyncio.sleep(interval)
        try:
            db_manager = get_database_manager()
            if db_manager.is_connected:
                async with db_manager.pool.acquire(timeout=30.0) as conn:
                    await conn.fetchval("SELECT 1")
                if fail_count > 0:
                    logger.info(f"Pool heartbeat recovered after {fail_count} failures")
                fail_count = 0
                interval = 15
        except asyncio.CancelledError:
            break
        except Exception as e:
            fail_count += 1
            if fail_count <= 3:
                logger.warning(f"Pool heartbeat failed ({fail_count}): {type(e).__name__}: {e}")
            elif fail_count == 4:
                logger.warning(
                    f"Pool heartbeat still failing ({fail_count}x), suppressing until recovery"
                )
            # Backoff: 15s → 30s → 60s → 120s max
            interval = min(15 * (2 ** min(fail_count - 1, 3)), 120)


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Background loop to retry DB connection after startup timeout."""
    delay = 5
    max_delay = 60
    while True:
        await asyncio.sleep(delay)
        if db_manager.is_connected:
            logger.info("DB retry loop: pool already connected, stopping")
            return
        try:
            await _connect_and_migrate(db_manager)
            logger.info("Database connected (background retry)")
            return
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, "
                f"next retry in {min(delay * 2, max_delay)}s"
            )
            delay = min(delay * 2, max_delay)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time, _pool_heartbeat_task, _db_retry_task
    _start_time = time.time()

    settings = get_settings()

    logger.info("Starting Emotechief API server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")
    if not settings.conduit_id:
        logger.warning("CONDUIT_ID not set, new configs cannot subscribe to redemptions")

    # Wait up to 30s before accepting requests; otherwise keep retrying in background
    db_manager = init_database_manager(settings.database_url, settings.database_ssl)

    try:
        await asyncio.wait_for(_connect_and_migrate(db_manager), timeout=30)
        logger.info("Database connected")
    except TimeoutError:
        logger.warning("DB connection timed out during startup, retrying in background")
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))
    except Exception as e:
        logger.error(
            f"DB connection failed during startup: {type(e).__name__}: {e}, retrying in background"
        )
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))

    _pool_heartbeat_task = asyncio.create_task(_pool_heartbeat_loop())

    yield

    logger.info("Shutting down Emotechief API server")
    if _db_retry_task:
        _db_retry_task.cancel()
    if _pool_heartbeat_task:
        _pool_heartbeat_task.cancel()
    try:
        await close_clients()
        await db_manager.disconnect()
        logger.info("Database disconnected")
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="Emotechief API",
        description="Channel-point emote redemptions: user config, history and rewards",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)
    app.include_router(user_config_router.router)
    app.include_router(emotes_router.router)

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": SERVICE_NAME, "status": "running"}

    # Liveness probe — always 200, no external dependency
    @app.get("/health")
    async def health():
        """Liveness check (no DB dependency)"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.get("/status")
    async def status():
        """Readiness / status endpoint — includes actual DB health check"""
        db_ok = False
        try:
            db_ok = await get_database_manager().check_health()
        except RuntimeError:
            pass
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        """Ping endpoint"""
        return "pong"

    logger.info("FastAPI application configured")

    return app

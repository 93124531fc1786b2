import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from sqlsess import __version__
from sqlsess.api import session as session_api
from sqlsess.core.config import Settings
from sqlsess.core.utils.session_store import SessionStore
from sqlsess.db.session import create_db_engine, ensure_sqlite_directory

logger = logging.getLogger("sqlsess.main")


async def run_periodic_clean(store: SessionStore, interval: float, inactive: float) -> None:
    """
    Sweep stale sessions every ``interval`` seconds until cancelled.

    The sweep itself is blocking database work and runs in a worker thread.
    A failed sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(store.clean, inactive)
        except Exception:
            logger.exception("Scheduled session sweep failed")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings, defaults to ``Settings()``
        engine: Existing engine to use; when omitted one is created from
            ``settings.database_url`` and disposed at shutdown
    """
    settings = settings if settings is not None else Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db_engine = engine
        if db_engine is None:
            ensure_sqlite_directory(settings.database_url)
            db_engine = create_db_engine(settings.database_url)

        app.state.session_store = SessionStore.open(db_engine, settings)
        logger.info("Session store ready", extra={"table": settings.table_name})

        cleaner = None
        if settings.clean_interval_seconds > 0:
            cleaner = asyncio.create_task(
                run_periodic_clean(
                    app.state.session_store,
                    settings.clean_interval_seconds,
                    settings.inactive_threshold_seconds,
                )
            )
        try:
            yield
        finally:
            if cleaner is not None:
                cleaner.cancel()
                with suppress(asyncio.CancelledError):
                    await cleaner
            if engine is None:
                db_engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="SQL-backed server-side sessions",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(session_api.router, prefix="/api", tags=["Session"])

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "healthy", "version": __version__}

    return app

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api.routers import gazette, ops, tasks
from api.workers import GAZETTE_REFRESH_INTERVAL_S, _ingestion_worker
from extraction.entry_extractor import EntryExtractor
from ingestion.orchestrator import IngestionOrchestrator
from storage.db import Database
from storage.memory_store import InMemoryTaskStore
from storage.pg_task_store import PgTaskStore
from storage.task_store import TaskStore

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

USE_POSTGRES_STORE = os.getenv("USE_POSTGRES_STORE", "false").lower() in {"1", "true", "yes"}


def create_app(
    store: Optional[TaskStore] = None,
    extractor: Optional[EntryExtractor] = None,
    refresh_interval_s: float = GAZETTE_REFRESH_INTERVAL_S,
) -> FastAPI:
    """
    Build the service. Store and extractor may be injected; otherwise the
    lifespan creates them from configuration and owns their lifecycle.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database: Optional[Database] = None
        task_store = store
        if task_store is None:
            if USE_POSTGRES_STORE:
                database = Database()
                await database.init()
                await database.init_schema()
                task_store = PgTaskStore(database)
                logger.info("Using PostgreSQL task store")
            else:
                task_store = InMemoryTaskStore()
                logger.info("Using in-memory task store")

        app.state.task_store = task_store
        app.state.database = database
        app.state.orchestrator = IngestionOrchestrator(task_store, extractor or EntryExtractor())

        worker = None
        if refresh_interval_s > 0:
            worker = asyncio.create_task(
                _ingestion_worker(app.state.orchestrator, refresh_interval_s)
            )

        try:
            yield
        finally:
            if worker is not None:
                worker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await worker
            if database is not None:
                await database.close()

    app = FastAPI(title="Gazette Tracker", lifespan=lifespan)
    app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
    app.include_router(gazette.router, prefix="/gazette", tags=["gazette"])
    app.include_router(ops.router, tags=["ops"])
    return app


app = create_app()

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api.dependencies import get_database, get_task_store
from api.metrics import TASKS_STORED
from storage.db import Database
from storage.task_store import TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    database: Optional[Database] = Depends(get_database),
) -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy",
        "profile": os.getenv("DEPLOYMENT_PROFILE", "unknown"),
        "store_type": "postgres" if database is not None else "in-memory",
    }

    if database is not None:
        db_health = await database.health_check()
        health["database"] = db_health
        if db_health["status"] != "healthy":
            health["status"] = "degraded"

    return health


@router.get("/metrics")
async def metrics(store: TaskStore = Depends(get_task_store)) -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        TASKS_STORED.set(len(await store.list_tasks()))
    except Exception as e:
        logger.warning(f"Could not count stored tasks: {e}")

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

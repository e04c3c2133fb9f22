from typing import Optional

from fastapi import Request

from ingestion.orchestrator import IngestionOrchestrator
from storage.db import Database
from storage.task_store import TaskStore


# Handles are created by the app lifespan and live on app.state.
def get_task_store(request: Request) -> TaskStore:
    return request.app.state.task_store


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


def get_database(request: Request) -> Optional[Database]:
    return getattr(request.app.state, "database", None)

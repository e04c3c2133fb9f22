"""
Error types shared by the ingestion path, the storage adapters and the live view.
"""

from __future__ import annotations

from typing import Optional


class GazetteTrackerError(Exception):
    pass


class FetchFailure(GazetteTrackerError):
    """The gazette page could not be fetched (network error or non-success status)."""


class PersistenceFailure(GazetteTrackerError):
    """A single record could not be written."""

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        self.source = source
        self.cause = cause
        super().__init__(f"Failed to persist task for {source}: {cause}")


_OFFLINE_MESSAGES = {
    "add": "Cannot add tasks while offline",
    "update": "Cannot update tasks while offline",
    "delete": "Cannot delete tasks while offline",
    "refresh": "Cannot refresh gazette while offline",
}


class ConnectivityError(GazetteTrackerError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(_OFFLINE_MESSAGES.get(operation, "Operation not available while offline"))


class ValidationError(GazetteTrackerError):
    """Manual task payload failed validation. `errors` maps field name to message."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"Invalid task: {detail}")


class TaskNotFound(GazetteTrackerError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class RemoteCallError(GazetteTrackerError):
    """The remote ingestion entry point failed."""

"""
Storage contract for the "tasks" collection.

The ingestion orchestrator and the live view depend on this Protocol rather
than on a concrete backend, so the in-memory and PostgreSQL stores are
interchangeable (and tests never need a database).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from gazette_tracker.models import Task, TaskDraft

# Fields that find_by() and update() accept.
QUERYABLE_FIELDS = frozenset({"source", "status", "category", "priority", "title"})
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "category",
        "deadline",
        "pre_submission_date",
        "priority",
        "status",
        "source",
        "has_info_session",
        "requires_registration",
        "updated_at",
    }
)


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class Change:
    kind: ChangeKind
    task_id: str
    task: Optional[Task] = None


@dataclass(frozen=True)
class ChangeBatch:
    """
    One notification from the store.

    A snapshot batch carries the full collection and replaces whatever the
    consumer held; otherwise the changes are deltas applied in order.
    """

    changes: tuple[Change, ...] = ()
    snapshot: bool = False

    @classmethod
    def full(cls, tasks: list[Task]) -> "ChangeBatch":
        return cls(
            changes=tuple(Change(ChangeKind.ADDED, t.id, t) for t in tasks),
            snapshot=True,
        )


class Subscription(Protocol):
    async def close(self) -> None: ...


class TaskStore(Protocol):
    async def create(self, draft: TaskDraft) -> str: ...

    async def get(self, task_id: str) -> Optional[Task]: ...

    async def list_tasks(self) -> list[Task]: ...

    async def find_by(self, field: str, value: Any, limit: int = 1) -> list[Task]: ...

    async def update(self, task_id: str, fields: dict[str, Any]) -> None: ...

    async def delete(self, task_id: str) -> None: ...

    async def subscribe(self, inbox: "asyncio.Queue[ChangeBatch]") -> Subscription: ...

    async def enable_network(self) -> None: ...

    async def disable_network(self) -> None: ...


def check_query_field(name: str) -> None:
    if name not in QUERYABLE_FIELDS:
        raise ValueError(f"Unsupported query field: {name}")


def check_update_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported update fields: {sorted(unknown)}")


def sort_by_deadline(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: (t.deadline, t.id))

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

from gazette_tracker.errors import TaskNotFound
from gazette_tracker.models import Task, TaskDraft, utc_now
from storage.task_store import (
    Change,
    ChangeBatch,
    ChangeKind,
    check_query_field,
    check_update_fields,
    sort_by_deadline,
)

logger = logging.getLogger(__name__)


class _MemorySubscription:
    def __init__(self, store: "InMemoryTaskStore", inbox: "asyncio.Queue[ChangeBatch]"):
        self._store = store
        self.inbox = inbox
        self.backlog: list[ChangeBatch] = []
        self.closed = False

    def deliver(self, batch: ChangeBatch, online: bool) -> None:
        if self.closed:
            return
        if not online:
            self.backlog.append(batch)
            return
        self.inbox.put_nowait(batch)

    def flush(self) -> None:
        pending, self.backlog = self.backlog, []
        for batch in pending:
            self.inbox.put_nowait(batch)

    async def close(self) -> None:
        self.closed = True
        self.backlog.clear()
        self._store._subscriptions.discard(self)


class InMemoryTaskStore:
    """
    Process-local task store.

    Writes are serialized with an asyncio.Lock and every write is delivered to
    subscribers as one ChangeBatch, in write order. While the network is
    disabled, batches are held per subscription and flushed when it is
    re-enabled (nothing already delivered is lost or replayed).
    """

    def __init__(self, clock: Callable = utc_now):
        self._clock = clock
        self._tasks: dict[str, Task] = {}
        self._lock = asyncio.Lock()
        self._subscriptions: set[_MemorySubscription] = set()
        self._online = True

    def _publish(self, batch: ChangeBatch) -> None:
        for sub in list(self._subscriptions):
            sub.deliver(batch, self._online)

    async def create(self, draft: TaskDraft) -> str:
        async with self._lock:
            task_id = uuid.uuid4().hex
            task = Task(**draft.model_dump(), id=task_id, created_at=self._clock())
            self._tasks[task_id] = task
            self._publish(ChangeBatch((Change(ChangeKind.ADDED, task_id, task),)))
            logger.debug("Task created id=%s source=%s", task_id, task.source)
            return task_id

    async def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def list_tasks(self) -> list[Task]:
        return sort_by_deadline(list(self._tasks.values()))

    async def find_by(self, field: str, value: Any, limit: int = 1) -> list[Task]:
        check_query_field(field)
        out = [t for t in self._tasks.values() if getattr(t, field) == value]
        return out[:limit]

    async def update(self, task_id: str, fields: dict[str, Any]) -> None:
        check_update_fields(fields)
        async with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise TaskNotFound(task_id)
            task = Task(**{**current.model_dump(), **fields})
            self._tasks[task_id] = task
            self._publish(ChangeBatch((Change(ChangeKind.MODIFIED, task_id, task),)))

    async def delete(self, task_id: str) -> None:
        async with self._lock:
            if self._tasks.pop(task_id, None) is None:
                raise TaskNotFound(task_id)
            self._publish(ChangeBatch((Change(ChangeKind.REMOVED, task_id),)))

    async def subscribe(self, inbox: "asyncio.Queue[ChangeBatch]") -> _MemorySubscription:
        async with self._lock:
            sub = _MemorySubscription(self, inbox)
            self._subscriptions.add(sub)
            sub.deliver(ChangeBatch.full(sort_by_deadline(list(self._tasks.values()))), self._online)
            return sub

    async def enable_network(self) -> None:
        async with self._lock:
            self._online = True
            for sub in list(self._subscriptions):
                sub.flush()

    async def disable_network(self) -> None:
        async with self._lock:
            self._online = False

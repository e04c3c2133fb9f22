"""
PostgreSQL-backed task store.

Rows live in the `tasks` table (see schema.sql). A trigger publishes every
insert/update/delete on the `task_changes` channel; each subscription keeps a
dedicated LISTEN connection and a pump task that turns notifications into
ChangeBatches in arrival order.
"""

import asyncio
import contextlib
import json
import logging
import uuid
from typing import Any, List, Optional

from gazette_tracker.errors import TaskNotFound
from gazette_tracker.models import Task, TaskDraft
from storage.db import Database
from storage.task_store import (
    Change,
    ChangeBatch,
    ChangeKind,
    check_query_field,
    check_update_fields,
)

logger = logging.getLogger(__name__)

CHANNEL = "task_changes"

COLUMNS = (
    "id",
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
    "created_at",
    "updated_at",
)


def _row_to_task(record) -> Task:
    return Task(**{name: record[name] for name in COLUMNS})


def _to_db(value: Any) -> Any:
    # Enums are stored by value.
    return getattr(value, "value", value)


class _PgSubscription:

    def __init__(self, store: "PgTaskStore", inbox: "asyncio.Queue[ChangeBatch]"):
        self._store = store
        self._inbox = inbox
        self._events: asyncio.Queue[str] = asyncio.Queue()
        self._conn = None
        self._listening = False
        self._pump: Optional[asyncio.Task] = None

    def _on_notify(self, connection, pid, channel, payload) -> None:
        self._events.put_nowait(payload)

    async def _listen(self) -> None:
        if self._conn is None:
            self._conn = await self._store.database.connect_listener()
        await self._conn.add_listener(CHANNEL, self._on_notify)
        self._listening = True
        # Resync after (re)connecting; deltas that raced the snapshot are re-applied harmlessly.
        self._inbox.put_nowait(ChangeBatch.full(await self._store.list_tasks()))

    async def start(self) -> None:
        await self._listen()
        self._pump = asyncio.create_task(self._run_pump())

    async def _to_change(self, payload: str) -> Change:
        data = json.loads(payload)
        task_id = str(data["id"])
        if data.get("op") == "DELETE":
            return Change(ChangeKind.REMOVED, task_id)
        task = await self._store.get(task_id)
        if task is None:
            return Change(ChangeKind.REMOVED, task_id)
        kind = ChangeKind.ADDED if data.get("op") == "INSERT" else ChangeKind.MODIFIED
        return Change(kind, task_id, task)

    async def _run_pump(self) -> None:
        while True:
            payload = await self._events.get()
            try:
                change = await self._to_change(payload)
                self._inbox.put_nowait(ChangeBatch((change,)))
            except Exception:
                logger.exception(f"Failed to translate task notification: {payload}")

    async def pause(self) -> None:
        if self._conn is not None and self._listening:
            await self._conn.remove_listener(CHANNEL, self._on_notify)
            self._listening = False

    async def resume(self) -> None:
        if not self._listening:
            await self._listen()

    async def close(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump
        await self.pause()
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
        self._store._subscriptions.discard(self)


class PgTaskStore:

    def __init__(self, database: Database):
        self.database = database
        self._subscriptions: set = set()
        self._online = True

    async def create(self, draft: TaskDraft) -> str:
        task_id = uuid.uuid4().hex
        data = draft.model_dump()
        names = ["id", *data.keys()]
        values = [task_id, *(_to_db(v) for v in data.values())]
        placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
        query = f"INSERT INTO tasks ({', '.join(names)}) VALUES ({placeholders})"

        await self.database.execute(query, *values)
        logger.info(f"Created task {task_id} (source: {draft.source})")
        return task_id

    async def get(self, task_id: str) -> Optional[Task]:
        record = await self.database.fetchrow("SELECT * FROM tasks WHERE id = $1", task_id)
        return _row_to_task(record) if record is not None else None

    async def list_tasks(self) -> List[Task]:
        records = await self.database.fetch("SELECT * FROM tasks ORDER BY deadline ASC, id ASC")
        return [_row_to_task(r) for r in records]

    async def find_by(self, field: str, value: Any, limit: int = 1) -> List[Task]:
        check_query_field(field)
        records = await self.database.fetch(
            f"SELECT * FROM tasks WHERE {field} = $1 LIMIT $2", _to_db(value), int(limit)
        )
        return [_row_to_task(r) for r in records]

    async def update(self, task_id: str, fields: dict) -> None:
        check_update_fields(fields)
        if not fields:
            if await self.get(task_id) is None:
                raise TaskNotFound(task_id)
            return

        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
        result = await self.database.execute(
            f"UPDATE tasks SET {assignments} WHERE id = $1",
            task_id,
            *(_to_db(v) for v in fields.values()),
        )
        if result == "UPDATE 0":
            raise TaskNotFound(task_id)

    async def delete(self, task_id: str) -> None:
        result = await self.database.execute("DELETE FROM tasks WHERE id = $1", task_id)
        if result == "DELETE 0":
            raise TaskNotFound(task_id)
        logger.info(f"Deleted task {task_id}")

    async def subscribe(self, inbox: "asyncio.Queue[ChangeBatch]") -> _PgSubscription:
        sub = _PgSubscription(self, inbox)
        await sub.start()
        if not self._online:
            await sub.pause()
        self._subscriptions.add(sub)
        return sub

    async def enable_network(self) -> None:
        self._online = True
        for sub in list(self._subscriptions):
            await sub.resume()

    async def disable_network(self) -> None:
        self._online = False
        for sub in list(self._subscriptions):
            await sub.pause()

"""
Live, deadline-ordered view of the persisted tasks.

The store pushes ChangeBatches into a queue owned by the view; a single
consumer task applies each batch to a private copy and publishes the result
as a new immutable tuple in one assignment, so readers only ever see a
complete before- or after-batch snapshot.

Mutations write through to the store and are gated on connectivity. The
view's own state is updated only from notifications, never from the return
value of a write. A mutation rejected while offline is not queued for later.
"""

import asyncio
import contextlib
import logging
from typing import Any, Callable, List, Optional, Tuple

from gazette_tracker.errors import ConnectivityError, RemoteCallError, TaskNotFound
from gazette_tracker.models import (
    Status,
    Task,
    utc_now,
    validate_new_task,
    validate_task_update,
)
from live.remote import GazetteRemote
from storage.task_store import ChangeBatch, ChangeKind, Subscription, TaskStore, sort_by_deadline

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple[Task, ...]], None]


class LiveTaskView:

    def __init__(
        self,
        store: TaskStore,
        remote: Optional[GazetteRemote] = None,
        clock: Callable = utc_now,
    ):
        self._store = store
        self._remote = remote
        self._clock = clock

        self._inbox: asyncio.Queue[ChangeBatch] = asyncio.Queue()
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []

        self._by_id: dict = {}
        self._tasks: Tuple[Task, ...] = ()

        self.loading = True
        self.error: Optional[str] = None
        self.is_online = True

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return self._tasks

    def get(self, task_id: str) -> Optional[Task]:
        return self._by_id.get(task_id)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for every republished snapshot. Returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ---- subscription lifecycle ----

    async def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = await self._store.subscribe(self._inbox)
        self._consumer = asyncio.create_task(self._consume())
        logger.info("Live task view subscribed")

    async def stop(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        # Unapplied batches are discarded; a stopped view has nothing to drain.
        while not self._inbox.empty():
            self._inbox.get_nowait()
            self._inbox.task_done()
        logger.info("Live task view unsubscribed")

    async def drain(self) -> None:
        """Wait until every batch queued so far has been applied."""
        if self._consumer is None:
            return
        await self._inbox.join()

    async def _consume(self) -> None:
        while True:
            batch = await self._inbox.get()
            try:
                self._apply(batch)
            except Exception:
                logger.exception("Error processing task changes")
                self.error = "Failed to process tasks data. Please try again."
            finally:
                self._inbox.task_done()

    def _apply(self, batch: ChangeBatch) -> None:
        by_id = {} if batch.snapshot else dict(self._by_id)
        for change in batch.changes:
            if change.kind == ChangeKind.REMOVED:
                by_id.pop(change.task_id, None)
            elif change.task is not None:
                by_id[change.task_id] = change.task

        ordered = tuple(sort_by_deadline(list(by_id.values())))
        self._by_id, self._tasks = by_id, ordered
        self.loading = False
        self.error = None

        for listener in list(self._listeners):
            try:
                listener(ordered)
            except Exception:
                logger.exception("Task view listener failed")

    # ---- connectivity ----

    async def set_online(self, online: bool) -> None:
        """Suspend or resume store network activity. Loaded tasks are kept either way."""
        if online == self.is_online:
            return
        self.is_online = online
        try:
            if online:
                await self._store.enable_network()
            else:
                await self._store.disable_network()
        except Exception as e:
            logger.error(f"Failed to switch store network {'on' if online else 'off'}: {e}")
        logger.info("Live task view is %s", "online" if online else "offline")

    def _require_online(self, operation: str) -> None:
        if not self.is_online:
            err = ConnectivityError(operation)
            self.error = str(err)
            raise err

    # ---- mutations ----

    async def add_task(self, payload: Any) -> str:
        draft = validate_new_task(payload)
        self._require_online("add")
        self.error = None
        try:
            return await self._store.create(draft)
        except Exception as e:
            logger.error(f"Error adding task: {e}")
            self.error = "Failed to add task. Please try again."
            raise

    async def update_status(self, task_id: str, status: Status) -> None:
        self._require_online("update")
        self.error = None
        try:
            await self._store.update(task_id, {"status": Status(status), "updated_at": self._clock()})
        except Exception as e:
            logger.error(f"Error updating task {task_id}: {e}")
            self.error = "Failed to update task status. Please try again."
            raise

    async def update_task(self, task_id: str, payload: Any) -> None:
        self._require_online("update")
        current = self._by_id.get(task_id) or await self._store.get(task_id)
        if current is None:
            raise TaskNotFound(task_id)

        fields = validate_task_update(current, payload)
        if not fields:
            return
        fields["updated_at"] = self._clock()
        self.error = None
        try:
            await self._store.update(task_id, fields)
        except Exception as e:
            logger.error(f"Error updating task {task_id}: {e}")
            self.error = "Failed to update task. Please try again."
            raise

    async def delete_task(self, task_id: str) -> None:
        self._require_online("delete")
        self.error = None
        try:
            await self._store.delete(task_id)
        except Exception as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            self.error = "Failed to delete task. Please try again."
            raise

    async def refresh_gazette(self) -> int:
        """Trigger a remote ingestion run. Returns the number of new tasks (0 on failure)."""
        self._require_online("refresh")
        if self._remote is None:
            raise RuntimeError("No remote ingestion endpoint configured")

        self.loading = True
        self.error = None
        try:
            return await self._remote.fetch_gazette_data()
        except RemoteCallError as e:
            logger.error(f"Error refreshing gazette: {e}")
            self.error = "Server error. Please try again later."
            return 0
        finally:
            self.loading = False

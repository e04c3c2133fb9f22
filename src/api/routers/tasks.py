import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from pydantic import BaseModel

from api.dependencies import get_task_store
from api.metrics import REQUESTS_TOTAL, TASKS_STORED
from gazette_tracker.errors import TaskNotFound, ValidationError
from gazette_tracker.models import (
    Category,
    Priority,
    Status,
    filter_tasks,
    utc_now,
    validate_new_task,
    validate_task_update,
)
from storage.task_store import TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)


class StatusIn(BaseModel):
    status: Status


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail="Task not found")


@router.get("")
async def list_tasks(
    category: Optional[Category] = None,
    priority: Optional[Priority] = None,
    status: Optional[Status] = None,
    store: TaskStore = Depends(get_task_store),
) -> dict:
    """All tasks ordered by deadline, optionally filtered."""
    tasks = await store.list_tasks()
    TASKS_STORED.set(len(tasks))
    selected = filter_tasks(tasks, category=category, priority=priority, status=status)
    return {
        "tasks": [t.model_dump(mode="json") for t in selected],
        "total": len(selected),
    }


@router.get("/{task_id}")
async def get_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> dict:
    task = await store.get(task_id)
    if task is None:
        raise _not_found(task_id)
    return task.model_dump(mode="json")


@router.post("", status_code=201)
async def create_task(
    payload: dict = Body(...),
    store: TaskStore = Depends(get_task_store),
) -> dict:
    try:
        draft = validate_new_task(payload)
    except ValidationError as e:
        REQUESTS_TOTAL.labels(endpoint="/tasks", status="invalid").inc()
        raise HTTPException(status_code=422, detail=e.errors)

    task_id = await store.create(draft)
    REQUESTS_TOTAL.labels(endpoint="/tasks", status="created").inc()
    logger.info(f"Created manual task {task_id}")

    task = await store.get(task_id)
    return task.model_dump(mode="json") if task else {"id": task_id}


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    payload: dict = Body(...),
    store: TaskStore = Depends(get_task_store),
) -> dict:
    current = await store.get(task_id)
    if current is None:
        raise _not_found(task_id)

    try:
        fields = validate_task_update(current, payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)

    if fields:
        fields["updated_at"] = utc_now()
        try:
            await store.update(task_id, fields)
        except TaskNotFound:
            raise _not_found(task_id)

    task = await store.get(task_id)
    if task is None:
        raise _not_found(task_id)
    return task.model_dump(mode="json")


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: StatusIn,
    store: TaskStore = Depends(get_task_store),
) -> dict:
    try:
        await store.update(task_id, {"status": payload.status, "updated_at": utc_now()})
    except TaskNotFound:
        raise _not_found(task_id)
    return {"id": task_id, "status": payload.status.value}


@router.delete("/{task_id}", status_code=204)
async def delete_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> Response:
    try:
        await store.delete(task_id)
    except TaskNotFound:
        raise _not_found(task_id)
    return Response(status_code=204)

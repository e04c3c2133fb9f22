from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from gazette_tracker.errors import ValidationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, Enum):
    LEGAL = "Legal"
    ADMINISTRATIVE = "Administrative"
    FINANCIAL = "Financial"
    REGULATORY = "Regulatory"
    OTHER = "Other"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Status(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    # Only ever set by the user; see is_overdue() for the derived label.
    OVERDUE = "Overdue"


class GazetteEntry(BaseModel):
    """One listing item scraped from the gazette page, before classification."""

    title: str
    relative_url: str = ""
    published_date_text: str = ""


class TaskDraft(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: Category = Category.OTHER

    deadline: datetime
    pre_submission_date: Optional[datetime] = None

    priority: Priority = Priority.MEDIUM
    status: Status = Status.PENDING
    source: str = Field(..., min_length=1)

    has_info_session: bool = False
    requires_registration: bool = False


class Task(TaskDraft):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


def _check_schedule(deadline: Optional[datetime], pre_submission_date: Optional[datetime]) -> None:
    if deadline is not None and pre_submission_date is not None and pre_submission_date >= deadline:
        raise ValidationError({"pre_submission_date": "Pre-submission date must be before deadline"})


class TaskCreate(BaseModel):
    """
    Manual task creation payload.

    Blank strings are rejected here rather than at the storage layer so a bad
    payload never reaches a write.
    """

    title: str
    description: str
    category: Category = Category.LEGAL
    priority: Priority = Priority.MEDIUM
    deadline: datetime
    pre_submission_date: Optional[datetime] = None
    has_info_session: bool = False
    requires_registration: bool = False
    source: str

    @field_validator("title", "description", "source")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("must not be blank")
        return v2

    def to_draft(self) -> TaskDraft:
        # Manual tasks always start out pending.
        return TaskDraft(**self.model_dump(), status=Status.PENDING)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    deadline: Optional[datetime] = None
    pre_submission_date: Optional[datetime] = None
    has_info_session: Optional[bool] = None
    requires_registration: Optional[bool] = None
    source: Optional[str] = None

    @field_validator("title", "description", "source")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v2 = v.strip()
        if not v2:
            raise ValueError("must not be blank")
        return v2

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _field_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "__root__"
        errors.setdefault(field, err.get("msg", "invalid value"))
    return errors


def validate_new_task(payload: Any) -> TaskDraft:
    """Validate a manual task and return the draft to persist.

    Raises gazette_tracker.errors.ValidationError on any problem.
    """
    if isinstance(payload, TaskCreate):
        create = payload
    else:
        try:
            create = TaskCreate.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(_field_errors(e)) from e

    _check_schedule(create.deadline, create.pre_submission_date)
    return create.to_draft()


def validate_task_update(current: Task, payload: Any) -> dict[str, Any]:
    """Validate a partial update against the current record and return the changed fields."""
    if isinstance(payload, TaskUpdate):
        update = payload
    else:
        try:
            update = TaskUpdate.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(_field_errors(e)) from e

    fields = update.changes()
    # Explicit nulls are only meaningful for the pre-submission date.
    fields = {k: v for k, v in fields.items() if v is not None or k == "pre_submission_date"}

    deadline = fields.get("deadline", current.deadline)
    pre_submission = fields.get("pre_submission_date", current.pre_submission_date)
    _check_schedule(deadline, pre_submission)
    return fields


def is_overdue(task: Task, now: Optional[datetime] = None) -> bool:
    now = now or utc_now()
    return task.deadline < now and task.status != Status.COMPLETED


def filter_tasks(
    tasks: Iterable[Task],
    category: Optional[Category] = None,
    priority: Optional[Priority] = None,
    status: Optional[Status] = None,
) -> list[Task]:
    return [
        t
        for t in tasks
        if (category is None or t.category == category)
        and (priority is None or t.priority == priority)
        and (status is None or t.status == status)
    ]

"""Task domain models, enums and the task type catalog."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from worksync.domain.base import ApiModel


class TaskStatus(StrEnum):
    """Task workflow status."""

    BACKLOG = "BACKLOG"
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"


class TaskPriority(StrEnum):
    """Task priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskType(BaseModel):
    """Entry in the static task type catalog."""

    code: str
    name: str


TASK_TYPES: tuple[TaskType, ...] = (
    TaskType(code="TS", name="Typesetting"),
    TaskType(code="PR", name="Proofreading"),
    TaskType(code="CE", name="Copyediting"),
    TaskType(code="IL", name="Illustration"),
    TaskType(code="IX", name="Indexing"),
    TaskType(code="QC", name="Quality Check"),
    TaskType(code="DP", name="Digital Publishing"),
)

_TASK_TYPES_BY_CODE = {task_type.code: task_type for task_type in TASK_TYPES}


def get_task_type_by_code(code: str) -> TaskType | None:
    """Find a catalog entry by its code (case-insensitive)."""
    return _TASK_TYPES_BY_CODE.get(code.strip().upper())


def format_task_title(task_type: TaskType) -> str:
    """Build the display title for a task of the given type."""
    return f"{task_type.code} - {task_type.name}"


class Task(ApiModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID")
    title: str = Field(..., description="Derived title, e.g. 'TS - Typesetting'")
    task_type_code: str = Field(..., description="Catalog code of the task type")
    task_type_name: str = Field(..., description="Catalog name of the task type")
    description: str | None = Field(default=None, description="Free-text description")
    chapter: str | None = Field(default=None, description="Chapter the task covers")
    page_range: str | None = Field(default=None, description="Page range the task covers")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Workflow status")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Priority")
    assigned_to: str | None = Field(default=None, description="User ID of the assignee")
    created_by: str | None = Field(default=None, description="User ID of the creator")
    workspace_id: str = Field(..., description="Owning workspace")
    project_id: str = Field(..., description="Owning project")
    due_date: datetime | None = Field(default=None, description="Due date")

    is_running: bool = Field(default=False, description="Whether the timer is active")
    first_started_at: datetime | None = Field(default=None, description="First ever timer start")
    active_start_at: datetime | None = Field(default=None, description="Start of the active timer run")
    last_stopped_at: datetime | None = Field(default=None, description="Most recent timer stop")
    total_seconds_spent: int = Field(default=0, description="Accumulated timer seconds")
    total_minutes_spent: int = Field(default=0, description="Whole minutes derived from total seconds")
    pages_completed: int = Field(default=0, description="Accumulated pages completed")
    remarks: str | None = Field(default=None, description="Latest remark recorded on stop")

    created: datetime | None = None
    updated: datetime | None = None

"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects. They serialize with camelCase keys.
"""

from datetime import date, datetime

from pydantic import Field

from worksync.domain.base import ApiModel
from worksync.domain.task import Task
from worksync.domain.user import User


class DateRange(ApiModel):
    """Inclusive date range; either bound may be open."""

    start: datetime | None = Field(default=None, serialization_alias="from")
    end: datetime | None = Field(default=None, serialization_alias="to")

    def contains(self, moment: datetime) -> bool:
        """Whether the moment lies within the range, bounds included."""
        if self.start is not None and moment < self.start:
            return False
        return not (self.end is not None and moment > self.end)


class StopAllResult(ApiModel):
    """Outcome of stopping every running timer in a workspace."""

    stopped_count: int
    failed_task_ids: list[str] = Field(default_factory=list)


class TaskFilters(ApiModel):
    """Filters for listing tasks in a workspace."""

    project_id: str | None = None
    task_type_code: str | None = None
    statuses: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    keyword: str | None = None
    due_date: date | None = None


class Pagination(ApiModel):
    """Page metadata for list endpoints."""

    page_size: int
    page_number: int
    total_count: int
    total_pages: int
    skip: int


class TaskPage(ApiModel):
    """One page of tasks."""

    tasks: list[Task]
    pagination: Pagination


class ProjectStats(ApiModel):
    """Project counts for a workspace."""

    total_projects: int
    active_projects: int
    completed_projects: int


class ClientProjectCount(ApiModel):
    """Number of projects held for one client."""

    client_id: str
    client_name: str
    project_count: int


class ClientStats(ApiModel):
    """Client counts for a workspace."""

    total_clients: int
    projects_by_client: list[ClientProjectCount]


class StatusCount(ApiModel):
    """Number of tasks in one status."""

    status: str
    count: int


class TaskStats(ApiModel):
    """Task counts for a workspace."""

    total_tasks: int
    done_tasks: int
    pending_tasks: int
    overdue_tasks: int
    tasks_by_status: list[StatusCount]


class EmployeeStats(ApiModel):
    """Workload and logged activity for one member."""

    user_id: str
    name: str
    total_assigned: int
    done: int
    pending: int
    total_minutes: int
    total_hours: float
    total_pages: int
    last_active_at: datetime | None = None


class ProgressSummary(ApiModel):
    """Workspace-wide progress rollup."""

    date_range: DateRange
    project_stats: ProjectStats
    client_stats: ClientStats
    task_stats: TaskStats
    employee_stats: list[EmployeeStats]


class TaskProjectRef(ApiModel):
    """Project summary attached to a task or work-log."""

    id: str
    name: str
    client_id: str | None = None
    client_name: str | None = None


class EmployeeTask(ApiModel):
    """Task assigned to an employee, with its project."""

    id: str
    title: str
    task_type_code: str
    task_type_name: str
    status: str
    total_minutes_spent: int
    pages_completed: int
    due_date: datetime | None = None
    project: TaskProjectRef | None = None


class EmployeeWorkLog(ApiModel):
    """Work-log entry enriched with the task's current details."""

    id: str
    task_id: str
    duration_minutes: int
    pages_completed: int | None = None
    remarks: str | None = None
    started_at: datetime
    stopped_at: datetime
    task_title: str | None = None
    task_type_code: str | None = None
    task_type_name: str | None = None
    project: TaskProjectRef | None = None


class EmployeeProgress(ApiModel):
    """Progress detail for one member."""

    date_range: DateRange
    employee: EmployeeStats
    tasks: list[EmployeeTask]
    work_logs: list[EmployeeWorkLog]


class WorkspaceAnalytics(ApiModel):
    """Headline task counts for a workspace."""

    total_tasks: int
    overdue_tasks: int
    completed_tasks: int


class AuthResult(ApiModel):
    """Signed-in user with the session token to present on later requests."""

    user: User
    token: str

"""Progress aggregation over tasks and the work-log ledger.

Task and project counts describe the workspace as it is now. Minutes, hours,
pages and last activity come from work-logs stopped within the date range.
"""

import logging
import re
from collections import Counter
from datetime import UTC, date, datetime, time
from typing import Any

from worksync.core import db_client
from worksync.core.errors import BadRequestError, ErrorCode, NotFoundError
from worksync.core.logging import span
from worksync.domain.project import ProjectStatus
from worksync.domain.task import TaskStatus
from worksync.models.service_models import (
    ClientProjectCount,
    ClientStats,
    DateRange,
    EmployeeProgress,
    EmployeeStats,
    EmployeeTask,
    EmployeeWorkLog,
    ProgressSummary,
    ProjectStats,
    StatusCount,
    TaskProjectRef,
    TaskStats,
    WorkspaceAnalytics,
)
from worksync.services import role_service, work_log_service


logger = logging.getLogger(__name__)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


def _parse_bound(value: str, *, name: str, end_of_day: bool) -> datetime:
    value = value.strip()
    try:
        if _DATE_ONLY.match(value):
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=UTC)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        msg = f"Invalid '{name}' date: {value}"
        raise BadRequestError(msg, code=ErrorCode.ERR_VALIDATION) from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_date_range(date_from: str | None = None, date_to: str | None = None) -> DateRange:
    """Parse optional ISO-8601 bounds into an inclusive date range.

    A date-only ``to`` covers that whole day.

    Raises:
        BadRequestError: If a bound is not a valid date or ``from`` is after ``to``
    """
    start = _parse_bound(date_from, name="from", end_of_day=False) if date_from else None
    end = _parse_bound(date_to, name="to", end_of_day=True) if date_to else None

    if start is not None and end is not None and start > end:
        msg = "'from' must not be after 'to'"
        raise BadRequestError(msg, code=ErrorCode.ERR_VALIDATION)

    return DateRange(start=start, end=end)


def _workspace_filter(workspace_id: str) -> str:
    return f'workspace_id = "{db_client.sanitize_param(workspace_id)}"'


async def _list_workspace(collection: str, workspace_id: str, *, extra_filter: str = "") -> list[dict[str, Any]]:
    filter_query = _workspace_filter(workspace_id)
    if extra_filter:
        filter_query = f"{filter_query} && {extra_filter}"
    return await db_client.list_all_records(
        collection=collection,
        filter_query=filter_query,
        sort="+created",
    )


def _is_overdue(task: dict[str, Any], now: datetime) -> bool:
    due_date = db_client.parse_timestamp(task.get("due_date"))
    return due_date is not None and due_date < now and task.get("status") != TaskStatus.DONE


def _project_stats(projects: list[dict[str, Any]]) -> ProjectStats:
    return ProjectStats(
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.get("status") == ProjectStatus.ACTIVE),
        completed_projects=sum(1 for p in projects if p.get("status") == ProjectStatus.COMPLETED),
    )


def _client_stats(projects: list[dict[str, Any]]) -> ClientStats:
    """Count projects per client, most projects first, ties in first-seen order."""
    counts: Counter[str] = Counter()
    names: dict[str, str] = {}

    for project in projects:
        client_id = (project.get("client_id") or "").strip()
        if not client_id:
            continue
        counts[client_id] += 1
        if not names.get(client_id):
            names[client_id] = (project.get("client_name") or "").strip()

    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ClientStats(
        total_clients=len(counts),
        projects_by_client=[
            ClientProjectCount(client_id=client_id, client_name=names[client_id] or client_id, project_count=count)
            for client_id, count in ranked
        ],
    )


def _task_stats(tasks: list[dict[str, Any]], now: datetime) -> TaskStats:
    by_status = Counter(task.get("status") for task in tasks)
    done = by_status[TaskStatus.DONE]
    return TaskStats(
        total_tasks=len(tasks),
        done_tasks=done,
        pending_tasks=len(tasks) - done,
        overdue_tasks=sum(1 for task in tasks if _is_overdue(task, now)),
        tasks_by_status=[StatusCount(status=status.value, count=by_status[status]) for status in TaskStatus],
    )


def _employee_stats(
    *,
    user_id: str,
    name: str,
    tasks: list[dict[str, Any]],
    work_logs: list[dict[str, Any]],
) -> EmployeeStats:
    """Figures for one member from workspace tasks and in-range work-logs."""
    assigned = [task for task in tasks if task.get("assigned_to") == user_id]
    done = sum(1 for task in assigned if task.get("status") == TaskStatus.DONE)
    own_logs = [log for log in work_logs if log.get("user_id") == user_id]

    total_minutes = sum(log.get("duration_minutes") or 0 for log in own_logs)
    stop_times = [db_client.parse_timestamp(log["stopped_at"]) for log in own_logs]

    return EmployeeStats(
        user_id=user_id,
        name=name,
        total_assigned=len(assigned),
        done=done,
        pending=len(assigned) - done,
        total_minutes=total_minutes,
        total_hours=round(total_minutes / 60, 2),
        total_pages=sum(log.get("pages_completed") or 0 for log in own_logs),
        last_active_at=max(stop_times) if stop_times else None,
    )


async def _user_name(user_id: str) -> str:
    try:
        user = await db_client.get_record(collection="users", record_id=user_id)
    except KeyError:
        logger.warning("Member user record missing", extra={"user_id": user_id})
        return "Unknown"
    return user.get("name") or "Unknown"


async def get_progress_summary(*, workspace_id: str, date_range: DateRange) -> ProgressSummary:
    """Summarise projects, clients, tasks and per-member activity for a workspace.

    Args:
        workspace_id: Workspace to summarise
        date_range: Range bounding the work-log figures

    Returns:
        Workspace progress summary
    """
    with span("progress_service.get_progress_summary"):
        now = _now()
        projects = await _list_workspace("projects", workspace_id)
        tasks = await _list_workspace("tasks", workspace_id)
        members = await _list_workspace("members", workspace_id)
        work_logs = await work_log_service.list_work_logs(
            workspace_id=workspace_id,
            date_from=date_range.start,
            date_to=date_range.end,
        )

        employee_stats = [
            _employee_stats(
                user_id=member["user_id"],
                name=await _user_name(member["user_id"]),
                tasks=tasks,
                work_logs=work_logs,
            )
            for member in members
        ]

        logger.info(
            "Computed progress summary",
            extra={"workspace_id": workspace_id, "members": len(members), "work_logs": len(work_logs)},
        )
        return ProgressSummary(
            date_range=date_range,
            project_stats=_project_stats(projects),
            client_stats=_client_stats(projects),
            task_stats=_task_stats(tasks, now),
            employee_stats=employee_stats,
        )


def _project_ref(project: dict[str, Any] | None) -> TaskProjectRef | None:
    if project is None:
        return None
    return TaskProjectRef(
        id=project["id"],
        name=project["name"],
        client_id=project.get("client_id"),
        client_name=project.get("client_name"),
    )


async def get_employee_progress(*, workspace_id: str, employee_id: str, date_range: DateRange) -> EmployeeProgress:
    """Progress detail for one member: figures, assigned tasks and in-range work-logs.

    Work-logs carry the task's current title, type and project.

    Raises:
        NotFoundError: If the employee is not a member of the workspace
    """
    with span("progress_service.get_employee_progress"):
        member = await role_service.get_membership(user_id=employee_id, workspace_id=workspace_id)
        if not member:
            msg = "Employee is not a member of this workspace"
            raise NotFoundError(msg, code=ErrorCode.ERR_NOT_A_MEMBER)

        projects = {p["id"]: p for p in await _list_workspace("projects", workspace_id)}
        tasks = await _list_workspace("tasks", workspace_id)
        tasks_by_id = {task["id"]: task for task in tasks}
        work_logs = await work_log_service.list_work_logs(
            workspace_id=workspace_id,
            user_id=employee_id,
            date_from=date_range.start,
            date_to=date_range.end,
        )

        stats = _employee_stats(
            user_id=employee_id,
            name=await _user_name(employee_id),
            tasks=tasks,
            work_logs=work_logs,
        )

        assigned = [task for task in tasks if task.get("assigned_to") == employee_id]
        employee_tasks = [
            EmployeeTask(
                id=task["id"],
                title=task["title"],
                task_type_code=task["task_type_code"],
                task_type_name=task["task_type_name"],
                status=task["status"],
                total_minutes_spent=task.get("total_minutes_spent") or 0,
                pages_completed=task.get("pages_completed") or 0,
                due_date=db_client.parse_timestamp(task.get("due_date")),
                project=_project_ref(projects.get(task.get("project_id"))),
            )
            for task in assigned
        ]

        employee_logs = []
        for log in work_logs:
            task = tasks_by_id.get(log["task_id"])
            employee_logs.append(
                EmployeeWorkLog(
                    id=log["id"],
                    task_id=log["task_id"],
                    duration_minutes=log["duration_minutes"],
                    pages_completed=log.get("pages_completed"),
                    remarks=log.get("remarks"),
                    started_at=db_client.parse_timestamp(log["started_at"]),
                    stopped_at=db_client.parse_timestamp(log["stopped_at"]),
                    task_title=task["title"] if task else None,
                    task_type_code=task["task_type_code"] if task else None,
                    task_type_name=task["task_type_name"] if task else None,
                    project=_project_ref(projects.get(task.get("project_id"))) if task else None,
                )
            )

        return EmployeeProgress(
            date_range=date_range,
            employee=stats,
            tasks=employee_tasks,
            work_logs=employee_logs,
        )


async def get_workspace_analytics(*, workspace_id: str) -> WorkspaceAnalytics:
    """Headline task counts: total, overdue and completed."""
    with span("progress_service.get_workspace_analytics"):
        now = _now()
        tasks = await _list_workspace("tasks", workspace_id)
        return WorkspaceAnalytics(
            total_tasks=len(tasks),
            overdue_tasks=sum(1 for task in tasks if _is_overdue(task, now)),
            completed_tasks=sum(1 for task in tasks if task.get("status") == TaskStatus.DONE),
        )

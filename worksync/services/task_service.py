"""Task service for CRUD operations.

Timer fields are never written here; see task_timer.
"""

import logging
import math
from typing import Any

from worksync.core import db_client
from worksync.core.config import constants
from worksync.core.errors import BadRequestError, ErrorCode, NotFoundError, UnauthorizedError
from worksync.core.logging import span
from worksync.domain.create_models import TaskCreate, TaskUpdate
from worksync.domain.role import Role
from worksync.domain.task import TaskStatus, format_task_title, get_task_type_by_code
from worksync.models.service_models import Pagination, TaskFilters, TaskPage
from worksync.services import project_service, role_service


logger = logging.getLogger(__name__)


def _resolve_task_type(code: str) -> dict[str, str]:
    """Catalog fields for a task type code.

    Raises:
        BadRequestError: If the code is not in the catalog
    """
    task_type = get_task_type_by_code(code)
    if task_type is None:
        msg = "Invalid task type selected."
        raise BadRequestError(msg, code=ErrorCode.ERR_INVALID_TASK_TYPE)
    return {
        "task_type_code": task_type.code,
        "task_type_name": task_type.name,
        "title": format_task_title(task_type),
    }


async def _ensure_assignee_is_member(*, workspace_id: str, assigned_to: str) -> None:
    member = await role_service.get_membership(user_id=assigned_to, workspace_id=workspace_id)
    if not member:
        msg = "Assigned user is not a member of this workspace."
        raise BadRequestError(msg, code=ErrorCode.ERR_NOT_A_MEMBER)


async def create_task(
    *,
    workspace_id: str,
    project_id: str,
    user_id: str,
    data: TaskCreate,
) -> dict[str, Any]:
    """Create a task in a project.

    Args:
        workspace_id: Workspace the project belongs to
        project_id: Project to add the task to
        user_id: Creating user
        data: Validated task payload

    Returns:
        Created task record

    Raises:
        NotFoundError: If the project is not in the workspace
        BadRequestError: If the assignee is not a member or the task type is unknown
    """
    with span("task_service.create_task"):
        await project_service.get_project(workspace_id=workspace_id, project_id=project_id)

        if data.assigned_to:
            await _ensure_assignee_is_member(workspace_id=workspace_id, assigned_to=data.assigned_to)

        task_type = _resolve_task_type(data.task_type_code)

        record = await db_client.create_record(
            collection="tasks",
            data={
                **task_type,
                "description": data.description,
                "chapter": data.chapter,
                "page_range": data.page_range,
                "priority": data.priority.value,
                "status": data.status.value,
                "assigned_to": data.assigned_to,
                "created_by": user_id,
                "workspace_id": workspace_id,
                "project_id": project_id,
                "due_date": data.due_date.isoformat() if data.due_date else None,
                "is_running": False,
                "first_started_at": None,
                "active_start_at": None,
                "last_stopped_at": None,
                "total_seconds_spent": 0,
                "total_minutes_spent": 0,
                "pages_completed": 0,
                "remarks": None,
            },
        )

        logger.info(
            "Created task",
            extra={"task_id": record["id"], "project_id": project_id, "workspace_id": workspace_id},
        )
        return record


async def _get_project_task(*, workspace_id: str, project_id: str, task_id: str) -> dict[str, Any]:
    await project_service.get_project(workspace_id=workspace_id, project_id=project_id)

    try:
        task = await db_client.get_record(collection="tasks", record_id=task_id)
    except KeyError as e:
        msg = "Task not found or does not belong to this project"
        raise NotFoundError(msg) from e

    if str(task.get("project_id")) != str(project_id):
        msg = "Task not found or does not belong to this project"
        raise NotFoundError(msg)
    return task


async def update_task(
    *,
    workspace_id: str,
    project_id: str,
    task_id: str,
    data: TaskUpdate,
    role: Role | None = None,
) -> dict[str, Any]:
    """Apply the fields set on the update to a task.

    Members may only change the status; other roles may change any field.

    Raises:
        NotFoundError: If the project or task is missing or mismatched
        UnauthorizedError: If a member changes anything but the status
        BadRequestError: If the task type is unknown or the assignee is not a member
    """
    with span("task_service.update_task"):
        task = await _get_project_task(workspace_id=workspace_id, project_id=project_id, task_id=task_id)

        changes = data.model_dump(exclude_unset=True)
        # Guard: members only move tasks through the workflow
        if role == Role.MEMBER and set(changes) - {"status"}:
            msg = "Members can only update the task status."
            raise UnauthorizedError(msg, code=ErrorCode.ERR_PERMISSION_DENIED)

        for required in ("status", "priority", "task_type_code"):
            if changes.get(required, "") is None:
                del changes[required]

        task_type_code = changes.pop("task_type_code", None)
        if task_type_code:
            changes.update(_resolve_task_type(task_type_code))

        if changes.get("assigned_to"):
            await _ensure_assignee_is_member(workspace_id=workspace_id, assigned_to=changes["assigned_to"])

        for enum_field in ("status", "priority"):
            if enum_field in changes:
                changes[enum_field] = str(changes[enum_field])
        if "due_date" in changes:
            changes["due_date"] = changes["due_date"].isoformat() if changes["due_date"] else None

        if not changes:
            return task

        updated = await db_client.update_record(collection="tasks", record_id=task_id, data=changes)
        logger.info("Updated task", extra={"task_id": task_id, "fields": sorted(changes)})
        return updated


async def update_task_status(
    *,
    workspace_id: str,
    project_id: str,
    task_id: str,
    status: TaskStatus,
) -> dict[str, Any]:
    """Change only a task's status."""
    with span("task_service.update_task_status"):
        await _get_project_task(workspace_id=workspace_id, project_id=project_id, task_id=task_id)
        return await db_client.update_record(collection="tasks", record_id=task_id, data={"status": status.value})


def _in_filter(field: str, values: list[str]) -> str:
    """Build an OR group matching any of the values."""
    alternatives = " || ".join(f'{field} = "{db_client.sanitize_param(value)}"' for value in values)
    return f"({alternatives})"


async def get_all_tasks(
    *,
    workspace_id: str,
    filters: TaskFilters,
    page_size: int = constants.DEFAULT_PAGE_SIZE,
    page_number: int = 1,
) -> TaskPage:
    """List a workspace's tasks matching the filters, newest first, one page at a time.

    Args:
        workspace_id: Workspace to list tasks from
        filters: Optional project, type, status, priority, assignee, keyword and due date filters
        page_size: Tasks per page
        page_number: 1-based page number

    Returns:
        The requested page and its pagination metadata
    """
    with span("task_service.get_all_tasks"):
        page_size = max(1, min(page_size, constants.MAX_PAGE_SIZE))
        page_number = max(1, page_number)

        conditions = [f'workspace_id = "{db_client.sanitize_param(workspace_id)}"']
        if filters.project_id:
            conditions.append(f'project_id = "{db_client.sanitize_param(filters.project_id)}"')
        if filters.task_type_code:
            conditions.append(f'task_type_code = "{db_client.sanitize_param(filters.task_type_code.upper())}"')
        if filters.statuses:
            conditions.append(_in_filter("status", filters.statuses))
        if filters.priorities:
            conditions.append(_in_filter("priority", filters.priorities))
        if filters.assignees:
            conditions.append(_in_filter("assigned_to", filters.assignees))
        if filters.keyword:
            conditions.append(f'title ~ "{db_client.sanitize_param(filters.keyword)}"')

        records = await db_client.list_all_records(
            collection="tasks",
            filter_query=" && ".join(conditions),
            sort="-created",
        )

        if filters.due_date:
            records = [
                task
                for task in records
                if (due := db_client.parse_timestamp(task.get("due_date"))) is not None
                and due.date() == filters.due_date
            ]

        total_count = len(records)
        skip = (page_number - 1) * page_size

        return TaskPage(
            tasks=records[skip : skip + page_size],
            pagination=Pagination(
                page_size=page_size,
                page_number=page_number,
                total_count=total_count,
                total_pages=math.ceil(total_count / page_size),
                skip=skip,
            ),
        )


async def get_task_by_id(*, workspace_id: str, project_id: str, task_id: str) -> dict[str, Any]:
    """Fetch a task, requiring it to belong to the project and workspace.

    Raises:
        NotFoundError: If the project or task is missing or mismatched
    """
    task = await _get_project_task(workspace_id=workspace_id, project_id=project_id, task_id=task_id)
    if str(task.get("workspace_id")) != str(workspace_id):
        msg = "Task not found."
        raise NotFoundError(msg)
    return task


async def delete_task(*, workspace_id: str, task_id: str) -> None:
    """Permanently delete a task.

    Raises:
        NotFoundError: If the task is missing or in another workspace
    """
    with span("task_service.delete_task"):
        try:
            task = await db_client.get_record(collection="tasks", record_id=task_id)
        except KeyError as e:
            msg = "Task not found or does not belong to the specified workspace"
            raise NotFoundError(msg) from e

        if str(task.get("workspace_id")) != str(workspace_id):
            msg = "Task not found or does not belong to the specified workspace"
            raise NotFoundError(msg)

        await db_client.delete_record(collection="tasks", record_id=task_id)
        logger.info("Deleted task", extra={"task_id": task_id, "workspace_id": workspace_id})

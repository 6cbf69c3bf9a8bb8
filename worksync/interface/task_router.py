"""Task routes: CRUD, task types and timers."""

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Body, Query, status

from worksync.core.config import constants
from worksync.domain.create_models import TaskCreate, TaskStatusUpdate, TaskUpdate, TimerStopRequest
from worksync.domain.role import Permission
from worksync.domain.task import TASK_TYPES, Task
from worksync.interface.deps import CurrentUserId
from worksync.models.service_models import TaskFilters
from worksync.services import role_service, task_service, task_timer


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get("/types")
async def list_task_types(_user_id: CurrentUserId) -> dict:
    """List the task type catalog."""
    return {"message": "Task types fetched successfully", "taskTypes": [t.model_dump() for t in TASK_TYPES]}


@router.post("/project/{project_id}/workspace/{workspace_id}/create", status_code=status.HTTP_201_CREATED)
async def create_task(project_id: str, workspace_id: str, body: TaskCreate, user_id: CurrentUserId) -> dict:
    """Create a task in a project."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.CREATE_TASK])
    task = await task_service.create_task(
        workspace_id=workspace_id,
        project_id=project_id,
        user_id=user_id,
        data=body,
    )
    return {"message": "Task created successfully", "task": Task.model_validate(task)}


@router.put("/{task_id}/project/{project_id}/workspace/{workspace_id}/update")
async def update_task(
    task_id: str,
    project_id: str,
    workspace_id: str,
    body: TaskUpdate,
    user_id: CurrentUserId,
) -> dict:
    """Update a task's details."""
    grant = await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.EDIT_TASK])
    task = await task_service.update_task(
        workspace_id=workspace_id,
        project_id=project_id,
        task_id=task_id,
        data=body,
        role=grant.role,
    )
    return {"message": "Task updated successfully", "task": Task.model_validate(task)}


@router.put("/{task_id}/project/{project_id}/workspace/{workspace_id}/status")
async def update_task_status(
    task_id: str,
    project_id: str,
    workspace_id: str,
    body: TaskStatusUpdate,
    user_id: CurrentUserId,
) -> dict:
    """Move a task to another status."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.EDIT_TASK])
    task = await task_service.update_task_status(
        workspace_id=workspace_id,
        project_id=project_id,
        task_id=task_id,
        status=body.status,
    )
    return {"message": "Task status updated successfully", "task": Task.model_validate(task)}


@router.get("/workspace/{workspace_id}/all")
async def list_tasks(
    workspace_id: str,
    user_id: CurrentUserId,
    project_id: Annotated[str | None, Query(alias="projectId")] = None,
    task_type_code: Annotated[str | None, Query(alias="taskTypeCode")] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    priority: Annotated[str | None, Query()] = None,
    assigned_to: Annotated[str | None, Query(alias="assignedTo")] = None,
    keyword: Annotated[str | None, Query()] = None,
    due_date: Annotated[date | None, Query(alias="dueDate")] = None,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=constants.MAX_PAGE_SIZE)] = constants.DEFAULT_PAGE_SIZE,
    page_number: Annotated[int, Query(alias="pageNumber", ge=1)] = 1,
) -> dict:
    """List a workspace's tasks with filters and pagination.

    Multi-value filters take comma-separated values.
    """
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    filters = TaskFilters(
        project_id=project_id,
        task_type_code=task_type_code,
        statuses=_split_csv(status_filter),
        priorities=_split_csv(priority),
        assignees=_split_csv(assigned_to),
        keyword=keyword,
        due_date=due_date,
    )
    page = await task_service.get_all_tasks(
        workspace_id=workspace_id,
        filters=filters,
        page_size=page_size,
        page_number=page_number,
    )
    return {"message": "All tasks fetched successfully", **page.model_dump(by_alias=True, mode="json")}


@router.get("/{task_id}/project/{project_id}/workspace/{workspace_id}")
async def get_task(task_id: str, project_id: str, workspace_id: str, user_id: CurrentUserId) -> dict:
    """Fetch one task."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    task = await task_service.get_task_by_id(workspace_id=workspace_id, project_id=project_id, task_id=task_id)
    return {"message": "Task fetched successfully", "task": Task.model_validate(task)}


@router.delete("/{task_id}/workspace/{workspace_id}/delete")
async def delete_task(task_id: str, workspace_id: str, user_id: CurrentUserId) -> dict:
    """Permanently delete a task."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.DELETE_TASK])
    await task_service.delete_task(workspace_id=workspace_id, task_id=task_id)
    return {"message": "Task deleted successfully"}


@router.post("/{task_id}/timer/start")
async def start_task_timer(task_id: str, user_id: CurrentUserId) -> dict:
    """Start the task's timer."""
    task = await task_timer.start_timer(task_id=task_id, user_id=user_id)
    return {"message": "Task timer started successfully", "task": Task.model_validate(task)}


@router.post("/{task_id}/timer/stop")
async def stop_task_timer(
    task_id: str,
    user_id: CurrentUserId,
    body: Annotated[TimerStopRequest | None, Body()] = None,
) -> dict:
    """Stop the task's timer and log the work."""
    body = body or TimerStopRequest()
    task = await task_timer.stop_timer(
        task_id=task_id,
        user_id=user_id,
        pages_completed=body.pages_completed,
        remarks=body.remarks,
    )
    return {"message": "Task timer stopped successfully", "task": Task.model_validate(task)}


@router.post("/workspace/{workspace_id}/timer/stop-all")
async def stop_all_task_timers(workspace_id: str, user_id: CurrentUserId) -> dict:
    """Stop every running timer in the workspace."""
    result = await task_timer.stop_all_timers(workspace_id=workspace_id, user_id=user_id)
    if result.stopped_count:
        message = f"Stopped {result.stopped_count} running task timer(s)."
    else:
        message = "No running task timers found."
    return {"message": message, **result.model_dump(by_alias=True)}

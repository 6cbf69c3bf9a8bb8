"""Task timer state machine: start, stop and bulk stop.

A task is either idle (``is_running`` false, no ``active_start_at``) or running
(``is_running`` true with ``active_start_at`` set). Every stop appends one
work-log and adds the elapsed seconds to the task; whole minutes are always
derived from the second total.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any

from worksync.core import db_client
from worksync.core.errors import (
    AppError,
    ConflictError,
    ErrorCode,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from worksync.core.logging import span
from worksync.models.service_models import StopAllResult
from worksync.services import role_service, work_log_service


logger = logging.getLogger(__name__)


def _now() -> datetime:
    """Current UTC time. Read once per operation."""
    return datetime.now(UTC)


def elapsed_seconds(active_start_at: datetime, now: datetime) -> int:
    """Whole seconds between start and now, at least one."""
    return max(1, math.floor((now - active_start_at).total_seconds()))


def duration_minutes(seconds: int) -> int:
    """Whole minutes for a run of the given length, at least one."""
    return max(1, seconds // 60)


async def _get_task(task_id: str) -> dict[str, Any]:
    try:
        return await db_client.get_record(collection="tasks", record_id=task_id)
    except KeyError as e:
        msg = "Task not found."
        raise NotFoundError(msg) from e


async def _ensure_timer_access(*, task_id: str, user_id: str) -> dict[str, Any]:
    """Load the task and require the user to be privileged or its assignee."""
    task = await _get_task(task_id)

    grant = await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=task["workspace_id"])
    is_assignee = task.get("assigned_to") is not None and str(task["assigned_to"]) == str(user_id)

    if not role_service.is_privileged(grant.role) and not is_assignee:
        msg = "You do not have permission to manage this task timer."
        raise UnauthorizedError(msg, code=ErrorCode.ERR_PERMISSION_DENIED)

    return task


async def start_timer(*, task_id: str, user_id: str) -> dict[str, Any]:
    """Start the timer on a task.

    Args:
        task_id: Task to start
        user_id: Acting user; must be privileged or the assignee

    Returns:
        Updated task record

    Raises:
        NotFoundError: If the task is missing or the user is not a member
        UnauthorizedError: If the user may not manage this task's timer
        ConflictError: If the timer is already running
    """
    with span("task_timer.start_timer"):
        task = await _ensure_timer_access(task_id=task_id, user_id=user_id)

        if task.get("is_running"):
            msg = "Task timer is already running."
            raise ConflictError(msg, code=ErrorCode.ERR_TIMER_ALREADY_RUNNING)

        now = _now().isoformat()
        data: dict[str, Any] = {"is_running": True, "active_start_at": now}
        if not task.get("first_started_at"):
            data["first_started_at"] = now

        try:
            updated = await db_client.update_record(
                collection="tasks",
                record_id=task_id,
                data=data,
                if_match={"is_running": False},
            )
        except db_client.StaleRecordError as e:
            msg = "Task timer is already running."
            raise ConflictError(msg, code=ErrorCode.ERR_TIMER_ALREADY_RUNNING) from e
        except KeyError as e:
            msg = "Task not found."
            raise NotFoundError(msg) from e

        logger.info("Task timer started", extra={"task_id": task_id, "user_id": user_id})
        return updated


async def _close_run(
    *,
    task: dict[str, Any],
    attributed_user_id: str,
    now: datetime,
    pages_completed: int | None = None,
    remarks: str | None = None,
) -> dict[str, Any]:
    """Account for a running task's active run and return it to idle.

    The work-log append and the task update commit together. The update only
    applies while the task is still running from the same start time.
    """
    active_start_at = db_client.parse_timestamp(task.get("active_start_at"))
    if active_start_at is None:
        msg = f"Task {task['id']} is running without a start time"
        raise InternalError(msg)

    seconds = elapsed_seconds(active_start_at, now)
    minutes = duration_minutes(seconds)

    current_seconds = task.get("total_seconds_spent")
    if current_seconds is None:
        current_seconds = (task.get("total_minutes_spent") or 0) * 60
    total_seconds = current_seconds + seconds

    data: dict[str, Any] = {
        "total_seconds_spent": total_seconds,
        "total_minutes_spent": total_seconds // 60,
        "last_stopped_at": now.isoformat(),
        "is_running": False,
        "active_start_at": None,
    }
    if pages_completed is not None:
        data["pages_completed"] = (task.get("pages_completed") or 0) + pages_completed
    if remarks is not None:
        data["remarks"] = remarks

    async with db_client.transaction():
        await work_log_service.record_work_log(
            task_id=task["id"],
            workspace_id=task["workspace_id"],
            user_id=attributed_user_id,
            started_at=active_start_at,
            stopped_at=now,
            duration_minutes=minutes,
            pages_completed=pages_completed,
            remarks=remarks,
        )
        updated = await db_client.update_record(
            collection="tasks",
            record_id=task["id"],
            data=data,
            if_match={"is_running": True, "active_start_at": task["active_start_at"]},
        )

    logger.info(
        "Task timer stopped",
        extra={"task_id": task["id"], "user_id": attributed_user_id, "elapsed_seconds": seconds},
    )
    return updated


async def stop_timer(
    *,
    task_id: str,
    user_id: str,
    pages_completed: int | None = None,
    remarks: str | None = None,
) -> dict[str, Any]:
    """Stop the timer on a task and log the work.

    Args:
        task_id: Task to stop
        user_id: Acting user; must be privileged or the assignee
        pages_completed: Pages completed in this run, added to the task total
        remarks: Remarks for this run, replacing the task's remarks

    Returns:
        Updated task record

    Raises:
        NotFoundError: If the task is missing or the user is not a member
        UnauthorizedError: If the user may not manage this task's timer
        ConflictError: If the timer is not running
        InternalError: If the task is running without a start time
    """
    with span("task_timer.stop_timer"):
        task = await _ensure_timer_access(task_id=task_id, user_id=user_id)

        if not task.get("is_running"):
            msg = "Task timer is not running."
            raise ConflictError(msg, code=ErrorCode.ERR_TIMER_NOT_RUNNING)

        try:
            return await _close_run(
                task=task,
                attributed_user_id=user_id,
                now=_now(),
                pages_completed=pages_completed,
                remarks=remarks,
            )
        except db_client.StaleRecordError as e:
            msg = "Task timer is not running."
            raise ConflictError(msg, code=ErrorCode.ERR_TIMER_NOT_RUNNING) from e
        except KeyError as e:
            msg = "Task not found."
            raise NotFoundError(msg) from e


async def stop_all_timers(*, workspace_id: str, user_id: str) -> StopAllResult:
    """Stop every running timer in a workspace on behalf of the workers.

    Each work-log is attributed to the task's assignee, else its creator, else
    the acting user. Tasks are stopped independently; a failure on one task is
    reported in the result and does not undo the others.

    Raises:
        NotFoundError: If the user is not a member
        UnauthorizedError: If the user is not an owner or admin
    """
    with span("task_timer.stop_all_timers"):
        grant = await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
        if not role_service.is_privileged(grant.role):
            msg = "Only admins can stop all running task timers."
            raise UnauthorizedError(msg, code=ErrorCode.ERR_PERMISSION_DENIED)

        running = await db_client.list_all_records(
            collection="tasks",
            filter_query=f'workspace_id = "{db_client.sanitize_param(workspace_id)}" && is_running = "true"',
        )

        now = _now()
        stopped_count = 0
        failed_task_ids: list[str] = []

        for task in running:
            attributed_user_id = task.get("assigned_to") or task.get("created_by") or user_id
            try:
                await _close_run(task=task, attributed_user_id=attributed_user_id, now=now)
            except (AppError, db_client.DatabaseError, KeyError, ValueError) as e:
                failed_task_ids.append(task["id"])
                logger.warning(
                    "Failed to stop task timer",
                    extra={"task_id": task["id"], "workspace_id": workspace_id, "error": str(e)},
                )
            else:
                stopped_count += 1

        logger.info(
            "Stopped running task timers",
            extra={
                "workspace_id": workspace_id,
                "user_id": user_id,
                "stopped_count": stopped_count,
                "failed_count": len(failed_task_ids),
            },
        )
        return StopAllResult(stopped_count=stopped_count, failed_task_ids=failed_task_ids)

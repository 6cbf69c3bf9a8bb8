"""Append-only work-log ledger."""

import logging
from datetime import UTC, datetime
from typing import Any

from worksync.core import db_client
from worksync.core.logging import span
from worksync.models.service_models import DateRange


logger = logging.getLogger(__name__)

COLLECTION = "task_work_logs"


async def record_work_log(
    *,
    task_id: str,
    workspace_id: str,
    user_id: str,
    started_at: datetime,
    stopped_at: datetime,
    duration_minutes: int,
    pages_completed: int | None = None,
    remarks: str | None = None,
) -> dict[str, Any]:
    """Append one work-log entry for a timer stop.

    Args:
        task_id: Task the time was logged against
        workspace_id: Workspace of the task
        user_id: User the work is attributed to
        started_at: Start of the timer run
        stopped_at: End of the timer run
        duration_minutes: Whole minutes worked, at least one
        pages_completed: Pages completed in this run
        remarks: Remarks recorded on stop

    Returns:
        Created work-log record

    Raises:
        ValueError: If the duration is below one minute
    """
    # Guard: every entry accounts for at least one minute
    if duration_minutes < 1:
        msg = f"Work-log duration must be at least 1 minute, got {duration_minutes}"
        raise ValueError(msg)

    with span("work_log_service.record_work_log"):
        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "task_id": task_id,
                "workspace_id": workspace_id,
                "user_id": user_id,
                "started_at": started_at.astimezone(UTC).isoformat(),
                "stopped_at": stopped_at.astimezone(UTC).isoformat(),
                "duration_minutes": duration_minutes,
                "pages_completed": pages_completed,
                "remarks": remarks,
            },
        )

        logger.info(
            "Recorded work log",
            extra={"task_id": task_id, "user_id": user_id, "duration_minutes": duration_minutes},
        )
        return record


async def list_work_logs(
    *,
    workspace_id: str,
    user_id: str | None = None,
    task_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[dict[str, Any]]:
    """List work-logs in a workspace, newest first.

    Args:
        workspace_id: Workspace to scope the ledger to
        user_id: Only entries attributed to this user
        task_id: Only entries for this task
        date_from: Only entries stopped at or after this moment
        date_to: Only entries stopped at or before this moment

    Returns:
        Matching work-log records ordered by stop time, newest first
    """
    with span("work_log_service.list_work_logs"):
        filters = [f'workspace_id = "{db_client.sanitize_param(workspace_id)}"']
        if user_id:
            filters.append(f'user_id = "{db_client.sanitize_param(user_id)}"')
        if task_id:
            filters.append(f'task_id = "{db_client.sanitize_param(task_id)}"')
        # Stored stop times are UTC isoformat strings, which sort chronologically
        if date_from:
            filters.append(f'stopped_at >= "{date_from.astimezone(UTC).isoformat()}"')
        if date_to:
            filters.append(f'stopped_at <= "{date_to.astimezone(UTC).isoformat()}"')

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=" && ".join(filters),
            sort="-stopped_at",
        )

        date_range = DateRange(start=date_from, end=date_to)
        in_range = [
            record for record in records if date_range.contains(db_client.parse_timestamp(record["stopped_at"]))
        ]

        in_range.sort(key=lambda r: db_client.parse_timestamp(r["stopped_at"]), reverse=True)
        return in_range

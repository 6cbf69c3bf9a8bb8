"""Project service for CRUD operations within a workspace."""

import logging
from typing import Any

from worksync.core import db_client
from worksync.core.config import constants
from worksync.core.errors import NotFoundError
from worksync.core.logging import span
from worksync.domain.create_models import ProjectCreate, ProjectUpdate


logger = logging.getLogger(__name__)


async def create_project(*, workspace_id: str, user_id: str, data: ProjectCreate) -> dict[str, Any]:
    """Create a project in a workspace."""
    with span("project_service.create_project"):
        record = await db_client.create_record(
            collection="projects",
            data={
                "workspace_id": workspace_id,
                "name": data.name.strip(),
                "emoji": data.emoji,
                "description": data.description,
                "status": data.status.value,
                "client_id": data.client_id,
                "client_name": data.client_name,
                "created_by": user_id,
            },
        )
        logger.info("Created project", extra={"project_id": record["id"], "workspace_id": workspace_id})
        return record


async def list_projects(
    *,
    workspace_id: str,
    page_size: int = constants.DEFAULT_PAGE_SIZE,
    page_number: int = 1,
) -> list[dict[str, Any]]:
    """List a workspace's projects, newest first."""
    return await db_client.list_records(
        collection="projects",
        filter_query=f'workspace_id = "{db_client.sanitize_param(workspace_id)}"',
        sort="-created",
        page=page_number,
        per_page=page_size,
    )


async def get_project(*, workspace_id: str, project_id: str) -> dict[str, Any]:
    """Fetch a project, requiring it to belong to the workspace.

    Raises:
        NotFoundError: If the project is missing or in another workspace
    """
    try:
        project = await db_client.get_record(collection="projects", record_id=project_id)
    except KeyError as e:
        msg = "Project not found or does not belong to this workspace"
        raise NotFoundError(msg) from e

    if str(project.get("workspace_id")) != str(workspace_id):
        msg = "Project not found or does not belong to this workspace"
        raise NotFoundError(msg)
    return project


async def update_project(*, workspace_id: str, project_id: str, data: ProjectUpdate) -> dict[str, Any]:
    """Apply the fields set on the update to a project."""
    with span("project_service.update_project"):
        project = await get_project(workspace_id=workspace_id, project_id=project_id)

        changes = data.model_dump(exclude_unset=True)
        # name and status are required columns; null means unchanged
        for required in ("name", "status"):
            if changes.get(required, "") is None:
                del changes[required]
        if not changes:
            return project
        if "status" in changes:
            changes["status"] = str(changes["status"])

        updated = await db_client.update_record(collection="projects", record_id=project_id, data=changes)
        logger.info("Updated project", extra={"project_id": project_id, "fields": sorted(changes)})
        return updated


async def delete_project(*, workspace_id: str, project_id: str) -> None:
    """Delete a project together with its tasks."""
    with span("project_service.delete_project"):
        await get_project(workspace_id=workspace_id, project_id=project_id)

        async with db_client.transaction():
            tasks = await db_client.list_all_records(
                collection="tasks",
                filter_query=f'project_id = "{db_client.sanitize_param(project_id)}"',
            )
            for task in tasks:
                await db_client.delete_record(collection="tasks", record_id=task["id"])
            await db_client.delete_record(collection="projects", record_id=project_id)

        logger.info("Deleted project", extra={"project_id": project_id, "deleted_tasks": len(tasks)})

"""Project routes within a workspace."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from worksync.core.config import constants
from worksync.domain.create_models import ProjectCreate, ProjectUpdate
from worksync.domain.project import Project
from worksync.domain.role import Permission
from worksync.interface.deps import CurrentUserId
from worksync.services import project_service, role_service


router = APIRouter(prefix="/workspaces/{workspace_id}/projects", tags=["projects"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(workspace_id: str, body: ProjectCreate, user_id: CurrentUserId) -> dict:
    """Create a project."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.CREATE_PROJECT])
    project = await project_service.create_project(workspace_id=workspace_id, user_id=user_id, data=body)
    return {"message": "Project created successfully", "project": Project.model_validate(project)}


@router.get("")
async def list_projects(
    workspace_id: str,
    user_id: CurrentUserId,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=constants.MAX_PAGE_SIZE)] = constants.DEFAULT_PAGE_SIZE,
    page_number: Annotated[int, Query(alias="pageNumber", ge=1)] = 1,
) -> dict:
    """List the workspace's projects."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    projects = await project_service.list_projects(
        workspace_id=workspace_id,
        page_size=page_size,
        page_number=page_number,
    )
    return {
        "message": "Projects fetched successfully",
        "projects": [Project.model_validate(project) for project in projects],
    }


@router.get("/{project_id}")
async def get_project(workspace_id: str, project_id: str, user_id: CurrentUserId) -> dict:
    """Fetch one project."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    project = await project_service.get_project(workspace_id=workspace_id, project_id=project_id)
    return {"message": "Project fetched successfully", "project": Project.model_validate(project)}


@router.put("/{project_id}")
async def update_project(workspace_id: str, project_id: str, body: ProjectUpdate, user_id: CurrentUserId) -> dict:
    """Update a project."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.EDIT_PROJECT])
    project = await project_service.update_project(workspace_id=workspace_id, project_id=project_id, data=body)
    return {"message": "Project updated successfully", "project": Project.model_validate(project)}


@router.delete("/{project_id}")
async def delete_project(workspace_id: str, project_id: str, user_id: CurrentUserId) -> dict:
    """Delete a project and its tasks."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.DELETE_PROJECT])
    await project_service.delete_project(workspace_id=workspace_id, project_id=project_id)
    return {"message": "Project deleted successfully"}

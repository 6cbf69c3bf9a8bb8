"""Workspace routes: workspaces, membership, analytics and progress."""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from worksync.domain.create_models import ChangeRoleRequest, WorkspaceCreate, WorkspaceUpdate
from worksync.domain.role import ROLE_PERMISSIONS, Permission
from worksync.domain.user import Workspace
from worksync.interface.deps import CurrentUserId
from worksync.services import progress_service, role_service, workspace_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, user_id: CurrentUserId) -> dict:
    """Create a workspace owned by the caller."""
    workspace = await workspace_service.create_workspace(
        user_id=user_id,
        name=body.name,
        description=body.description,
    )
    return {"message": "Workspace created successfully", "workspace": Workspace.model_validate(workspace)}


@router.get("/all")
async def list_user_workspaces(user_id: CurrentUserId) -> dict:
    """Every workspace the caller belongs to."""
    workspaces = await workspace_service.list_user_workspaces(user_id=user_id)
    return {
        "message": "User workspaces fetched successfully",
        "workspaces": [Workspace.model_validate(workspace) for workspace in workspaces],
    }


@router.post("/join/{invite_code}")
async def join_workspace(invite_code: str, user_id: CurrentUserId) -> dict:
    """Join a workspace with its invite code."""
    workspace = await workspace_service.join_workspace_by_invite(user_id=user_id, invite_code=invite_code)
    return {"message": "Successfully joined the workspace", "workspaceId": workspace["id"]}


@router.get("/{workspace_id}")
async def get_workspace(workspace_id: str, user_id: CurrentUserId) -> dict:
    """Fetch a workspace the caller belongs to."""
    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    workspace = await workspace_service.get_workspace(workspace_id=workspace_id)
    return {"message": "Workspace fetched successfully", "workspace": Workspace.model_validate(workspace)}


@router.put("/{workspace_id}")
async def update_workspace(workspace_id: str, body: WorkspaceUpdate, user_id: CurrentUserId) -> dict:
    """Rename a workspace or change its description."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.EDIT_WORKSPACE])
    workspace = await workspace_service.update_workspace(workspace_id=workspace_id, data=body)
    return {"message": "Workspace updated successfully", "workspace": Workspace.model_validate(workspace)}


@router.delete("/{workspace_id}")
async def delete_workspace(workspace_id: str, user_id: CurrentUserId) -> dict:
    """Delete a workspace and everything in it."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.DELETE_WORKSPACE])
    current = await workspace_service.delete_workspace(workspace_id=workspace_id, user_id=user_id)
    return {"message": "Workspace deleted successfully", "currentWorkspace": current["id"] if current else None}


@router.get("/{workspace_id}/members")
async def get_workspace_members(workspace_id: str, user_id: CurrentUserId) -> dict:
    """List members and the available roles."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    members = await workspace_service.get_workspace_members(workspace_id=workspace_id)
    roles = [
        {"name": role.value, "permissions": sorted(p.value for p in permissions)}
        for role, permissions in ROLE_PERMISSIONS.items()
    ]
    return {"message": "Workspace members retrieved successfully", "members": members, "roles": roles}


@router.put("/{workspace_id}/members/role")
async def change_member_role(workspace_id: str, body: ChangeRoleRequest, user_id: CurrentUserId) -> dict:
    """Change a member's role."""
    await role_service.authorize(
        user_id=user_id,
        workspace_id=workspace_id,
        required=[Permission.CHANGE_MEMBER_ROLE],
    )
    member = await workspace_service.change_member_role(
        workspace_id=workspace_id,
        member_user_id=body.member_id,
        role=body.role,
    )
    return {"message": "Member Role changed successfully", "member": member}


@router.get("/{workspace_id}/analytics")
async def get_workspace_analytics(workspace_id: str, user_id: CurrentUserId) -> dict:
    """Headline task counts."""
    await role_service.authorize(user_id=user_id, workspace_id=workspace_id, required=[Permission.VIEW_ONLY])
    analytics = await progress_service.get_workspace_analytics(workspace_id=workspace_id)
    return {"message": "Workspace analytics retrieved successfully", "analytics": analytics}


@router.get("/{workspace_id}/progress/summary")
async def get_progress_summary(
    workspace_id: str,
    user_id: CurrentUserId,
    date_from: Annotated[str | None, Query(alias="from")] = None,
    date_to: Annotated[str | None, Query(alias="to")] = None,
) -> dict:
    """Workspace-wide progress for a date range."""
    await role_service.authorize(
        user_id=user_id,
        workspace_id=workspace_id,
        required=[Permission.MANAGE_WORKSPACE_SETTINGS],
    )
    date_range = progress_service.parse_date_range(date_from, date_to)
    summary = await progress_service.get_progress_summary(workspace_id=workspace_id, date_range=date_range)
    return {
        "message": "Workspace progress summary retrieved successfully",
        **summary.model_dump(by_alias=True, mode="json"),
    }


@router.get("/{workspace_id}/progress/employees/{employee_id}")
async def get_employee_progress(
    workspace_id: str,
    employee_id: str,
    user_id: CurrentUserId,
    date_from: Annotated[str | None, Query(alias="from")] = None,
    date_to: Annotated[str | None, Query(alias="to")] = None,
) -> dict:
    """Progress detail for one member over a date range."""
    await role_service.authorize(
        user_id=user_id,
        workspace_id=workspace_id,
        required=[Permission.MANAGE_WORKSPACE_SETTINGS],
    )
    date_range = progress_service.parse_date_range(date_from, date_to)
    progress = await progress_service.get_employee_progress(
        workspace_id=workspace_id,
        employee_id=employee_id,
        date_range=date_range,
    )
    return {
        "message": "Workspace employee progress retrieved successfully",
        **progress.model_dump(by_alias=True, mode="json"),
    }

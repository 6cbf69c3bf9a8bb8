"""Role seeding, membership role resolution and the authorization guard."""

import logging
from collections.abc import Iterable

from worksync.core import db_client
from worksync.core.errors import ErrorCode, NotFoundError, UnauthorizedError
from worksync.core.logging import log_with_context, span
from worksync.domain.role import PRIVILEGED_ROLES, ROLE_PERMISSIONS, Permission, Role, RoleGrant, permissions_for


logger = logging.getLogger(__name__)


async def ensure_roles_seeded() -> int:
    """Create any missing role record from the permission table.

    Safe to run on every startup; existing roles are left untouched.

    Returns:
        Number of role records created
    """
    with span("role_service.ensure_roles_seeded"):
        created = 0
        for role, permissions in ROLE_PERMISSIONS.items():
            existing = await db_client.get_first_record(
                collection="roles",
                filter_query=f'name = "{sanitize(role)}"',
            )
            if existing:
                continue

            await db_client.create_record(
                collection="roles",
                data={"name": role.value, "permissions": sorted(p.value for p in permissions)},
            )
            created += 1
            logger.info("Seeded role", extra={"role": role.value})

        return created


def sanitize(value: str) -> str:
    """Escape a value for use inside a filter query."""
    return db_client.sanitize_param(value)


async def get_role_record(role: Role) -> dict:
    """Fetch the stored record for a role.

    Raises:
        NotFoundError: If the role has not been seeded
    """
    record = await db_client.get_first_record(collection="roles", filter_query=f'name = "{sanitize(role)}"')
    if not record:
        msg = f"Role {role} not found"
        raise NotFoundError(msg)
    return record


async def get_membership(*, user_id: str, workspace_id: str) -> dict | None:
    """Return the membership record tying a user to a workspace, if any."""
    return await db_client.get_first_record(
        collection="members",
        filter_query=f'user_id = "{sanitize(user_id)}" && workspace_id = "{sanitize(workspace_id)}"',
    )


async def get_member_role_in_workspace(*, user_id: str, workspace_id: str) -> RoleGrant:
    """Resolve a user's role and permissions within a workspace.

    Args:
        user_id: Acting user
        workspace_id: Workspace to resolve the role in

    Returns:
        The resolved grant

    Raises:
        NotFoundError: If the user is not a member or the role record is missing
    """
    with span("role_service.get_member_role_in_workspace"):
        member = await get_membership(user_id=user_id, workspace_id=workspace_id)
        if not member:
            msg = "You are not a member of this workspace"
            raise NotFoundError(msg, code=ErrorCode.ERR_NOT_A_MEMBER)

        try:
            role_record = await db_client.get_record(collection="roles", record_id=member["role_id"])
        except KeyError as e:
            msg = "Role not found"
            raise NotFoundError(msg) from e

        try:
            role = Role(role_record["name"])
        except ValueError as e:
            msg = f"Unknown role: {role_record['name']}"
            raise NotFoundError(msg) from e

        return RoleGrant(role=role, permissions=permissions_for(role), member_id=member["id"])


def role_guard(grant: RoleGrant, required: Iterable[Permission]) -> None:
    """Require the grant to hold at least one of the required permissions.

    Raises:
        UnauthorizedError: If none of the permissions are held
    """
    required = list(required)
    if not grant.has_any(required):
        log_with_context(
            logger,
            "info",
            "Permission denied",
            role=grant.role.value,
            member_id=grant.member_id,
            required=[p.value for p in required],
        )
        msg = "You do not have the necessary permissions to perform this action"
        raise UnauthorizedError(msg, code=ErrorCode.ERR_PERMISSION_DENIED)


async def authorize(*, user_id: str, workspace_id: str, required: Iterable[Permission]) -> RoleGrant:
    """Resolve the user's role in the workspace and guard it against the required permissions."""
    grant = await get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    role_guard(grant, required)
    return grant


def is_privileged(role: Role) -> bool:
    """Whether the role may act on any task in the workspace."""
    return role in PRIVILEGED_ROLES

"""Account registration, workspace bootstrap and membership management."""

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import UTC, datetime
from typing import Any

from worksync.core import db_client
from worksync.core.config import constants
from worksync.core.errors import BadRequestError, ErrorCode, NotFoundError, UnauthorizedError
from worksync.core.logging import span
from worksync.domain.create_models import WorkspaceUpdate
from worksync.domain.role import Role
from worksync.domain.user import WorkspaceMember
from worksync.services import file_library, role_service


logger = logging.getLogger(__name__)

_HASH_ALGORITHM = "pbkdf2_sha256"

# Deleted with their workspace, children before parents
_WORKSPACE_SCOPED_COLLECTIONS = ("tasks", "projects", "members", "task_work_logs", "file_access_logs")


def hash_password(password: str, *, salt: bytes | None = None, iterations: int | None = None) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""
    salt = salt or secrets.token_bytes(16)
    iterations = iterations or constants.PASSWORD_HASH_ITERATIONS
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "$".join(
        [
            _HASH_ALGORITHM,
            str(iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        ]
    )


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    try:
        algorithm, iterations, salt_b64, _ = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != _HASH_ALGORITHM:
        return False

    computed = hash_password(password, salt=base64.b64decode(salt_b64), iterations=int(iterations))
    return hmac.compare_digest(computed, password_hash)


def _public_user(record: dict[str, Any]) -> dict[str, Any]:
    """Drop credentials from a user record."""
    return {key: value for key, value in record.items() if key != "password_hash"}


def _generate_invite_code() -> str:
    return secrets.token_urlsafe(6)


async def _create_workspace_with_owner(*, user_id: str, name: str, description: str | None) -> dict[str, Any]:
    """Create a workspace and its OWNER membership. Callers provide the transaction."""
    owner_role = await role_service.get_role_record(Role.OWNER)

    workspace = await db_client.create_record(
        collection="workspaces",
        data={
            "name": name,
            "description": description,
            "owner_id": user_id,
            "invite_code": _generate_invite_code(),
        },
    )
    await db_client.create_record(
        collection="members",
        data={
            "user_id": user_id,
            "workspace_id": workspace["id"],
            "role_id": owner_role["id"],
            "joined_at": datetime.now(UTC).isoformat(),
        },
    )
    return workspace


async def register_user(*, name: str, email: str, password: str) -> dict[str, Any]:
    """Create an account with a default workspace the user owns.

    The user, workspace, membership and current-workspace link are created in
    one transaction; any failure leaves nothing behind.

    Raises:
        BadRequestError: If the email is already registered
    """
    with span("workspace_service.register_user"):
        email = email.strip().lower()
        existing = await db_client.get_first_record(
            collection="users",
            filter_query=f'email = "{db_client.sanitize_param(email)}"',
        )
        if existing:
            msg = "Email already exists"
            raise BadRequestError(msg, code=ErrorCode.ERR_ALREADY_EXISTS)

        async with db_client.transaction():
            user = await db_client.create_record(
                collection="users",
                data={
                    "name": name.strip(),
                    "email": email,
                    "password_hash": hash_password(password),
                    "current_workspace_id": None,
                },
            )
            workspace = await _create_workspace_with_owner(
                user_id=user["id"],
                name="My Workspace",
                description=f"Workspace created for {user['name']}",
            )
            user = await db_client.update_record(
                collection="users",
                record_id=user["id"],
                data={"current_workspace_id": workspace["id"]},
            )

        logger.info("Registered user", extra={"user_id": user["id"], "workspace_id": workspace["id"]})
        return _public_user(user)


async def authenticate_user(*, email: str, password: str) -> dict[str, Any]:
    """Verify credentials and return the user.

    Raises:
        UnauthorizedError: If the email is unknown or the password is wrong
    """
    with span("workspace_service.authenticate_user"):
        user = await db_client.get_first_record(
            collection="users",
            filter_query=f'email = "{db_client.sanitize_param(email.strip().lower())}"',
        )
        if not user or not verify_password(password, user.get("password_hash", "")):
            logger.info("Failed login attempt")
            msg = "Invalid email or password"
            raise UnauthorizedError(msg)
        return _public_user(user)


async def get_user(*, user_id: str) -> dict[str, Any]:
    """Fetch a user without credentials.

    Raises:
        NotFoundError: If the user does not exist
    """
    try:
        return _public_user(await db_client.get_record(collection="users", record_id=user_id))
    except KeyError as e:
        msg = "User not found"
        raise NotFoundError(msg) from e


async def create_workspace(*, user_id: str, name: str, description: str | None = None) -> dict[str, Any]:
    """Create a workspace owned by the user and make it their current workspace."""
    with span("workspace_service.create_workspace"):
        async with db_client.transaction():
            workspace = await _create_workspace_with_owner(user_id=user_id, name=name.strip(), description=description)
            await db_client.update_record(
                collection="users",
                record_id=user_id,
                data={"current_workspace_id": workspace["id"]},
            )

        logger.info("Created workspace", extra={"workspace_id": workspace["id"], "user_id": user_id})
        return workspace


async def get_workspace(*, workspace_id: str) -> dict[str, Any]:
    """Fetch a workspace.

    Raises:
        NotFoundError: If the workspace does not exist
    """
    try:
        return await db_client.get_record(collection="workspaces", record_id=workspace_id)
    except KeyError as e:
        msg = "Workspace not found"
        raise NotFoundError(msg) from e


async def join_workspace_by_invite(*, user_id: str, invite_code: str) -> dict[str, Any]:
    """Add the user to the workspace with this invite code as a MEMBER.

    Raises:
        NotFoundError: If no workspace has this invite code
        BadRequestError: If the user is already a member
    """
    with span("workspace_service.join_workspace_by_invite"):
        workspace = await db_client.get_first_record(
            collection="workspaces",
            filter_query=f'invite_code = "{db_client.sanitize_param(invite_code)}"',
        )
        if not workspace:
            msg = "Invalid invite code or workspace not found"
            raise NotFoundError(msg)

        existing = await role_service.get_membership(user_id=user_id, workspace_id=workspace["id"])
        if existing:
            msg = "You are already a member of this workspace"
            raise BadRequestError(msg, code=ErrorCode.ERR_ALREADY_EXISTS)

        member_role = await role_service.get_role_record(Role.MEMBER)
        await db_client.create_record(
            collection="members",
            data={
                "user_id": user_id,
                "workspace_id": workspace["id"],
                "role_id": member_role["id"],
                "joined_at": datetime.now(UTC).isoformat(),
            },
        )

        logger.info("User joined workspace", extra={"user_id": user_id, "workspace_id": workspace["id"]})
        return workspace


async def get_workspace_members(*, workspace_id: str) -> list[WorkspaceMember]:
    """List a workspace's members with their names and roles."""
    with span("workspace_service.get_workspace_members"):
        members = await db_client.list_all_records(
            collection="members",
            filter_query=f'workspace_id = "{db_client.sanitize_param(workspace_id)}"',
            sort="+joined_at",
        )
        roles = {role["id"]: role["name"] for role in await db_client.list_all_records(collection="roles")}

        result = []
        for member in members:
            try:
                user = await db_client.get_record(collection="users", record_id=member["user_id"])
            except KeyError:
                logger.warning("Member user record missing", extra={"member_id": member["id"]})
                continue
            result.append(
                WorkspaceMember(
                    id=member["id"],
                    user_id=member["user_id"],
                    name=user["name"],
                    email=user["email"],
                    role=roles[member["role_id"]],
                    role_id=member["role_id"],
                    joined_at=member["joined_at"],
                )
            )
        return result


async def change_member_role(*, workspace_id: str, member_user_id: str, role: Role) -> dict[str, Any]:
    """Give a member a different role.

    Raises:
        NotFoundError: If the user is not a member
        BadRequestError: If the member is the workspace owner
    """
    with span("workspace_service.change_member_role"):
        member = await role_service.get_membership(user_id=member_user_id, workspace_id=workspace_id)
        if not member:
            msg = "Member not found in the workspace"
            raise NotFoundError(msg, code=ErrorCode.ERR_NOT_A_MEMBER)

        workspace = await get_workspace(workspace_id=workspace_id)
        # Guard: ownership is not transferable through role changes
        if str(workspace["owner_id"]) == str(member_user_id):
            msg = "The workspace owner's role cannot be changed"
            raise BadRequestError(msg)

        role_record = await role_service.get_role_record(role)
        updated = await db_client.update_record(
            collection="members",
            record_id=member["id"],
            data={"role_id": role_record["id"]},
        )

        logger.info(
            "Changed member role",
            extra={"workspace_id": workspace_id, "user_id": member_user_id, "role": role.value},
        )
        return updated


async def update_workspace(*, workspace_id: str, data: WorkspaceUpdate) -> dict[str, Any]:
    """Apply the fields set on the update to a workspace.

    Raises:
        NotFoundError: If the workspace does not exist
    """
    with span("workspace_service.update_workspace"):
        workspace = await get_workspace(workspace_id=workspace_id)

        changes = data.model_dump(exclude_unset=True)
        # name is a required column; null means unchanged
        if changes.get("name", "") is None:
            del changes["name"]
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip() or None
        if not changes:
            return workspace

        updated = await db_client.update_record(collection="workspaces", record_id=workspace_id, data=changes)
        logger.info("Updated workspace", extra={"workspace_id": workspace_id, "fields": sorted(changes)})
        return updated


async def list_user_workspaces(*, user_id: str) -> list[dict[str, Any]]:
    """Every workspace the user belongs to, in the order they joined."""
    with span("workspace_service.list_user_workspaces"):
        memberships = await db_client.list_all_records(
            collection="members",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
            sort="+joined_at",
        )

        workspaces = []
        for member in memberships:
            try:
                workspaces.append(await db_client.get_record(collection="workspaces", record_id=member["workspace_id"]))
            except KeyError:
                logger.warning("Membership points at a missing workspace", extra={"member_id": member["id"]})
        return workspaces


async def _first_workspace_id(user_id: str) -> str | None:
    memberships = await db_client.list_records(
        collection="members",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        sort="+joined_at",
        per_page=1,
    )
    return memberships[0]["workspace_id"] if memberships else None


async def delete_workspace(*, workspace_id: str, user_id: str) -> dict[str, Any] | None:
    """Delete a workspace with everything scoped to it.

    Members, projects, tasks, work-logs and file access logs go in one
    transaction together with the workspace. Users who had it open are moved
    to the earliest-joined workspace they still belong to. The file library
    folder is removed once the transaction has committed.

    Returns:
        The caller's current workspace afterwards, or None if they belong to no other

    Raises:
        NotFoundError: If the workspace does not exist
        UnauthorizedError: If the caller is not the workspace owner
    """
    with span("workspace_service.delete_workspace"):
        workspace = await get_workspace(workspace_id=workspace_id)
        # Guard: only the recorded owner, not any OWNER-role member
        if str(workspace["owner_id"]) != str(user_id):
            msg = "Only the workspace owner can delete the workspace"
            raise UnauthorizedError(msg, code=ErrorCode.ERR_PERMISSION_DENIED)

        scope = f'workspace_id = "{db_client.sanitize_param(workspace_id)}"'
        removed: dict[str, int] = {}
        async with db_client.transaction():
            for collection in _WORKSPACE_SCOPED_COLLECTIONS:
                removed[collection] = await db_client.delete_records(collection=collection, filter_query=scope)
            await db_client.delete_record(collection="workspaces", record_id=workspace_id)

            displaced = await db_client.list_all_records(
                collection="users",
                filter_query=f'current_workspace_id = "{db_client.sanitize_param(workspace_id)}"',
            )
            for user in displaced:
                await db_client.update_record(
                    collection="users",
                    record_id=user["id"],
                    data={"current_workspace_id": await _first_workspace_id(user["id"])},
                )

        try:
            await file_library.remove_workspace_root(workspace_id)
        except OSError as e:
            logger.warning(
                "Failed to remove workspace folder",
                extra={"workspace_id": workspace_id, "error": str(e)},
            )

        logger.info(
            "Deleted workspace",
            extra={"workspace_id": workspace_id, "user_id": user_id, "displaced_users": len(displaced), **removed},
        )

        current_id = (await get_user(user_id=user_id)).get("current_workspace_id")
        return await get_workspace(workspace_id=current_id) if current_id else None

"""Pytest configuration and fixtures for integration tests against SQLite."""

import pytest

from worksync.domain.create_models import ProjectCreate
from worksync.domain.role import Role
from worksync.services import project_service, role_service, workspace_service
from tests.unit.factories import WorkspaceFixture


async def _register(name: str, email: str) -> str:
    user = await workspace_service.register_user(name=name, email=email, password="integration-pass")
    return user["id"]


@pytest.fixture
async def sqlite_workspace(sqlite_db) -> WorkspaceFixture:
    """A workspace built through the real services on a real database.

    The owner registers, everyone else joins with the invite code and is then
    given their role by the owner.
    """
    await role_service.ensure_roles_seeded()

    owner_id = await _register("Olivia Owner", "owner@example.com")
    owner = await workspace_service.get_user(user_id=owner_id)
    workspace = await workspace_service.get_workspace(workspace_id=owner["current_workspace_id"])

    ids = {}
    for key, name, role in (
        ("admin_id", "Adam Admin", Role.ADMIN),
        ("member_id", "Mia Member", Role.MEMBER),
        ("viewer_id", "Victor Viewer", Role.VIEWER),
    ):
        user_id = await _register(name, f"{key.removesuffix('_id')}@example.com")
        await workspace_service.join_workspace_by_invite(user_id=user_id, invite_code=workspace["invite_code"])
        if role != Role.MEMBER:
            await workspace_service.change_member_role(
                workspace_id=workspace["id"],
                member_user_id=user_id,
                role=role,
            )
        ids[key] = user_id

    outsider_id = await _register("Oscar Outsider", "outsider@example.com")

    project = await project_service.create_project(
        workspace_id=workspace["id"],
        user_id=owner_id,
        data=ProjectCreate(name="Atlas of Birds", client_id="acme", client_name="Acme Books"),
    )

    return WorkspaceFixture(
        workspace_id=workspace["id"],
        project_id=project["id"],
        owner_id=owner_id,
        outsider_id=outsider_id,
        **ids,
    )

"""Pytest configuration and fixtures for unit tests."""

import pytest

from worksync.core.config import constants, settings
from worksync.domain.role import Role
from worksync.services import role_service
from tests.unit.factories import WorkspaceFixture, add_member, add_user
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db, tmp_path):
    """Patches worksync.core.db_client functions to use InMemoryDBClient.

    Also points the file storage root at a per-test temporary folder and
    lowers the password hashing cost.
    """

    # Patch all db_client functions
    monkeypatch.setattr("worksync.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("worksync.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("worksync.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("worksync.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("worksync.core.db_client.delete_records", in_memory_db.delete_records)
    monkeypatch.setattr("worksync.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("worksync.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("worksync.core.db_client.transaction", in_memory_db.transaction)

    monkeypatch.setattr(settings, "file_storage_root", str(tmp_path / "storage"))
    monkeypatch.setattr(constants, "PASSWORD_HASH_ITERATIONS", 1000)

    return in_memory_db


@pytest.fixture
async def seeded_roles(patched_db):
    """Seeds the four workspace roles."""
    await role_service.ensure_roles_seeded()
    return patched_db


@pytest.fixture
async def workspace(seeded_roles) -> WorkspaceFixture:
    """A workspace with an owner, admin, member, viewer, a non-member and one project."""
    db = seeded_roles
    owner_id = await add_user(db, "Olivia Owner", "owner@example.com")
    admin_id = await add_user(db, "Adam Admin", "admin@example.com")
    member_id = await add_user(db, "Mia Member", "member@example.com")
    viewer_id = await add_user(db, "Victor Viewer", "viewer@example.com")
    outsider_id = await add_user(db, "Oscar Outsider", "outsider@example.com")

    workspace = await db.create_record(
        "workspaces",
        {"name": "Press", "description": None, "owner_id": owner_id, "invite_code": "press-invite"},
    )
    workspace_id = workspace["id"]

    for user_id, role in (
        (owner_id, Role.OWNER),
        (admin_id, Role.ADMIN),
        (member_id, Role.MEMBER),
        (viewer_id, Role.VIEWER),
    ):
        await add_member(db, user_id=user_id, workspace_id=workspace_id, role=role)

    project = await db.create_record(
        "projects",
        {
            "workspace_id": workspace_id,
            "name": "Atlas of Birds",
            "emoji": None,
            "description": None,
            "status": "ACTIVE",
            "client_id": "acme",
            "client_name": "Acme Books",
            "created_by": owner_id,
        },
    )

    return WorkspaceFixture(
        workspace_id=workspace_id,
        project_id=project["id"],
        owner_id=owner_id,
        admin_id=admin_id,
        member_id=member_id,
        viewer_id=viewer_id,
        outsider_id=outsider_id,
    )


"""Unit tests for project_service module."""

import pytest

from worksync.core.errors import NotFoundError
from worksync.domain.create_models import ProjectCreate, ProjectUpdate
from worksync.domain.project import ProjectStatus
from worksync.services import project_service
from tests.unit.factories import add_task


@pytest.mark.unit
class TestProjectService:
    """Tests for project CRUD."""

    async def test_create_project(self, workspace):
        """Test a project is created with a trimmed name and the creator recorded."""
        project = await project_service.create_project(
            workspace_id=workspace.workspace_id,
            user_id=workspace.admin_id,
            data=ProjectCreate(name="  Herbarium  ", client_id="flora", client_name="Flora Press"),
        )

        assert project["name"] == "Herbarium"
        assert project["status"] == "ACTIVE"
        assert project["created_by"] == workspace.admin_id
        assert project["client_id"] == "flora"

    async def test_list_projects_newest_first(self, workspace):
        """Test projects are listed newest first and paged."""
        for name in ("One", "Two"):
            await project_service.create_project(
                workspace_id=workspace.workspace_id,
                user_id=workspace.owner_id,
                data=ProjectCreate(name=name),
            )

        first_page = await project_service.list_projects(workspace_id=workspace.workspace_id, page_size=2)
        second_page = await project_service.list_projects(
            workspace_id=workspace.workspace_id,
            page_size=2,
            page_number=2,
        )

        assert [p["name"] for p in first_page] == ["Two", "One"]
        assert [p["name"] for p in second_page] == ["Atlas of Birds"]

    async def test_get_project_wrong_workspace(self, workspace):
        """Test a project is invisible through another workspace."""
        with pytest.raises(NotFoundError):
            await project_service.get_project(workspace_id="31337", project_id=workspace.project_id)

    async def test_get_missing_project(self, workspace):
        """Test a missing project is NotFoundError."""
        with pytest.raises(NotFoundError):
            await project_service.get_project(workspace_id=workspace.workspace_id, project_id="999999")

    async def test_update_project(self, workspace):
        """Test set fields change and null required fields are ignored."""
        updated = await project_service.update_project(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            data=ProjectUpdate(name=None, status=ProjectStatus.COMPLETED, emoji="🐦"),
        )

        assert updated["name"] == "Atlas of Birds"
        assert updated["status"] == "COMPLETED"
        assert updated["emoji"] == "🐦"

    async def test_update_nothing(self, workspace):
        """Test an empty update returns the project unchanged."""
        project = await project_service.update_project(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            data=ProjectUpdate(),
        )

        assert project["id"] == workspace.project_id

    async def test_delete_project_removes_tasks(self, workspace, patched_db):
        """Test deleting a project deletes its tasks too."""
        for _ in range(2):
            await add_task(
                patched_db,
                workspace_id=workspace.workspace_id,
                project_id=workspace.project_id,
                created_by=workspace.owner_id,
            )

        await project_service.delete_project(workspace_id=workspace.workspace_id, project_id=workspace.project_id)

        assert patched_db.all_records("tasks") == []
        assert patched_db.all_records("projects") == []

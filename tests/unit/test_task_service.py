"""Unit tests for task_service module."""

from datetime import UTC, date, datetime

import pytest

from worksync.core.errors import BadRequestError, ErrorCode, NotFoundError, UnauthorizedError
from worksync.domain.create_models import TaskCreate, TaskUpdate
from worksync.domain.role import Role
from worksync.domain.task import TaskPriority, TaskStatus
from worksync.models.service_models import TaskFilters
from worksync.services import task_service
from tests.unit.factories import add_task


async def _create(workspace, **fields):
    payload = {"task_type_code": "TS", **fields}
    return await task_service.create_task(
        workspace_id=workspace.workspace_id,
        project_id=workspace.project_id,
        user_id=workspace.owner_id,
        data=TaskCreate(**payload),
    )


@pytest.mark.unit
class TestCreateTask:
    """Tests for create_task function."""

    async def test_derives_title_from_catalog(self, workspace):
        """Test the title and type name come from the task type catalog."""
        task = await _create(workspace, task_type_code=" pr ", assigned_to=workspace.member_id)

        assert task["task_type_code"] == "PR"
        assert task["task_type_name"] == "Proofreading"
        assert task["title"] == "PR - Proofreading"
        assert task["assigned_to"] == workspace.member_id
        assert task["created_by"] == workspace.owner_id

    async def test_starts_idle_with_zero_totals(self, workspace):
        """Test a new task has an idle timer and no accumulated work."""
        task = await _create(workspace)

        assert task["is_running"] is False
        assert task["active_start_at"] is None
        assert task["first_started_at"] is None
        assert task["total_seconds_spent"] == 0
        assert task["total_minutes_spent"] == 0
        assert task["pages_completed"] == 0
        assert task["status"] == "TODO"
        assert task["priority"] == "MEDIUM"

    async def test_unknown_task_type(self, workspace):
        """Test an unknown type code is a bad request."""
        with pytest.raises(BadRequestError) as exc_info:
            await _create(workspace, task_type_code="ZZ")

        assert exc_info.value.code == ErrorCode.ERR_INVALID_TASK_TYPE

    async def test_assignee_must_be_member(self, workspace):
        """Test assigning a non-member is a bad request."""
        with pytest.raises(BadRequestError, match="not a member"):
            await _create(workspace, assigned_to=workspace.outsider_id)

    async def test_project_in_other_workspace(self, workspace):
        """Test a project outside the workspace is NotFoundError."""
        with pytest.raises(NotFoundError):
            await task_service.create_task(
                workspace_id="31337",
                project_id=workspace.project_id,
                user_id=workspace.owner_id,
                data=TaskCreate(task_type_code="TS"),
            )


@pytest.mark.unit
class TestUpdateTask:
    """Tests for update_task function."""

    async def test_changes_only_set_fields(self, workspace):
        """Test omitted fields keep their values."""
        task = await _create(workspace, chapter="3", priority=TaskPriority.LOW)

        updated = await task_service.update_task(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
            data=TaskUpdate(priority=TaskPriority.URGENT, task_type_code="ix"),
            role=Role.ADMIN,
        )

        assert updated["priority"] == "URGENT"
        assert updated["chapter"] == "3"
        assert updated["title"] == "IX - Indexing"

    async def test_null_status_is_ignored(self, workspace):
        """Test an explicit null for a required field leaves it unchanged."""
        task = await _create(workspace, status=TaskStatus.IN_REVIEW)

        updated = await task_service.update_task(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
            data=TaskUpdate(status=None, description="notes"),
            role=Role.OWNER,
        )

        assert updated["status"] == "IN_REVIEW"
        assert updated["description"] == "notes"

    async def test_member_may_change_status(self, workspace):
        """Test members can move a task through the workflow."""
        task = await _create(workspace)

        updated = await task_service.update_task(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
            data=TaskUpdate(status=TaskStatus.IN_PROGRESS),
            role=Role.MEMBER,
        )

        assert updated["status"] == "IN_PROGRESS"

    async def test_member_cannot_change_other_fields(self, workspace):
        """Test members are refused changes beyond the status."""
        task = await _create(workspace)

        with pytest.raises(UnauthorizedError):
            await task_service.update_task(
                workspace_id=workspace.workspace_id,
                project_id=workspace.project_id,
                task_id=task["id"],
                data=TaskUpdate(status=TaskStatus.DONE, assigned_to=workspace.member_id),
                role=Role.MEMBER,
            )

    async def test_clears_due_date(self, workspace):
        """Test an explicit null due date clears it."""
        task = await _create(workspace, due_date=datetime(2025, 5, 1, tzinfo=UTC))

        updated = await task_service.update_task(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
            data=TaskUpdate(due_date=None),
        )

        assert updated["due_date"] is None

    async def test_task_in_other_project(self, workspace, patched_db):
        """Test a task from another project is NotFoundError."""
        other = await patched_db.create_record(
            "projects",
            {"workspace_id": workspace.workspace_id, "name": "Other", "status": "ACTIVE"},
        )
        task = await _create(workspace)

        with pytest.raises(NotFoundError):
            await task_service.update_task(
                workspace_id=workspace.workspace_id,
                project_id=other["id"],
                task_id=task["id"],
                data=TaskUpdate(description="x"),
            )


@pytest.mark.unit
class TestUpdateTaskStatus:
    """Tests for update_task_status function."""

    async def test_sets_status(self, workspace):
        """Test the status is replaced."""
        task = await _create(workspace)

        updated = await task_service.update_task_status(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
            status=TaskStatus.DONE,
        )

        assert updated["status"] == "DONE"


@pytest.mark.unit
class TestGetAllTasks:
    """Tests for get_all_tasks function."""

    async def test_filters_and_pagination(self, workspace):
        """Test status, assignee and keyword filters with page metadata."""
        await _create(workspace, task_type_code="TS", assigned_to=workspace.member_id)
        await _create(workspace, task_type_code="PR", assigned_to=workspace.member_id, status=TaskStatus.DONE)
        await _create(workspace, task_type_code="PR", assigned_to=workspace.admin_id)
        await _create(workspace, task_type_code="CE")

        page = await task_service.get_all_tasks(
            workspace_id=workspace.workspace_id,
            filters=TaskFilters(assignees=[workspace.member_id, workspace.admin_id], statuses=["TODO", "DONE"]),
            page_size=2,
            page_number=1,
        )

        assert page.pagination.total_count == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.skip == 0
        assert len(page.tasks) == 2

        by_keyword = await task_service.get_all_tasks(
            workspace_id=workspace.workspace_id,
            filters=TaskFilters(keyword="proof"),
        )
        assert {t.task_type_code for t in by_keyword.tasks} == {"PR"}
        assert by_keyword.pagination.total_count == 2

    @pytest.mark.parametrize(
        ("keyword", "expected"),
        [("author's", 1), ("'s proof", 1), ('"', 0), ("&&", 0), ("50%", 0)],
    )
    async def test_keyword_with_quotes_and_operators(self, workspace, patched_db, keyword, expected):
        """Test keywords holding quotes or filter operators are matched literally."""
        await add_task(
            patched_db,
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            created_by=workspace.owner_id,
            task_type_code="AP",
            task_type_name="Author's Proof",
        )
        await _create(workspace)

        page = await task_service.get_all_tasks(
            workspace_id=workspace.workspace_id,
            filters=TaskFilters(keyword=keyword),
        )

        assert page.pagination.total_count == expected
        assert all(t.task_type_code == "AP" for t in page.tasks)

    async def test_due_date_filter(self, workspace):
        """Test the due date filter matches the calendar day."""
        await _create(workspace, due_date=datetime(2025, 6, 1, 17, 0, tzinfo=UTC))
        await _create(workspace, due_date=datetime(2025, 6, 2, 9, 0, tzinfo=UTC))
        await _create(workspace)

        page = await task_service.get_all_tasks(
            workspace_id=workspace.workspace_id,
            filters=TaskFilters(due_date=date(2025, 6, 1)),
        )

        assert page.pagination.total_count == 1

    async def test_page_size_clamped(self, workspace):
        """Test out-of-range paging values are clamped."""
        page = await task_service.get_all_tasks(
            workspace_id=workspace.workspace_id,
            filters=TaskFilters(),
            page_size=1000,
            page_number=0,
        )

        assert page.pagination.page_size == 100
        assert page.pagination.page_number == 1
        assert page.pagination.total_pages == 0


@pytest.mark.unit
class TestGetAndDeleteTask:
    """Tests for get_task_by_id and delete_task."""

    async def test_get_task(self, workspace):
        """Test a task is fetched through its project."""
        task = await _create(workspace)

        fetched = await task_service.get_task_by_id(
            workspace_id=workspace.workspace_id,
            project_id=workspace.project_id,
            task_id=task["id"],
        )

        assert fetched["id"] == task["id"]

    async def test_delete_task(self, workspace, patched_db):
        """Test a task is removed."""
        task = await _create(workspace)

        await task_service.delete_task(workspace_id=workspace.workspace_id, task_id=task["id"])

        assert patched_db.all_records("tasks") == []

    async def test_delete_task_other_workspace(self, workspace, patched_db):
        """Test a task cannot be deleted through another workspace."""
        task = await _create(workspace)

        with pytest.raises(NotFoundError):
            await task_service.delete_task(workspace_id="31337", task_id=task["id"])

        assert len(patched_db.all_records("tasks")) == 1

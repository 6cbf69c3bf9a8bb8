"""Unit tests for work_log_service module."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from worksync.core.config import constants
from worksync.services import work_log_service


DAY = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)


async def _log(*, user_id="1", task_id="10", workspace_id="100", stopped_at=DAY, minutes=5, pages=None):
    return await work_log_service.record_work_log(
        task_id=task_id,
        workspace_id=workspace_id,
        user_id=user_id,
        started_at=stopped_at - timedelta(minutes=minutes),
        stopped_at=stopped_at,
        duration_minutes=minutes,
        pages_completed=pages,
    )


@pytest.mark.unit
class TestRecordWorkLog:
    """Tests for record_work_log function."""

    async def test_records_entry(self, patched_db):
        """Test an entry is stored with ISO timestamps."""
        record = await _log(minutes=12, pages=4)

        assert record["duration_minutes"] == 12
        assert record["pages_completed"] == 4
        assert record["stopped_at"] == DAY.isoformat()
        assert record["started_at"] == (DAY - timedelta(minutes=12)).isoformat()
        assert len(patched_db.all_records("task_work_logs")) == 1

    async def test_rejects_zero_minutes(self, patched_db):
        """Test entries shorter than a minute are refused."""
        with pytest.raises(ValueError, match="at least 1 minute"):
            await _log(minutes=0)

        assert patched_db.all_records("task_work_logs") == []


@pytest.mark.unit
class TestListWorkLogs:
    """Tests for list_work_logs function."""

    async def test_newest_first(self, patched_db):
        """Test entries come back ordered by stop time, newest first."""
        await _log(stopped_at=DAY)
        await _log(stopped_at=DAY + timedelta(days=2))
        await _log(stopped_at=DAY + timedelta(days=1))

        logs = await work_log_service.list_work_logs(workspace_id="100")

        assert [log["stopped_at"] for log in logs] == [
            (DAY + timedelta(days=2)).isoformat(),
            (DAY + timedelta(days=1)).isoformat(),
            DAY.isoformat(),
        ]

    async def test_scoped_to_workspace(self, patched_db):
        """Test entries from other workspaces are excluded."""
        await _log(workspace_id="100")
        await _log(workspace_id="200")

        logs = await work_log_service.list_work_logs(workspace_id="100")

        assert len(logs) == 1
        assert logs[0]["workspace_id"] == "100"

    async def test_filters_by_user_and_task(self, patched_db):
        """Test user and task filters narrow the result."""
        await _log(user_id="1", task_id="10")
        await _log(user_id="1", task_id="11")
        await _log(user_id="2", task_id="10")

        by_user = await work_log_service.list_work_logs(workspace_id="100", user_id="1")
        by_both = await work_log_service.list_work_logs(workspace_id="100", user_id="1", task_id="11")

        assert len(by_user) == 2
        assert [log["task_id"] for log in by_both] == ["11"]

    async def test_date_bounds_are_inclusive(self, patched_db):
        """Test entries stopped exactly on a bound are included."""
        await _log(stopped_at=DAY - timedelta(seconds=1))
        await _log(stopped_at=DAY)
        await _log(stopped_at=DAY + timedelta(hours=8))
        await _log(stopped_at=DAY + timedelta(hours=8, seconds=1))

        logs = await work_log_service.list_work_logs(
            workspace_id="100",
            date_from=DAY,
            date_to=DAY + timedelta(hours=8),
        )

        assert len(logs) == 2

    async def test_open_ended_range(self, patched_db):
        """Test a range with only a start bound keeps later entries."""
        await _log(stopped_at=DAY - timedelta(days=1))
        await _log(stopped_at=DAY + timedelta(days=30))

        logs = await work_log_service.list_work_logs(workspace_id="100", date_from=DAY)

        assert len(logs) == 1

    async def test_old_entries_beyond_one_batch(self, patched_db, monkeypatch):
        """Test a range reaches entries older than a full batch of newer ones."""
        monkeypatch.setattr(constants, "LIST_BATCH_SIZE", 2)
        await _log(stopped_at=DAY - timedelta(days=60))
        for day in range(5):
            await _log(stopped_at=DAY + timedelta(days=day))

        calls = []
        list_records = patched_db.list_records

        async def counting_list_records(*args, **kwargs):
            calls.append(kwargs)
            return await list_records(*args, **kwargs)

        monkeypatch.setattr("worksync.core.db_client.list_records", counting_list_records)

        old = await work_log_service.list_work_logs(
            workspace_id="100",
            date_from=DAY - timedelta(days=61),
            date_to=DAY - timedelta(days=59),
        )

        assert [log["stopped_at"] for log in old] == [(DAY - timedelta(days=60)).isoformat()]
        assert len(calls) == 1
        assert "stopped_at >=" in calls[0]["filter_query"]

        everything = await work_log_service.list_work_logs(workspace_id="100")

        assert len(everything) == 6
        assert everything[-1]["stopped_at"] == (DAY - timedelta(days=60)).isoformat()

    async def test_offset_bounds_compare_in_utc(self, patched_db):
        """Test bounds given in another timezone select the same entries."""
        await _log(stopped_at=DAY)

        plus_two = timezone(timedelta(hours=2))
        logs = await work_log_service.list_work_logs(
            workspace_id="100",
            date_from=datetime(2025, 3, 3, 11, 0, tzinfo=plus_two),
            date_to=datetime(2025, 3, 3, 11, 0, tzinfo=plus_two),
        )

        assert len(logs) == 1

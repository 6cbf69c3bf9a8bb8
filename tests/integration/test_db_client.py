"""Integration tests for the SQLite db_client."""

import pytest

from worksync.core import db_client
from worksync.core.schema import COLLECTIONS


async def _user(name: str = "Ada", email: str = "ada@example.com") -> dict:
    return await db_client.create_record(
        collection="users",
        data={"name": name, "email": email, "password_hash": "x", "current_workspace_id": None},
    )


@pytest.mark.integration
class TestSQLiteCRUD:
    """Tests for record CRUD on SQLite."""

    async def test_every_collection_exists(self, sqlite_db):
        """Test init_db creates every collection."""
        for collection in COLLECTIONS:
            assert await db_client.list_records(collection=collection) == []

    async def test_create_and_get(self, sqlite_db):
        """Test ids come back as strings with timestamps set."""
        created = await _user()
        fetched = await db_client.get_record(collection="users", record_id=created["id"])

        assert isinstance(created["id"], str)
        assert fetched["email"] == "ada@example.com"
        assert fetched["created"] == fetched["updated"]

    async def test_reference_and_bool_conversion(self, sqlite_db):
        """Test *_id columns read back as strings and is_running as a bool."""
        user = await _user()
        workspace = await db_client.create_record(
            collection="workspaces",
            data={"name": "Press", "owner_id": user["id"], "invite_code": "abc"},
        )
        project = await db_client.create_record(
            collection="projects",
            data={"workspace_id": workspace["id"], "name": "Atlas"},
        )
        task = await db_client.create_record(
            collection="tasks",
            data={
                "title": "TS - Typesetting",
                "task_type_code": "TS",
                "task_type_name": "Typesetting",
                "workspace_id": workspace["id"],
                "project_id": project["id"],
                "assigned_to": user["id"],
                "is_running": False,
            },
        )

        assert task["workspace_id"] == workspace["id"]
        assert task["assigned_to"] == user["id"]
        assert task["is_running"] is False
        assert task["total_seconds_spent"] == 0

    async def test_permissions_round_trip_as_json(self, sqlite_db):
        """Test the permissions column stores and returns a list."""
        role = await db_client.create_record(
            collection="roles",
            data={"name": "VIEWER", "permissions": frozenset({"VIEW_ONLY"})},
        )

        assert role["permissions"] == ["VIEW_ONLY"]

    async def test_get_missing_record(self, sqlite_db):
        """Test missing and malformed ids raise RecordNotFoundError."""
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.get_record(collection="users", record_id="999")
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.get_record(collection="users", record_id="abc")

    async def test_invalid_collection_name(self, sqlite_db):
        """Test collection names are validated before reaching SQL."""
        with pytest.raises(db_client.DatabaseError):
            await db_client.list_records(collection="users; DROP TABLE users")

    async def test_unique_constraint(self, sqlite_db):
        """Test constraint violations surface as DatabaseError."""
        await _user()

        with pytest.raises(db_client.DatabaseError):
            await _user(name="Ada Again")

    async def test_update_if_match(self, sqlite_db):
        """Test conditional updates and stale detection."""
        user = await _user()

        updated = await db_client.update_record(
            collection="users",
            record_id=user["id"],
            data={"name": "Ada L"},
            if_match={"name": "Ada"},
        )
        assert updated["name"] == "Ada L"

        with pytest.raises(db_client.StaleRecordError):
            await db_client.update_record(
                collection="users",
                record_id=user["id"],
                data={"name": "Ada K"},
                if_match={"name": "Ada"},
            )

        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.update_record(
                collection="users",
                record_id="999",
                data={"name": "Nobody"},
                if_match={"name": "Ada"},
            )

    async def test_delete(self, sqlite_db):
        """Test deleting twice raises RecordNotFoundError."""
        user = await _user()
        await db_client.delete_record(collection="users", record_id=user["id"])

        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.delete_record(collection="users", record_id=user["id"])


@pytest.mark.integration
class TestSQLiteQueries:
    """Tests for filters, sorting and transactions on SQLite."""

    async def test_filters_and_sort(self, sqlite_db):
        """Test OR groups, like matching and sort directions."""
        for name in ("Ada", "Grace", "Alan"):
            await _user(name=name, email=f"{name.lower()}@example.com")

        either = await db_client.list_records(
            collection="users",
            filter_query='(name = "Ada" || name = "Alan")',
            sort="-name",
        )
        like = await db_client.list_records(collection="users", filter_query='email ~ "GRACE"')
        first = await db_client.get_first_record(collection="users", filter_query='name != "Ada"')

        assert [u["name"] for u in either] == ["Alan", "Ada"]
        assert [u["name"] for u in like] == ["Grace"]
        assert first["name"] == "Grace"

    async def test_sanitized_values_cannot_break_out(self, sqlite_db):
        """Test quotes in filter values are escaped."""
        await _user()

        records = await db_client.list_records(
            collection="users",
            filter_query=f'email = "{db_client.sanitize_param(chr(34) + " || id > " + chr(34) + "0")}"',
        )

        assert records == []

    @pytest.mark.parametrize(
        "email",
        ["pat.o'brien@example.com", '"quoted"@example.com', "a&&b@example.com", "x||y@example.com"],
    )
    async def test_quote_and_operator_values(self, sqlite_db, email):
        """Test values holding quotes or filter operators match exactly."""
        await _user(email=email)
        await _user(name="Grace", email="grace@example.com")

        found = await db_client.get_first_record(
            collection="users",
            filter_query=f'name = "Ada" && email = "{db_client.sanitize_param(email)}"',
        )

        assert found["email"] == email

    async def test_like_matches_wildcards_literally(self, sqlite_db):
        """Test % and _ in a like value are not wildcards."""
        await _user(name="50%_off")
        await _user(name="5000 off", email="grace@example.com")

        records = await db_client.list_records(collection="users", filter_query='name ~ "0%_o"')

        assert [u["name"] for u in records] == ["50%_off"]

    async def test_list_all_records_pages_through(self, sqlite_db):
        """Test every match is returned across several batches."""
        for index in range(5):
            await _user(name=f"User {index}", email=f"user{index}@example.com")

        records = await db_client.list_all_records(collection="users", sort="-name", batch_size=2)
        exact = await db_client.list_all_records(collection="users", filter_query='name ~ "User"', batch_size=5)

        assert [u["name"] for u in records] == [f"User {index}" for index in (4, 3, 2, 1, 0)]
        assert len(exact) == 5

    async def test_delete_records(self, sqlite_db):
        """Test bulk deletes remove only matching rows and report the count."""
        for name in ("Ada", "Alan", "Grace"):
            await _user(name=name, email=f"{name.lower()}@example.com")

        removed = await db_client.delete_records(collection="users", filter_query='name ~ "a" && name != "Grace"')

        assert removed == 2
        assert [u["name"] for u in await db_client.list_records(collection="users")] == ["Grace"]
        with pytest.raises(ValueError, match="requires a filter"):
            await db_client.delete_records(collection="users", filter_query="")

    def test_parse_sort(self):
        """Test sort strings translate to ORDER BY clauses with an id tie-break."""
        assert db_client._parse_sort("-created") == "created DESC, id DESC"
        assert db_client._parse_sort("+name") == "name ASC, id ASC"
        assert db_client._parse_sort("name DESC") == "name DESC"
        assert db_client._parse_sort("name; DROP TABLE users") == "id ASC"

    async def test_transaction_commits(self, sqlite_db):
        """Test writes inside a successful block persist."""
        async with db_client.transaction():
            await _user()
            await _user(name="Grace", email="grace@example.com")

        assert len(await db_client.list_records(collection="users")) == 2

    async def test_transaction_rolls_back(self, sqlite_db):
        """Test a failing block leaves nothing behind."""
        with pytest.raises(RuntimeError):
            async with db_client.transaction():
                await _user()
                raise RuntimeError("boom")

        assert await db_client.list_records(collection="users") == []

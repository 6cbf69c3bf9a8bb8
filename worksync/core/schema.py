"""SQLite schema management (code-first approach)."""

import logging

from worksync.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "users",
    "workspaces",
    "roles",
    "members",
    "projects",
    "tasks",
    "task_work_logs",
    "file_access_logs",
]

_TIMESTAMPS = "created TEXT NOT NULL, updated TEXT NOT NULL"

_SCHEMAS: dict[str, str] = {
    "users": f"""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            current_workspace_id INTEGER,
            {_TIMESTAMPS}
        )
    """,
    "workspaces": f"""
        CREATE TABLE IF NOT EXISTS workspaces (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            owner_id INTEGER NOT NULL REFERENCES users (id),
            invite_code TEXT NOT NULL UNIQUE,
            {_TIMESTAMPS}
        )
    """,
    "roles": f"""
        CREATE TABLE IF NOT EXISTS roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            permissions TEXT NOT NULL DEFAULT '[]',
            {_TIMESTAMPS}
        )
    """,
    "members": f"""
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users (id),
            workspace_id INTEGER NOT NULL REFERENCES workspaces (id) ON DELETE CASCADE,
            role_id INTEGER NOT NULL REFERENCES roles (id),
            joined_at TEXT NOT NULL,
            {_TIMESTAMPS},
            UNIQUE (user_id, workspace_id)
        )
    """,
    "projects": f"""
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workspace_id INTEGER NOT NULL REFERENCES workspaces (id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            emoji TEXT,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            client_id TEXT,
            client_name TEXT,
            created_by INTEGER REFERENCES users (id),
            {_TIMESTAMPS}
        )
    """,
    "tasks": f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            task_type_code TEXT NOT NULL,
            task_type_name TEXT NOT NULL,
            description TEXT,
            chapter TEXT,
            page_range TEXT,
            status TEXT NOT NULL DEFAULT 'TODO',
            priority TEXT NOT NULL DEFAULT 'MEDIUM',
            assigned_to INTEGER REFERENCES users (id),
            created_by INTEGER REFERENCES users (id),
            workspace_id INTEGER NOT NULL REFERENCES workspaces (id) ON DELETE CASCADE,
            project_id INTEGER NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
            due_date TEXT,
            is_running INTEGER NOT NULL DEFAULT 0,
            first_started_at TEXT,
            active_start_at TEXT,
            last_stopped_at TEXT,
            total_seconds_spent INTEGER NOT NULL DEFAULT 0,
            total_minutes_spent INTEGER NOT NULL DEFAULT 0,
            pages_completed INTEGER NOT NULL DEFAULT 0,
            remarks TEXT,
            {_TIMESTAMPS},
            CHECK ((is_running = 1) = (active_start_at IS NOT NULL))
        )
    """,
    "task_work_logs": f"""
        CREATE TABLE IF NOT EXISTS task_work_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id INTEGER NOT NULL,
            workspace_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            started_at TEXT NOT NULL,
            stopped_at TEXT NOT NULL,
            duration_minutes INTEGER NOT NULL CHECK (duration_minutes >= 1),
            pages_completed INTEGER,
            remarks TEXT,
            {_TIMESTAMPS}
        )
    """,
    "file_access_logs": f"""
        CREATE TABLE IF NOT EXISTS file_access_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workspace_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            action TEXT NOT NULL,
            path TEXT NOT NULL,
            file_name TEXT,
            size INTEGER,
            {_TIMESTAMPS}
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_workspace ON tasks (workspace_id, is_running)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks (project_id)",
    "CREATE INDEX IF NOT EXISTS idx_work_logs_workspace ON task_work_logs (workspace_id, stopped_at)",
    "CREATE INDEX IF NOT EXISTS idx_work_logs_user ON task_work_logs (user_id, stopped_at)",
    "CREATE INDEX IF NOT EXISTS idx_file_access_workspace ON file_access_logs (workspace_id, created)",
    "CREATE INDEX IF NOT EXISTS idx_projects_workspace ON projects (workspace_id)",
]


def get_collection_schema(*, collection_name: str) -> str:
    """Get the CREATE TABLE statement for a collection."""
    if collection_name not in _SCHEMAS:
        msg = f"Unknown collection: {collection_name}"
        raise ValueError(msg)
    return _SCHEMAS[collection_name]


async def init_db(*, db_path: str | None = None) -> None:
    """Create every collection table and index if missing."""
    conn = await db_client.get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(get_collection_schema(collection_name=collection))
    for index in _INDEXES:
        await conn.execute(index)
    await conn.commit()

    logger.info("Database schema initialized", extra={"collections": len(COLLECTIONS)})

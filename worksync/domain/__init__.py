"""Domain models and DTOs."""

from worksync.domain.create_models import (
    ChangeRoleRequest,
    FolderCreate,
    LoginRequest,
    ProjectCreate,
    ProjectUpdate,
    RegisterRequest,
    TaskCreate,
    TaskStatusUpdate,
    TaskUpdate,
    TimerStopRequest,
    WorkspaceCreate,
    WorkspaceUpdate,
)
from worksync.domain.file_access import FileAccessAction, FileAccessLog
from worksync.domain.project import Project, ProjectStatus
from worksync.domain.role import ROLE_PERMISSIONS, Permission, Role, RoleGrant
from worksync.domain.task import TASK_TYPES, Task, TaskPriority, TaskStatus, TaskType
from worksync.domain.user import User, Workspace, WorkspaceMember


__all__ = [
    "ROLE_PERMISSIONS",
    "TASK_TYPES",
    "ChangeRoleRequest",
    "FileAccessAction",
    "FileAccessLog",
    "FolderCreate",
    "LoginRequest",
    "Permission",
    "Project",
    "ProjectCreate",
    "ProjectStatus",
    "ProjectUpdate",
    "RegisterRequest",
    "Role",
    "RoleGrant",
    "Task",
    "TaskCreate",
    "TaskPriority",
    "TaskStatus",
    "TaskStatusUpdate",
    "TaskType",
    "TaskUpdate",
    "TimerStopRequest",
    "User",
    "Workspace",
    "WorkspaceCreate",
    "WorkspaceMember",
    "WorkspaceUpdate",
]

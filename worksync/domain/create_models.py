"""Pydantic models for request payloads that create or change records."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from worksync.core.config import constants
from worksync.domain.base import ApiModel
from worksync.domain.project import ProjectStatus
from worksync.domain.role import Role
from worksync.domain.task import TaskPriority, TaskStatus
from worksync.domain.user import MAX_NAME_LENGTH


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _strip_or_none(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class RegisterRequest(ApiModel):
    """Payload for creating an account."""

    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH, description="Display name")
    email: str = Field(..., description="Login email address")
    password: str = Field(..., description="Plain-text password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate and normalise the email address."""
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            msg = "Invalid email address"
            raise ValueError(msg)
        return v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password meets the minimum length."""
        if len(v) < constants.MIN_PASSWORD_LENGTH:
            msg = f"Password must be at least {constants.MIN_PASSWORD_LENGTH} characters"
            raise ValueError(msg)
        return v


class LoginRequest(ApiModel):
    """Payload for signing in."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        """Lower-case the email so lookups match registration."""
        return v.strip().lower()


class WorkspaceCreate(ApiModel):
    """Payload for creating a workspace."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class WorkspaceUpdate(ApiModel):
    """Payload for renaming a workspace or changing its description; omitted fields are unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str | None) -> str | None:
        """Trim the name and refuse one that is only whitespace."""
        if v is None:
            return None
        v = v.strip()
        if not v:
            msg = "Workspace name cannot be empty"
            raise ValueError(msg)
        return v


class ChangeRoleRequest(ApiModel):
    """Payload for changing a member's role."""

    member_id: str = Field(..., min_length=1, description="User ID of the member")
    role: Role = Field(..., description="New role")


class ProjectCreate(ApiModel):
    """Payload for creating a project."""

    name: str = Field(..., min_length=1, max_length=255)
    emoji: str | None = None
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    client_id: str | None = None
    client_name: str | None = None


class ProjectUpdate(ApiModel):
    """Payload for updating a project; omitted fields are unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    emoji: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    client_id: str | None = None
    client_name: str | None = None


class TaskCreate(ApiModel):
    """Payload for creating a task."""

    task_type_code: str = Field(..., min_length=1, description="Catalog code of the task type")
    description: str | None = None
    chapter: str | None = None
    page_range: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assigned_to: str | None = None
    due_date: datetime | None = None

    @field_validator("task_type_code")
    @classmethod
    def validate_task_type_code(cls, v: str) -> str:
        """Require a non-blank task type code."""
        v = v.strip()
        if not v:
            msg = "Task type is required"
            raise ValueError(msg)
        return v

    @field_validator("description", "chapter", "page_range", "assigned_to")
    @classmethod
    def strip_optional_text(cls, v: str | None) -> str | None:
        """Trim optional text fields, treating blank as absent."""
        return _strip_or_none(v)


class TaskUpdate(ApiModel):
    """Payload for updating a task; omitted fields are unchanged."""

    task_type_code: str | None = None
    description: str | None = None
    chapter: str | None = None
    page_range: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None

    @field_validator("task_type_code", "description", "chapter", "page_range", "assigned_to")
    @classmethod
    def strip_optional_text(cls, v: str | None) -> str | None:
        """Trim optional text fields, treating blank as absent."""
        return _strip_or_none(v)


class TaskStatusUpdate(ApiModel):
    """Payload for changing only a task's status."""

    status: TaskStatus


class TimerStopRequest(ApiModel):
    """Payload for stopping a task timer."""

    pages_completed: int | None = Field(default=None, ge=0, description="Pages completed in this run")
    remarks: str | None = Field(default=None, description="Remarks for this run")

    @field_validator("remarks")
    @classmethod
    def strip_remarks(cls, v: str | None) -> str | None:
        """Trim remarks while keeping an explicit empty string."""
        return v.strip() if v is not None else None


class FolderCreate(ApiModel):
    """Payload for creating a folder in the file library."""

    path: str | None = Field(default=None, description="Parent folder, relative to the workspace root")
    name: str = Field(..., min_length=1, max_length=255, description="Folder name")

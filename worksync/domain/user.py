"""User, workspace and membership domain models."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from worksync.domain.base import ApiModel
from worksync.domain.role import Role


# Constants for validation
MAX_NAME_LENGTH = 80


class User(ApiModel):
    """User data transfer object. Never carries the password hash."""

    id: str = Field(..., description="Unique user ID")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Login email address")
    current_workspace_id: str | None = Field(default=None, description="Workspace opened last")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is usable - allows Unicode letters, spaces, dots, hyphens, apostrophes."""
        v = v.strip()

        if not v:
            raise ValueError("Name cannot be empty")

        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

        if not re.match(r"^[\w\s.'-]+$", v, re.UNICODE):
            raise ValueError("Name can only contain letters, spaces, dots, hyphens, and apostrophes")

        return v


class Workspace(ApiModel):
    """Workspace data transfer object."""

    id: str = Field(..., description="Unique workspace ID")
    name: str = Field(..., description="Workspace name")
    description: str | None = Field(default=None, description="Free-text description")
    owner_id: str = Field(..., description="User ID of the owner")
    invite_code: str = Field(..., description="Code other users join with")
    created: datetime | None = None


class WorkspaceMember(ApiModel):
    """Membership joined with the member's user and role."""

    id: str = Field(..., description="Membership ID")
    user_id: str = Field(..., description="Member's user ID")
    name: str = Field(..., description="Member's display name")
    email: str = Field(..., description="Member's email")
    role: Role = Field(..., description="Role held in the workspace")
    role_id: str = Field(..., description="ID of the role record")
    joined_at: datetime = Field(..., description="When the user joined")

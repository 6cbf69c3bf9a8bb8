"""Project domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from worksync.domain.base import ApiModel


class ProjectStatus(StrEnum):
    """Project lifecycle status."""

    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"


class Project(ApiModel):
    """Project data transfer object."""

    id: str = Field(..., description="Unique project ID")
    workspace_id: str = Field(..., description="Owning workspace")
    name: str = Field(..., description="Project name")
    emoji: str | None = Field(default=None, description="Display emoji")
    description: str | None = Field(default=None, description="Free-text description")
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE, description="Lifecycle status")
    client_id: str | None = Field(default=None, description="Client identifier")
    client_name: str | None = Field(default=None, description="Client display name")
    created_by: str | None = Field(default=None, description="User ID of the creator")
    created: datetime | None = None
    updated: datetime | None = None

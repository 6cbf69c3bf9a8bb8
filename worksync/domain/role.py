"""Role and permission domain models.

The permission table is fixed at import time and read-only; roles stored in the
database are seeded from it at startup.
"""

from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field


class Permission(StrEnum):
    """Actions a workspace role may be allowed to perform."""

    CREATE_WORKSPACE = "CREATE_WORKSPACE"
    DELETE_WORKSPACE = "DELETE_WORKSPACE"
    EDIT_WORKSPACE = "EDIT_WORKSPACE"
    MANAGE_WORKSPACE_SETTINGS = "MANAGE_WORKSPACE_SETTINGS"

    ADD_MEMBER = "ADD_MEMBER"
    CHANGE_MEMBER_ROLE = "CHANGE_MEMBER_ROLE"
    REMOVE_MEMBER = "REMOVE_MEMBER"

    CREATE_PROJECT = "CREATE_PROJECT"
    EDIT_PROJECT = "EDIT_PROJECT"
    DELETE_PROJECT = "DELETE_PROJECT"

    CREATE_TASK = "CREATE_TASK"
    EDIT_TASK = "EDIT_TASK"
    DELETE_TASK = "DELETE_TASK"

    VIEW_ONLY = "VIEW_ONLY"


class Role(StrEnum):
    """Workspace role names."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


ROLE_PERMISSIONS: MappingProxyType[Role, frozenset[Permission]] = MappingProxyType(
    {
        Role.OWNER: frozenset(Permission),
        Role.ADMIN: frozenset(
            {
                Permission.ADD_MEMBER,
                Permission.CREATE_PROJECT,
                Permission.EDIT_PROJECT,
                Permission.DELETE_PROJECT,
                Permission.CREATE_TASK,
                Permission.EDIT_TASK,
                Permission.DELETE_TASK,
                Permission.MANAGE_WORKSPACE_SETTINGS,
                Permission.VIEW_ONLY,
            }
        ),
        Role.MEMBER: frozenset(
            {
                Permission.VIEW_ONLY,
                Permission.CREATE_TASK,
                Permission.EDIT_TASK,
            }
        ),
        Role.VIEWER: frozenset({Permission.VIEW_ONLY}),
    }
)

PRIVILEGED_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def permissions_for(role: Role) -> frozenset[Permission]:
    """Look up the permission set for a role."""
    return ROLE_PERMISSIONS[role]


class RoleGrant(BaseModel):
    """A user's resolved role and permissions within one workspace."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Role held in the workspace")
    permissions: frozenset[Permission] = Field(..., description="Permissions granted by the role")
    member_id: str = Field(..., description="ID of the membership record")

    def has_any(self, required: set[Permission] | frozenset[Permission] | list[Permission]) -> bool:
        """Whether the grant holds at least one of the required permissions."""
        return any(permission in self.permissions for permission in required)

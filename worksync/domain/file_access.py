"""File library domain models."""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import Field

from worksync.domain.base import ApiModel


class FileAccessAction(StrEnum):
    """Actions recorded in the file access log."""

    ENTER = "ENTER"
    DOWNLOAD = "DOWNLOAD"
    UPLOAD = "UPLOAD"
    CREATE_FOLDER = "CREATE_FOLDER"
    DELETE_FILE = "DELETE_FILE"
    DELETE_FOLDER = "DELETE_FOLDER"


class FileItem(ApiModel):
    """Entry in a folder listing."""

    name: str
    type: Literal["file", "folder"]
    size: int | None = None
    modified_at: datetime


class FileListing(ApiModel):
    """Contents of one folder."""

    path: str
    items: list[FileItem]


class UploadedFile(ApiModel):
    """A file written by an upload."""

    name: str
    size: int


class DeletedItem(ApiModel):
    """An item removed from the library."""

    type: Literal["file", "folder"]
    name: str


class FileActivityUser(ApiModel):
    """User summary attached to an access log entry."""

    id: str
    name: str
    email: str


class FileAccessLog(ApiModel):
    """Immutable audit record of a file library operation."""

    id: str = Field(..., description="Unique log ID")
    action: FileAccessAction = Field(..., description="Operation performed")
    path: str = Field(..., description="Workspace-relative folder the operation touched")
    file_name: str | None = Field(default=None, description="File or folder name, if any")
    size: int | None = Field(default=None, description="File size in bytes, if any")
    created: datetime = Field(..., description="When the operation happened")
    user: FileActivityUser | None = Field(default=None, description="Acting user")

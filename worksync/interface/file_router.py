"""File library routes within a workspace."""

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from worksync.core.config import settings
from worksync.core.errors import BadRequestError
from worksync.domain.create_models import FolderCreate
from worksync.domain.role import Permission
from worksync.interface.deps import CurrentUserId
from worksync.services import file_library, role_service
from worksync.services.file_library import IncomingFile


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}", tags=["files"])


_FILENAME_SAFE_CHARS = "!~*'()"


def content_disposition(file_name: str) -> str:
    """Attachment header with the name percent-encoded like encodeURIComponent."""
    return f'attachment; filename="{quote(file_name, safe=_FILENAME_SAFE_CHARS)}"'


@router.get("/files")
async def list_files(
    workspace_id: str,
    user_id: CurrentUserId,
    path: Annotated[str | None, Query()] = None,
) -> dict:
    """List a folder in the workspace's file library."""
    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    listing = await file_library.list_workspace_files(workspace_id=workspace_id, user_id=user_id, rel_path=path)
    return {"message": "Workspace files listed successfully", **listing.model_dump(by_alias=True, mode="json")}


@router.get("/files/download")
async def download_file(
    workspace_id: str,
    user_id: CurrentUserId,
    path: Annotated[str | None, Query()] = None,
) -> StreamingResponse:
    """Stream a file from the workspace's file library."""
    if not path:
        raise BadRequestError("File path is required")

    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    download = await file_library.get_workspace_file_download(workspace_id=workspace_id, user_id=user_id, rel_path=path)

    return StreamingResponse(
        download.iter_chunks(),
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(download.file_name),
            "Content-Length": str(download.size),
        },
    )


@router.post("/files/upload")
async def upload_files(
    workspace_id: str,
    user_id: CurrentUserId,
    files: Annotated[list[UploadFile], File()],
    path: Annotated[str | None, Query()] = None,
) -> dict:
    """Upload files into a folder of the workspace's file library."""
    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)

    if len(files) > settings.max_upload_files:
        msg = f"Too many files (max {settings.max_upload_files} per upload)"
        raise BadRequestError(msg)

    incoming = []
    for upload in files:
        if upload.size is not None and upload.size > settings.max_upload_file_size_bytes:
            msg = f"File {upload.filename} exceeds the maximum upload size"
            raise BadRequestError(msg)
        incoming.append(IncomingFile(name=upload.filename or "", content=await upload.read()))

    saved = await file_library.upload_workspace_files(
        workspace_id=workspace_id,
        user_id=user_id,
        rel_path=path,
        files=incoming,
    )
    return {"message": "Files uploaded successfully", "files": saved}


@router.post("/files/folder", status_code=status.HTTP_201_CREATED)
async def create_folder(workspace_id: str, body: FolderCreate, user_id: CurrentUserId) -> dict:
    """Create a folder in the workspace's file library."""
    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    folder = await file_library.create_workspace_folder(
        workspace_id=workspace_id,
        user_id=user_id,
        rel_path=body.path,
        name=body.name,
    )
    return {"message": "Folder created successfully", "folder": folder}


@router.delete("/files")
async def delete_item(
    workspace_id: str,
    user_id: CurrentUserId,
    path: Annotated[str | None, Query()] = None,
) -> dict:
    """Delete a file or folder from the workspace's file library."""
    if not path:
        raise BadRequestError("File or folder path is required")

    await role_service.get_member_role_in_workspace(user_id=user_id, workspace_id=workspace_id)
    deleted = await file_library.delete_workspace_item(workspace_id=workspace_id, user_id=user_id, rel_path=path)
    label = "Folder" if deleted.type == "folder" else "File"
    return {"message": f"{label} deleted successfully", "deleted": deleted}


@router.get("/file-activity")
async def get_file_activity(
    workspace_id: str,
    user_id: CurrentUserId,
    days: Annotated[int | None, Query()] = None,
) -> dict:
    """Recent file library activity."""
    await role_service.authorize(
        user_id=user_id,
        workspace_id=workspace_id,
        required=[Permission.MANAGE_WORKSPACE_SETTINGS],
    )
    logs = await file_library.list_workspace_file_activity(workspace_id=workspace_id, days=days)
    return {"message": "Workspace file activity retrieved successfully", "logs": logs}

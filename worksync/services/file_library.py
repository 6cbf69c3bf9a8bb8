"""Per-workspace file library with traversal-safe path resolution and an access log.

Every workspace owns one folder under the configured storage root. All
user-supplied paths are resolved against that folder and rejected if they
would escape it. Each operation appends a file access log entry once the
storage change has succeeded; a failed log write is logged and does not fail
the operation.
"""

import logging
import re
import shutil
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Any

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from worksync.core import db_client
from worksync.core.config import constants, settings
from worksync.core.errors import BadRequestError, ConflictError, ErrorCode, NotFoundError
from worksync.core.logging import span
from worksync.domain.file_access import (
    DeletedItem,
    FileAccessAction,
    FileAccessLog,
    FileActivityUser,
    FileItem,
    FileListing,
    UploadedFile,
)


logger = logging.getLogger(__name__)

COLLECTION = "file_access_logs"

_UNSAFE_NAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f\x7f]')


class IncomingFile(BaseModel):
    """A fully buffered uploaded file."""

    name: str
    content: bytes

    @property
    def size(self) -> int:
        """Size of the content in bytes."""
        return len(self.content)


class FileDownload(BaseModel):
    """A file ready to be streamed to the caller."""

    file_name: str
    size: int
    path: Path

    def iter_chunks(self, chunk_size: int = constants.DOWNLOAD_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the file content in chunks."""
        with self.path.open("rb") as handle:
            while chunk := handle.read(chunk_size):
                yield chunk


def _invalid_path() -> BadRequestError:
    return BadRequestError("Invalid path", code=ErrorCode.ERR_INVALID_PATH)


def resolve_workspace_path(root: Path, rel_path: str | None) -> Path:
    """Resolve a workspace-relative path to an absolute path inside the root.

    Args:
        root: Workspace root folder
        rel_path: User-supplied path; empty or None means the root itself

    Returns:
        Canonical absolute path

    Raises:
        BadRequestError: If the path is absolute, contains NUL bytes, or
            resolves outside the root
    """
    root = root.resolve()
    if not rel_path or not rel_path.strip():
        return root

    if "\x00" in rel_path:
        raise _invalid_path()

    normalised = rel_path.strip().replace("\\", "/")
    # Guard: reject absolute and drive-qualified paths before joining
    if normalised.startswith("/") or re.match(r"^[A-Za-z]:", normalised):
        raise _invalid_path()

    target = (root / PurePosixPath(normalised)).resolve()
    if target != root and not target.is_relative_to(root):
        raise _invalid_path()
    return target


def sanitize_file_name(name: str) -> str:
    """Reduce a client-supplied name to a safe single path component.

    Raises:
        BadRequestError: If nothing usable remains
    """
    base = name.replace("\\", "/").split("/")[-1]
    safe = _UNSAFE_NAME_CHARS.sub("", base).strip()
    if not safe or safe in {".", ".."}:
        msg = "Invalid file name"
        raise BadRequestError(msg, code=ErrorCode.ERR_INVALID_PATH)
    return safe


def _normalise_rel_path(rel_path: str | None) -> str:
    if not rel_path:
        return ""
    return rel_path.strip().replace("\\", "/").strip("/")


def workspace_root(workspace_id: str) -> Path:
    """Folder holding a workspace's files."""
    return Path(settings.file_storage_root) / sanitize_file_name(str(workspace_id))


def ensure_workspace_root(workspace_id: str) -> Path:
    """Create the workspace folder if missing and return it."""
    root = workspace_root(workspace_id)
    root.mkdir(parents=True, exist_ok=True)
    return root


async def remove_workspace_root(workspace_id: str) -> bool:
    """Delete a workspace's whole folder. Returns False if it never existed."""
    root = workspace_root(workspace_id)
    if not root.is_dir():
        return False
    await run_in_threadpool(shutil.rmtree, root)
    logger.info("Removed workspace folder", extra={"workspace_id": workspace_id})
    return True


async def _log_file_access(
    *,
    workspace_id: str,
    user_id: str,
    action: FileAccessAction,
    path: str,
    file_name: str | None = None,
    size: int | None = None,
) -> None:
    """Append an access log entry, logging rather than raising on failure."""
    try:
        await db_client.create_record(
            collection=COLLECTION,
            data={
                "workspace_id": workspace_id,
                "user_id": user_id,
                "action": action.value,
                "path": path or ".",
                "file_name": file_name,
                "size": size,
            },
        )
    except (db_client.DatabaseError, ValueError) as e:
        logger.warning(
            "Failed to write file access log",
            extra={"workspace_id": workspace_id, "user_id": user_id, "action": action.value, "error": str(e)},
        )


def _modified_at(stat_result: Any) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=UTC)


def _scan_folder(folder: Path) -> list[FileItem]:
    """Folder entries, folders first then by name."""
    items = []
    for entry in folder.iterdir():
        stat_result = entry.stat()
        if entry.is_dir():
            items.append(FileItem(name=entry.name, type="folder", modified_at=_modified_at(stat_result)))
        else:
            items.append(
                FileItem(
                    name=entry.name,
                    type="file",
                    size=stat_result.st_size,
                    modified_at=_modified_at(stat_result),
                )
            )
    items.sort(key=lambda item: (item.type != "folder", item.name.lower()))
    return items


async def list_workspace_files(*, workspace_id: str, user_id: str, rel_path: str | None = None) -> FileListing:
    """List the contents of a folder, folders first then by name.

    Raises:
        BadRequestError: If the path is invalid or not a folder
        NotFoundError: If the folder does not exist
    """
    with span("file_library.list_workspace_files"):
        root = ensure_workspace_root(workspace_id)
        target = resolve_workspace_path(root, rel_path)

        if not target.exists():
            msg = "Folder not found"
            raise NotFoundError(msg)
        if not target.is_dir():
            msg = "Path is not a folder"
            raise BadRequestError(msg)

        items = await run_in_threadpool(_scan_folder, target)

        path = _normalise_rel_path(rel_path)
        await _log_file_access(workspace_id=workspace_id, user_id=user_id, action=FileAccessAction.ENTER, path=path)
        return FileListing(path=path, items=items)


async def get_workspace_file_download(*, workspace_id: str, user_id: str, rel_path: str) -> FileDownload:
    """Locate a file for download and log the access.

    Raises:
        BadRequestError: If no path is given, the path is invalid, or it is not a file
        NotFoundError: If the file does not exist
    """
    with span("file_library.get_workspace_file_download"):
        if not rel_path or not rel_path.strip():
            msg = "File path is required"
            raise BadRequestError(msg)

        root = ensure_workspace_root(workspace_id)
        target = resolve_workspace_path(root, rel_path)

        if not target.exists():
            msg = "File not found"
            raise NotFoundError(msg)
        if not target.is_file():
            msg = "Path is not a file"
            raise BadRequestError(msg)

        size = target.stat().st_size
        parent = str(PurePosixPath(_normalise_rel_path(rel_path)).parent)
        await _log_file_access(
            workspace_id=workspace_id,
            user_id=user_id,
            action=FileAccessAction.DOWNLOAD,
            path="" if parent == "." else parent,
            file_name=target.name,
            size=size,
        )
        return FileDownload(file_name=target.name, size=size, path=target)


async def upload_workspace_files(
    *,
    workspace_id: str,
    user_id: str,
    rel_path: str | None,
    files: list[IncomingFile],
) -> list[UploadedFile]:
    """Write uploaded files into a folder, creating it if needed.

    Files are written one after another; an existing file with the same name
    is replaced.

    Raises:
        BadRequestError: If no files are given, too many are given, one is too
            large, or a path or name is invalid
    """
    with span("file_library.upload_workspace_files"):
        if not files:
            msg = "No files uploaded"
            raise BadRequestError(msg)
        if len(files) > settings.max_upload_files:
            msg = f"Too many files (max {settings.max_upload_files} per upload)"
            raise BadRequestError(msg)
        for incoming in files:
            if incoming.size > settings.max_upload_file_size_bytes:
                msg = f"File {incoming.name} exceeds the maximum upload size"
                raise BadRequestError(msg)

        root = ensure_workspace_root(workspace_id)
        target = resolve_workspace_path(root, rel_path)
        if target.exists() and not target.is_dir():
            msg = "Path is not a folder"
            raise BadRequestError(msg)
        target.mkdir(parents=True, exist_ok=True)

        path = _normalise_rel_path(rel_path)
        saved = []
        for incoming in files:
            safe_name = sanitize_file_name(incoming.name)
            await run_in_threadpool((target / safe_name).write_bytes, incoming.content)
            await _log_file_access(
                workspace_id=workspace_id,
                user_id=user_id,
                action=FileAccessAction.UPLOAD,
                path=path,
                file_name=safe_name,
                size=incoming.size,
            )
            saved.append(UploadedFile(name=safe_name, size=incoming.size))

        logger.info(
            "Uploaded files",
            extra={"workspace_id": workspace_id, "user_id": user_id, "count": len(saved)},
        )
        return saved


async def create_workspace_folder(
    *,
    workspace_id: str,
    user_id: str,
    rel_path: str | None,
    name: str,
) -> dict[str, str]:
    """Create a folder inside the given parent folder.

    Raises:
        ConflictError: If an item with that name already exists
        NotFoundError: If the parent folder does not exist
        BadRequestError: If the path or name is invalid
    """
    with span("file_library.create_workspace_folder"):
        root = ensure_workspace_root(workspace_id)
        parent = resolve_workspace_path(root, rel_path)
        safe_name = sanitize_file_name(name)
        folder = parent / safe_name

        try:
            folder.mkdir()
        except FileExistsError as e:
            msg = "Folder already exists"
            raise ConflictError(msg, code=ErrorCode.ERR_ALREADY_EXISTS) from e
        except FileNotFoundError as e:
            msg = "Folder not found"
            raise NotFoundError(msg) from e
        except NotADirectoryError as e:
            msg = "Path is not a folder"
            raise BadRequestError(msg) from e

        await _log_file_access(
            workspace_id=workspace_id,
            user_id=user_id,
            action=FileAccessAction.CREATE_FOLDER,
            path=_normalise_rel_path(rel_path),
            file_name=safe_name,
        )
        return {"name": safe_name}


async def delete_workspace_item(*, workspace_id: str, user_id: str, rel_path: str) -> DeletedItem:
    """Delete a file, or a folder with everything in it.

    Raises:
        BadRequestError: If no path is given, the path is the root or invalid,
            or the item is neither a file nor a folder
        NotFoundError: If nothing exists at the path
    """
    with span("file_library.delete_workspace_item"):
        if not rel_path or not rel_path.strip():
            msg = "File or folder path is required"
            raise BadRequestError(msg)

        root = ensure_workspace_root(workspace_id)
        target = resolve_workspace_path(root, rel_path)
        # Guard: the workspace root itself can never be deleted
        if target == root.resolve():
            raise _invalid_path()

        if not target.exists():
            msg = "File or folder not found"
            raise NotFoundError(msg)

        parent = str(PurePosixPath(_normalise_rel_path(rel_path)).parent)
        parent_path = "" if parent == "." else parent

        if target.is_dir():
            await run_in_threadpool(shutil.rmtree, target)
            await _log_file_access(
                workspace_id=workspace_id,
                user_id=user_id,
                action=FileAccessAction.DELETE_FOLDER,
                path=parent_path,
                file_name=target.name,
            )
            return DeletedItem(type="folder", name=target.name)

        if target.is_file():
            size = target.stat().st_size
            await run_in_threadpool(target.unlink)
            await _log_file_access(
                workspace_id=workspace_id,
                user_id=user_id,
                action=FileAccessAction.DELETE_FILE,
                path=parent_path,
                file_name=target.name,
                size=size,
            )
            return DeletedItem(type="file", name=target.name)

        msg = "Unsupported item type"
        raise BadRequestError(msg)


async def list_workspace_file_activity(*, workspace_id: str, days: int | None = None) -> list[FileAccessLog]:
    """Access log entries from the last ``days`` days, newest first.

    Raises:
        BadRequestError: If days is outside 1..MAX_FILE_ACTIVITY_DAYS
    """
    with span("file_library.list_workspace_file_activity"):
        days = settings.file_activity_default_days if days is None else days
        if days < 1 or days > constants.MAX_FILE_ACTIVITY_DAYS:
            msg = f"days must be between 1 and {constants.MAX_FILE_ACTIVITY_DAYS}"
            raise BadRequestError(msg, code=ErrorCode.ERR_VALIDATION)

        cutoff = datetime.now(UTC) - timedelta(days=days)
        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'workspace_id = "{db_client.sanitize_param(workspace_id)}"',
            sort="-created",
        )

        users: dict[str, FileActivityUser | None] = {}
        logs = []
        for record in records:
            created = db_client.parse_timestamp(record["created"])
            if created < cutoff:
                continue

            user_id = record.get("user_id")
            if user_id and user_id not in users:
                users[user_id] = await _activity_user(user_id)

            logs.append(
                FileAccessLog(
                    id=record["id"],
                    action=record["action"],
                    path=record["path"],
                    file_name=record.get("file_name"),
                    size=record.get("size"),
                    created=created,
                    user=users.get(user_id) if user_id else None,
                )
            )

        logs.sort(key=lambda log: log.created, reverse=True)
        return logs


async def _activity_user(user_id: str) -> FileActivityUser:
    try:
        user = await db_client.get_record(collection="users", record_id=user_id)
    except KeyError:
        return FileActivityUser(id=user_id, name="Unknown", email="Unknown")
    return FileActivityUser(id=user_id, name=user.get("name") or "Unknown", email=user.get("email") or "Unknown")

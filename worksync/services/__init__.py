from worksync.services import (
    file_library,
    progress_service,
    project_service,
    role_service,
    task_service,
    task_timer,
    work_log_service,
    workspace_service,
)


__all__ = [
    "file_library",
    "progress_service",
    "project_service",
    "role_service",
    "task_service",
    "task_timer",
    "work_log_service",
    "workspace_service",
]

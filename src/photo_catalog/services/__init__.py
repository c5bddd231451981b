"""Application services for the photo catalog."""

from .albums import AlbumService
from .media import MediaService
from .sync_job import SyncJob, build_tasks, new_sync_job
from .sync_manager import SyncManager
from .tasks import Result, Task

__all__ = [
    "AlbumService",
    "MediaService",
    "Result",
    "SyncJob",
    "SyncManager",
    "Task",
    "build_tasks",
    "new_sync_job",
]

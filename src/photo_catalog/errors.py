"""Error types shared by the catalog services and the sync engine.

Two tiers exist. Discovery failures and cancellation abort a sync run and are
raised from ``SyncJob.run``. Every other error surfaces from a single album or
media task and is recorded against that task without stopping the run.
"""
from typing import Optional


class CatalogError(Exception):
    """Base exception for catalog errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DiscoveryError(CatalogError):
    """The sync root could not be walked."""

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


class PathNotFoundError(DiscoveryError):
    def __init__(self, path: str):
        super().__init__(f"path does not exist: {path}", path)


class NotADirectoryPathError(DiscoveryError):
    def __init__(self, path: str):
        super().__init__(f"path is not a directory: {path}", path)


class JobCancelledError(CatalogError):
    """Raised by a sync run after it observed its cancellation token."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"sync job {job_id} was cancelled")


class JobNotFoundError(CatalogError):
    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"sync job '{job_id}' not found")


class AlbumNotFoundError(CatalogError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"album '{key}' not found")


class AlbumExistsError(CatalogError):
    def __init__(self, album_id: str, path: str):
        self.album_id = album_id
        self.path = path
        super().__init__(f"album '{path}' already exists (id {album_id})")


class ParentAlbumNotFoundError(CatalogError):
    def __init__(self, parent_id: str, path: str):
        self.parent_id = parent_id
        self.path = path
        super().__init__(f"parent album '{parent_id}' of '{path}' does not exist")


class MediaProcessingError(CatalogError):
    """Media content could not be read or decoded."""

    def __init__(self, operation: str, filename: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.filename = filename
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed for {filename}{detail}")

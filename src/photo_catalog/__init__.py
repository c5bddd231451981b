"""Reconcile a folder tree of photos into a catalog of albums and media."""

from .models import Album, FolderNode, FolderTree, ItemKind, JobProgress, JobStatus, Media, SyncRequest, TaskResult

__all__ = [
    "Album",
    "FolderNode",
    "FolderTree",
    "ItemKind",
    "JobProgress",
    "JobStatus",
    "Media",
    "SyncRequest",
    "TaskResult",
]

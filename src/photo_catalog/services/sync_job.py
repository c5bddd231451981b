from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID, uuid4

from photo_catalog.errors import DiscoveryError, JobCancelledError
from photo_catalog.models import (
    Album,
    FolderTree,
    ItemKind,
    JobProgress,
    JobStatus,
    Media,
    TaskResult,
    utcnow,
)
from photo_catalog.telemetry.log import log_sync_event

from .interfaces import AlbumCreator, MediaWriter, TreeWalker
from .tasks import Task, album_task, media_task

logger = logging.getLogger(__name__)


def build_tasks(
    tree: FolderTree,
    root_album: Album,
    creator: AlbumCreator,
    writer: MediaWriter,
) -> tuple[list[Task[Album]], list[Task[Media]]]:
    """Turn a discovered folder tree into album and media tasks.

    Folders are visited depth-first with each folder ahead of its children, so
    an album task always precedes the tasks of its sub-albums and its media.
    The root folder gets no album task. Media directly in the data root
    (``root_album.path == ""``) is never scheduled.
    """
    album_tasks: list[Task[Album]] = []
    media_tasks: list[Task[Media]] = []
    albums: dict[str, Album] = {root_album.path: root_album}

    for node in tree.walk():
        if node.parent is None:
            if not root_album.is_data_root:
                media_tasks.extend(media_task(path, root_album, writer) for path in node.media_files)
            continue

        parent_node = tree.parent_of(node)
        parent = None if parent_node.path == "" else albums[parent_node.path]
        album_tasks.append(album_task(node.path, parent, creator))

        album = Album.for_path(node.path, parent)
        albums[node.path] = album
        media_tasks.extend(media_task(path, album, writer) for path in node.media_files)

    return album_tasks, media_tasks


class _ProgressMeter:
    """Progress record of one job. Every read and write holds ``_lock``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._created_at = utcnow()
        self._started_at: Optional[datetime] = None
        self._completed_at: Optional[datetime] = None
        self._status = JobStatus.PENDING
        self._total = 0
        self._remaining = 0
        self._results: list[TaskResult] = []

    def start(self) -> None:
        with self._lock:
            self._status = JobStatus.RUNNING
            self._started_at = utcnow()
            self._completed_at = None
            self._total = self._remaining = 0
            self._results = []

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = self._remaining = total

    def record(self, result: TaskResult) -> None:
        with self._lock:
            self._remaining -= 1
            self._results.append(result)

    def complete(self) -> None:
        with self._lock:
            # A stop request that arrived mid-run keeps the job stopped.
            if self._status is JobStatus.RUNNING:
                self._status = JobStatus.COMPLETED
                self._completed_at = utcnow()

    def fail(self) -> None:
        with self._lock:
            self._status = JobStatus.FAILED
            self._completed_at = utcnow()

    def stop(self) -> bool:
        with self._lock:
            if self._status is not JobStatus.RUNNING:
                return False
            self._status = JobStatus.STOPPED
            self._completed_at = utcnow()
            return True

    def snapshot(self, job_id: UUID, path: str) -> JobProgress:
        with self._lock:
            return JobProgress(
                id=job_id,
                path=path,
                status=self._status,
                created_at=self._created_at,
                started_at=self._started_at,
                completed_at=self._completed_at,
                total=self._total,
                remaining=self._remaining,
                results=tuple(self._results),
            )


class SyncJob:
    """One reconciliation run of a folder tree into the catalog.

    The job walks the folder of ``root_album``, creates an album for every
    sub-folder and then writes a media record for every media file. Album and
    media tasks run strictly in that order, one at a time; a failing task is
    recorded and the run carries on. Progress can be read from any thread
    through ``status()``.
    """

    def __init__(
        self,
        root_album: Album,
        walker: TreeWalker,
        albums: AlbumCreator,
        media: MediaWriter,
    ) -> None:
        self.id = uuid4()
        self.root_album = root_album
        self._walker = walker
        self._albums = albums
        self._media = media
        self._meter = _ProgressMeter()
        self._run_lock = threading.Lock()

    @property
    def path(self) -> str:
        return self.root_album.path

    def build_tasks(self, tree: FolderTree) -> tuple[list[Task[Album]], list[Task[Media]]]:
        return build_tasks(tree, self.root_album, self._albums, self._media)

    def run(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Discover, plan and execute the sync.

        Raises ``DiscoveryError`` when the root folder cannot be walked (the job
        is then ``failed``) and ``JobCancelledError`` once ``cancel_event`` is
        seen between two tasks. Cancellation leaves the status untouched.
        Individual task failures are only visible in ``status().results``.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError(f"sync job {self.id} is already running")
        try:
            self._run(cancel_event or threading.Event())
        finally:
            self._run_lock.release()

    def _run(self, cancel_event: threading.Event) -> None:
        self._meter.start()
        log_sync_event("started", {"job_id": str(self.id), "root_path": self.path})

        try:
            tree = self._walker.walk_tree(self.path)
        except DiscoveryError as exc:
            self._fail_discovery(exc)
            raise
        except OSError as exc:
            error = DiscoveryError(str(exc), self.path)
            self._fail_discovery(error)
            raise error from exc

        album_tasks, media_tasks = self.build_tasks(tree)
        self._meter.set_total(len(album_tasks) + len(media_tasks))

        logger.debug("job %s: creating %d albums", self.id, len(album_tasks))
        self._execute(album_tasks, cancel_event)

        logger.debug("job %s: processing %d media files", self.id, len(media_tasks))
        self._execute(media_tasks, cancel_event)

        self._meter.complete()
        progress = self.status()
        log_sync_event(
            "finished",
            {
                "job_id": str(self.id),
                "status": progress.status.value,
                "total": progress.total,
                "failures": len(progress.failed_results),
            },
        )

    def _execute(self, tasks: Sequence[Task], cancel_event: threading.Event) -> None:
        for task in tasks:
            started_at = utcnow()
            result = task()
            error = None
            if result.error is not None:
                error = str(result.error) or type(result.error).__name__
                action = "create album" if task.kind is ItemKind.ALBUM else "process media"
                logger.warning("job %s: failed to %s %s: %s", self.id, action, task.name, error)

            self._meter.record(
                TaskResult(
                    kind=task.kind,
                    name=task.name,
                    error=error,
                    started_at=started_at,
                    completed_at=utcnow(),
                )
            )

            if cancel_event.is_set():
                log_sync_event("cancelled", {"job_id": str(self.id), "remaining": self.status().remaining})
                raise JobCancelledError(self.id)

    def _fail_discovery(self, error: DiscoveryError) -> None:
        self._meter.fail()
        log_sync_event("discovery_failed", {"job_id": str(self.id), "root_path": self.path, "error": str(error)})

    def request_stop(self) -> bool:
        """Mark a running job as stopped.

        Only the progress record changes; an execution loop that is not also
        watching a cancellation event keeps going.
        """
        stopped = self._meter.stop()
        if stopped:
            logger.info("job %s stopped", self.id)
        return stopped

    def status(self) -> JobProgress:
        return self._meter.snapshot(self.id, self.path)


def new_sync_job(
    root_album_path: str,
    *,
    walker: TreeWalker,
    albums: AlbumCreator,
    media: MediaWriter,
) -> SyncJob:
    """Create a pending job for ``root_album_path`` ("" for the whole data root)."""
    return SyncJob(Album.for_path(root_album_path), walker=walker, albums=albums, media=media)

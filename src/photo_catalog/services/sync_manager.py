from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Event, Lock
from typing import Optional, Union
from uuid import UUID

from photo_catalog.errors import DiscoveryError, JobCancelledError, JobNotFoundError
from photo_catalog.models import Album, JobProgress, JobStatus, SyncRequest, utcnow
from photo_catalog.telemetry.log import log_error

from .albums import AlbumService
from .interfaces import MediaWriter, TreeWalker
from .sync_job import SyncJob

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    job: SyncJob
    cancel_event: Event = field(default_factory=Event)
    future: Optional[Future] = None
    finished_at: Optional[datetime] = None


class SyncManager:
    """Run sync jobs in the background and keep track of them."""

    def __init__(
        self,
        walker: TreeWalker,
        albums: AlbumService,
        media: MediaWriter,
        max_running_jobs: int = 2,
        keep_period: int = 3600,
        history_limit: int = 20,
    ) -> None:
        self._walker = walker
        self._albums = albums
        self._media = media
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_running_jobs), thread_name_prefix="photo-catalog-sync")
        self._lock = Lock()
        self._entries: dict[UUID, _Entry] = {}
        self._keep_period = timedelta(seconds=max(0, keep_period))
        self._history_limit = max(0, history_limit)
        self._shutdown = False

    def start(self, request: Union[SyncRequest, str]) -> UUID:
        """Queue a sync of ``request.path`` and return the job id.

        A non-empty path must name an album that is already catalogued.
        """
        if isinstance(request, str):
            request = SyncRequest(path=request)

        if request.path:
            root_album = self._albums.get_album_by_path(request.path)
        else:
            root_album = Album.for_path("")

        job = SyncJob(root_album, walker=self._walker, albums=self._albums, media=self._media)
        entry = _Entry(job=job)
        with self._lock:
            if self._shutdown:
                raise RuntimeError("sync manager has been shut down")
            entry.future = self._executor.submit(self._execute_job, entry)
            self._entries[job.id] = entry
        logger.info("queued sync job %s for %s", job.id, request.path or "<root>")
        self._prune_completed_history()
        return job.id

    def get_job(self, job_id: UUID) -> Optional[SyncJob]:
        with self._lock:
            entry = self._entries.get(job_id)
        return entry.job if entry is not None else None

    def get_status(self, job_id: UUID) -> Optional[JobProgress]:
        job = self.get_job(job_id)
        if job is None:
            return None
        return job.status()

    def list_statuses(self, status: Optional[JobStatus] = None) -> list[JobProgress]:
        with self._lock:
            jobs = [entry.job for entry in self._entries.values()]
        statuses = [job.status() for job in jobs]
        if status is not None:
            statuses = [progress for progress in statuses if progress.status is status]
        return sorted(statuses, key=lambda progress: progress.created_at)

    def stop(self, job_id: UUID) -> bool:
        """Mark a running job as stopped. Returns False if it was not running."""
        return self._require(job_id).job.request_stop()

    def cancel(self, job_id: UUID) -> None:
        """Ask the job's execution loop to return after the task in flight."""
        entry = self._require(job_id)
        entry.cancel_event.set()
        logger.info("cancellation requested for sync job %s", job_id)

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> JobProgress:
        entry = self._require(job_id)
        if entry.future is not None:
            entry.future.result(timeout=timeout)
        return entry.job.status()

    def shutdown(self, cancel_running: bool = True) -> None:
        """Stop background workers and forget every job."""
        with self._lock:
            already_shut_down, self._shutdown = self._shutdown, True
            if cancel_running:
                for entry in self._entries.values():
                    entry.cancel_event.set()
        if not already_shut_down:
            self._executor.shutdown(wait=True, cancel_futures=cancel_running)
        with self._lock:
            self._entries.clear()

    def _require(self, job_id: UUID) -> _Entry:
        with self._lock:
            entry = self._entries.get(job_id)
        if entry is None:
            raise JobNotFoundError(job_id)
        return entry

    def _execute_job(self, entry: _Entry) -> None:
        job = entry.job
        try:
            if entry.cancel_event.is_set():
                logger.info("sync job %s cancelled before it started", job.id)
                return
            job.run(entry.cancel_event)
        except (DiscoveryError, JobCancelledError) as exc:
            logger.warning("sync job %s ended early: %s", job.id, exc)
        except Exception as exc:  # pragma: no cover
            log_error(exc, {"job_id": str(job.id)})
        finally:
            with self._lock:
                entry.finished_at = utcnow()
            self._prune_completed_history()

    def _prune_completed_history(self) -> None:
        """Forget jobs whose worker returned, whatever status they were left in.

        Cancelled jobs keep a non-terminal status, so the worker's finish time
        drives expiry and the history limit.
        """
        now = utcnow()
        with self._lock:
            finished = [
                (job_id, entry.finished_at)
                for job_id, entry in self._entries.items()
                if entry.finished_at is not None
            ]
            expired = {job_id for job_id, finished_at in finished if now - finished_at > self._keep_period}
            remaining = [item for item in finished if item[0] not in expired]
            if self._history_limit and len(remaining) > self._history_limit:
                remaining.sort(key=lambda item: item[1], reverse=True)
                expired.update(job_id for job_id, _ in remaining[self._history_limit :])

            for job_id in expired:
                self._entries.pop(job_id, None)

        for job_id in expired:
            logger.debug("pruned sync job %s", job_id)

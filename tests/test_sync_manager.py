import asyncio
import threading
from uuid import UUID, uuid4

import pytest
from PIL import Image
from pydantic import ValidationError

from photo_catalog.errors import AlbumNotFoundError, JobNotFoundError
from photo_catalog.models import JobStatus, SyncRequest
from photo_catalog.services import AlbumService, MediaService, SyncManager
from photo_catalog.storage import FilesystemDatastore, get_engine, init_db

from fakes import FakeAlbums, FakeMedia, FakeWalker


def _create_image(path, color) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (16, 16), color=color).save(path, format="JPEG")


async def _wait_for_finish(manager: SyncManager, job_id) -> None:
    for _ in range(100):
        status = manager.get_status(job_id)
        if status and status.status.is_terminal:
            return
        await asyncio.sleep(0.05)
    raise AssertionError("Sync job did not finish in time")


@pytest.fixture
def catalog(tmp_path):
    photos = tmp_path / "photos"
    _create_image(photos / "2023" / "summer" / "a.jpg", (255, 255, 255))
    _create_image(photos / "2023" / "summer" / "b.jpg", (200, 200, 200))
    _create_image(photos / "2024" / "c.jpg", (100, 100, 100))

    engine = init_db(get_engine(tmp_path / "catalog.db"))
    datastore = FilesystemDatastore(photos)
    yield datastore, AlbumService(engine, datastore), MediaService(engine, datastore)
    engine.dispose()


def _manager(catalog, **kwargs) -> SyncManager:
    datastore, albums, media = catalog
    return SyncManager(walker=datastore, albums=albums, media=media, **kwargs)


@pytest.mark.asyncio
async def test_sync_manager_runs_job_to_completion(catalog) -> None:
    manager = _manager(catalog, max_running_jobs=1)

    job_id = manager.start(SyncRequest(path=""))
    assert isinstance(job_id, UUID)

    await _wait_for_finish(manager, job_id)

    status = manager.get_status(job_id)
    assert status.status is JobStatus.COMPLETED
    assert status.total == 6
    assert status.remaining == 0
    assert status.failed_results == []
    _, albums, _ = catalog
    assert albums.get_album_by_path("2023/summer").parent_id == albums.get_album_by_path("2023").id
    manager.shutdown()


@pytest.mark.asyncio
async def test_sync_manager_reports_discovery_failure(tmp_path) -> None:
    engine = init_db(get_engine(tmp_path / "catalog.db"))
    datastore = FilesystemDatastore(tmp_path / "does-not-exist")
    manager = SyncManager(
        walker=datastore,
        albums=AlbumService(engine, datastore),
        media=MediaService(engine, datastore),
    )

    job_id = manager.start("")
    await _wait_for_finish(manager, job_id)

    status = manager.get_status(job_id)
    assert status.status is JobStatus.FAILED
    assert status.total == 0
    manager.shutdown()
    engine.dispose()


def test_sync_manager_wait_and_rerun(catalog) -> None:
    manager = _manager(catalog)

    first = manager.wait(manager.start(""), timeout=10)
    second = manager.wait(manager.start(""), timeout=10)

    assert first.status is JobStatus.COMPLETED
    assert first.failed_results == []
    assert second.status is JobStatus.COMPLETED
    assert [result.name for result in second.failed_results] == ["2023", "2023/summer", "2024"]
    assert [status.id for status in manager.list_statuses()] == [first.id, second.id]
    assert manager.list_statuses(JobStatus.FAILED) == []
    manager.shutdown()


def test_sync_manager_requires_catalogued_sub_album(catalog) -> None:
    manager = _manager(catalog)

    with pytest.raises(AlbumNotFoundError):
        manager.start("2023")

    manager.wait(manager.start(""), timeout=10)
    progress = manager.wait(manager.start("2023/"), timeout=10)

    assert progress.path == "2023"
    assert [result.name for result in progress.results] == ["2023/summer", "a.jpg", "b.jpg"]
    manager.shutdown()


def test_sync_manager_rejects_invalid_paths(catalog) -> None:
    manager = _manager(catalog)

    with pytest.raises(ValidationError):
        manager.start("/etc")
    with pytest.raises(ValidationError):
        manager.start("../outside")
    manager.shutdown()


def test_sync_manager_unknown_job(catalog) -> None:
    manager = _manager(catalog)
    missing = uuid4()

    assert manager.get_status(missing) is None
    assert manager.get_job(missing) is None
    with pytest.raises(JobNotFoundError):
        manager.stop(missing)
    with pytest.raises(JobNotFoundError):
        manager.cancel(missing)
    manager.shutdown()


@pytest.mark.asyncio
async def test_sync_manager_prunes_history(catalog) -> None:
    manager = _manager(catalog, max_running_jobs=1, history_limit=1)

    first = manager.start("")
    await _wait_for_finish(manager, first)
    second = manager.start("")
    await _wait_for_finish(manager, second)

    for _ in range(20):
        if manager.get_status(first) is None:
            break
        await asyncio.sleep(0.05)
    assert manager.get_status(first) is None
    assert manager.get_status(second) is not None
    manager.shutdown()


def _blocking_manager(sample_tree, entered, release, **kwargs):
    def pause(item):
        if item.filename == "a.jpg":
            entered.set()
            assert release.wait(5)

    return SyncManager(
        walker=FakeWalker({"": sample_tree}),
        albums=FakeAlbums(),
        media=FakeMedia(on_write=pause),
        max_running_jobs=1,
        **kwargs,
    )


def test_sync_manager_cancel_leaves_job_running(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    manager = _blocking_manager(sample_tree, entered, release)

    job_id = manager.start("")
    assert entered.wait(5)
    manager.cancel(job_id)
    release.set()
    status = manager.wait(job_id, timeout=5)

    assert status.status is JobStatus.RUNNING
    assert status.total == 6
    assert status.remaining == 2
    manager.shutdown()


def test_sync_manager_stop_marks_job_stopped(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    manager = _blocking_manager(sample_tree, entered, release)

    job_id = manager.start("")
    assert entered.wait(5)
    assert manager.stop(job_id) is True
    assert manager.get_status(job_id).status is JobStatus.STOPPED
    release.set()
    status = manager.wait(job_id, timeout=5)

    assert status.status is JobStatus.STOPPED
    assert status.remaining == 0
    assert manager.stop(job_id) is False
    assert [item.id for item in manager.list_statuses(JobStatus.STOPPED)] == [job_id]
    manager.shutdown()


def test_sync_manager_cancels_queued_job_before_it_starts(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    manager = _blocking_manager(sample_tree, entered, release)

    running = manager.start("")
    assert entered.wait(5)
    queued = manager.start("")
    manager.cancel(queued)
    release.set()

    assert manager.wait(running, timeout=5).status is JobStatus.COMPLETED
    assert manager.wait(queued, timeout=5).status is JobStatus.PENDING
    manager.shutdown()


def test_sync_manager_shutdown_forgets_jobs(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    release.set()
    manager = _blocking_manager(sample_tree, entered, release)

    job_id = manager.start("")
    manager.wait(job_id, timeout=5)
    manager.shutdown()

    assert manager.get_status(job_id) is None
    with pytest.raises(RuntimeError):
        manager.start("")


def test_sync_manager_prunes_cancelled_jobs(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    manager = _blocking_manager(sample_tree, entered, release, history_limit=1)

    running = manager.start("")
    assert entered.wait(5)
    queued = manager.start("")
    manager.cancel(queued)
    manager.cancel(running)
    release.set()

    latest = manager.start("")
    assert manager.wait(latest, timeout=5).status is JobStatus.COMPLETED

    assert manager.get_status(running) is None
    assert manager.get_status(queued) is None
    assert [status.id for status in manager.list_statuses()] == [latest]
    manager.shutdown()


def test_sync_manager_start_after_shutdown_registers_nothing(sample_tree) -> None:
    entered, release = threading.Event(), threading.Event()
    release.set()
    manager = _blocking_manager(sample_tree, entered, release)
    manager.shutdown()

    with pytest.raises(RuntimeError, match="shut down"):
        manager.start("")

    assert manager.list_statuses() == []

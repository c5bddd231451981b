from photo_catalog.errors import AlbumExistsError
from photo_catalog.models import Album, ItemKind
from photo_catalog.services.tasks import Result, Task, album_task, media_task

from fakes import FakeAlbums, FakeMedia


def test_task_wraps_value_in_result():
    task = Task(kind=ItemKind.ALBUM, name="2023", work=lambda: 42)

    result = task()

    assert result.succeeded
    assert result.value == 42
    assert result.error is None


def test_task_turns_exception_into_failed_result():
    def explode():
        raise RuntimeError("boom")

    result = Task(kind=ItemKind.MEDIA, name="a.jpg", work=explode)()

    assert not result.succeeded
    assert result.value is None
    assert isinstance(result.error, RuntimeError)
    assert str(result.error) == "boom"


def test_result_constructors():
    assert Result.ok("x").succeeded
    assert not Result.fail(ValueError("bad")).succeeded


def test_album_task_creates_album_under_parent():
    albums = FakeAlbums()
    parent = Album.for_path("2023")

    task = album_task("2023/summer", parent, albums)

    assert task.kind is ItemKind.ALBUM
    assert task.name == "2023/summer"
    assert albums.created == []

    result = task()

    assert result.succeeded
    assert result.value.path == "2023/summer"
    assert result.value.parent_id == parent.id
    assert albums.created == [result.value]


def test_album_task_can_be_invoked_again():
    albums = FakeAlbums()
    task = album_task("2023", None, albums)

    assert task().succeeded
    second = task()

    assert isinstance(second.error, AlbumExistsError)
    assert "already exists" in str(second.error)


def test_media_task_reads_content_through_writer():
    writer = FakeMedia()
    album = Album.for_path("2023/summer")

    task = media_task("2023/summer/a.jpg", album, writer)
    result = task()

    assert task.kind is ItemKind.MEDIA
    assert task.name == "a.jpg"
    assert result.succeeded
    assert result.value.filename == "a.jpg"
    assert result.value.album is album
    assert result.value.hash == b"a.jpg".hex()
    assert writer.written == [result.value]


def test_media_task_failure_is_captured():
    writer = FakeMedia(failing={"bad.jpg"})

    result = media_task("2023/bad.jpg", Album.for_path("2023"), writer)()

    assert not result.succeeded
    assert "bad.jpg" in str(result.error)
    assert writer.written == []

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from photo_catalog.models import Album, ItemKind, Media

from .interfaces import AlbumCreator, MediaWriter

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class Result(Generic[R]):
    value: Optional[R] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: R) -> "Result[R]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: Exception) -> "Result[R]":
        return cls(error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Task(Generic[R]):
    """Deferred catalog mutation.

    Calling a task runs ``work`` and wraps the outcome in a ``Result``; an
    exception raised by ``work`` becomes the result's error. Tasks hold only
    their captured inputs and can be invoked more than once.
    """

    kind: ItemKind
    name: str
    work: Callable[[], R]

    def __call__(self) -> Result[R]:
        try:
            return Result.ok(self.work())
        except Exception as exc:
            logger.debug("%s task %s failed: %s", self.kind.value, self.name, exc)
            return Result.fail(exc)


def album_task(path: str, parent: Optional[Album], creator: AlbumCreator) -> Task[Album]:
    def create() -> Album:
        return creator.create_album(Album.for_path(path, parent))

    return Task(kind=ItemKind.ALBUM, name=path, work=create)


def media_task(media_path: str, album: Album, writer: MediaWriter) -> Task[Media]:
    filename = posixpath.basename(media_path)

    def write() -> Media:
        media = Media.create(filename, album)
        return writer.write_media(media, writer.content_reader(media))

    return Task(kind=ItemKind.MEDIA, name=filename, work=write)

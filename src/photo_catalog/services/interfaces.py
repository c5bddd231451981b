from __future__ import annotations

from typing import Protocol, runtime_checkable

from photo_catalog.models import Album, ContentReader, FolderTree, Media


@runtime_checkable
class TreeWalker(Protocol):
    def walk_tree(self, relative_path: str) -> FolderTree: ...


@runtime_checkable
class AlbumCreator(Protocol):
    def create_album(self, album: Album) -> Album: ...


@runtime_checkable
class MediaWriter(Protocol):
    def content_reader(self, media: Media) -> ContentReader: ...

    def write_media(self, media: Media, content_reader: ContentReader) -> Media: ...

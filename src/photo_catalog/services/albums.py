from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.engine import Engine

from photo_catalog.errors import AlbumExistsError, AlbumNotFoundError, ParentAlbumNotFoundError
from photo_catalog.models import Album
from photo_catalog.storage.db import get_session
from photo_catalog.storage.fs import FilesystemDatastore
from photo_catalog.storage.models import AlbumRecord

logger = logging.getLogger(__name__)


class AlbumService:
    """Persist and look up album records."""

    def __init__(self, engine: Engine, datastore: Optional[FilesystemDatastore] = None) -> None:
        self._engine = engine
        self._datastore = datastore

    def create_album(self, album: Album) -> Album:
        """Insert a new album.

        Raises ``AlbumExistsError`` when the id or path is already catalogued and
        ``ParentAlbumNotFoundError`` when the parent reference cannot be resolved.
        """
        with get_session(self._engine) as session:
            existing = session.execute(
                select(AlbumRecord).where(or_(AlbumRecord.id == album.id, AlbumRecord.path == album.path))
            ).scalar_one_or_none()
            if existing is not None:
                raise AlbumExistsError(existing.id, existing.path)

            if album.parent_id is not None and session.get(AlbumRecord, album.parent_id) is None:
                raise ParentAlbumNotFoundError(album.parent_id, album.path)

            record = AlbumRecord(
                id=album.id,
                path=album.path,
                description=album.description,
                parent_id=album.parent_id,
            )
            session.add(record)
            session.flush()
            session.refresh(record)

            # A failure here rolls the insert back.
            if self._datastore is not None:
                self._datastore.create_folder(album.path)
            created = album_from_record(record)

        logger.debug("created album %s (%s)", created.path, created.id)
        return created

    def get_album(self, album_id: str) -> Album:
        with get_session(self._engine) as session:
            record = session.get(AlbumRecord, album_id)
            if record is None:
                raise AlbumNotFoundError(album_id)
            return album_from_record(record)

    def get_album_by_path(self, path: str) -> Album:
        with get_session(self._engine) as session:
            record = session.execute(
                select(AlbumRecord).where(AlbumRecord.path == path)
            ).scalar_one_or_none()
            if record is None:
                raise AlbumNotFoundError(path)
            return album_from_record(record)

    def list_children(self, album_id: str) -> list[Album]:
        with get_session(self._engine) as session:
            records = session.execute(
                select(AlbumRecord).where(AlbumRecord.parent_id == album_id).order_by(AlbumRecord.path)
            ).scalars()
            return [album_from_record(record) for record in records]


def album_from_record(record: AlbumRecord) -> Album:
    return Album(
        id=record.id,
        path=record.path,
        parent_id=record.parent_id,
        description=record.description,
        created_at=record.created_at,
    )

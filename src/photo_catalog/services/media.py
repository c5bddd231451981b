from __future__ import annotations

import hashlib
import io
import logging
from datetime import datetime, timezone
from typing import Optional

from PIL import ExifTags, Image, UnidentifiedImageError
from sqlalchemy import select
from sqlalchemy.engine import Engine

from photo_catalog.errors import AlbumNotFoundError, MediaProcessingError
from photo_catalog.models import Album, ContentReader, Media, MediaType
from photo_catalog.services.albums import album_from_record
from photo_catalog.storage.db import get_session
from photo_catalog.storage.fs import FilesystemDatastore
from photo_catalog.storage.models import AlbumRecord, MediaRecord

logger = logging.getLogger(__name__)

DATETIME_ORIGINAL_TAG = next(
    (tag for tag, name in ExifTags.TAGS.items() if name == "DateTimeOriginal"), None
)
DATETIME_TAG = next((tag for tag, name in ExifTags.TAGS.items() if name == "DateTime"), None)


class CaptureTimeResolver:
    def __init__(self, datetime_tags: tuple[Optional[int], ...] = (DATETIME_ORIGINAL_TAG, DATETIME_TAG)):
        self.datetime_tags = tuple(tag for tag in datetime_tags if tag is not None)

    def resolve(self, image: Image.Image) -> tuple[datetime, bool]:
        exif = image.getexif() or {}
        for tag in self.datetime_tags:
            raw_value = exif.get(tag)
            if raw_value:
                parsed = self._parse_exif_datetime(str(raw_value))
                if parsed is not None:
                    return parsed, False
        return datetime.now(timezone.utc), True

    @staticmethod
    def _parse_exif_datetime(raw: str) -> datetime | None:
        for pattern in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S"):
            try:
                return datetime.strptime(raw, pattern).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
        return None


class MediaService:
    """Persist media records, reading their content through the datastore."""

    def __init__(
        self,
        engine: Engine,
        datastore: FilesystemDatastore,
        resolver: Optional[CaptureTimeResolver] = None,
    ) -> None:
        self._engine = engine
        self._datastore = datastore
        self._resolver = resolver or CaptureTimeResolver()

    def content_reader(self, media: Media) -> ContentReader:
        return self._datastore.read(media.filepath)

    def write_media(self, media: Media, content_reader: ContentReader) -> Media:
        """Insert or update ``media``.

        A record whose stored hash matches the current content is returned as is.
        """
        with get_session(self._engine) as session:
            if session.get(AlbumRecord, media.album.id) is None:
                raise AlbumNotFoundError(media.album.path or media.album.id)

            try:
                with content_reader() as stream:
                    content = stream.read()
            except OSError as exc:
                raise MediaProcessingError("read_content", media.filepath, exc) from exc
            digest = hashlib.sha256(content).hexdigest()

            record = session.get(MediaRecord, media.id)
            if record is not None and record.hash == digest:
                logger.debug("media %s unchanged (hash %s); skipping", media.filepath, digest)
                return _to_media(record, media.album)

            captured_at, width, height = self._inspect(media, content)

            if record is None:
                record = MediaRecord(id=media.id, album_id=media.album.id, filename=media.filename)
                session.add(record)
            record.hash = digest
            record.media_type = media.media_type.value
            record.captured_at = captured_at
            record.width = width
            record.height = height
            session.flush()
            return _to_media(record, media.album)

    def _inspect(self, media: Media, content: bytes) -> tuple[datetime, int, int]:
        try:
            with Image.open(io.BytesIO(content)) as image:
                image.load()
                captured_at, used_fallback = self._resolver.resolve(image)
                width, height = image.size
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise MediaProcessingError("decode_image", media.filepath, exc) from exc

        if used_fallback:
            logger.debug("no capture time in %s; using current time", media.filepath)
        return captured_at, width, height

    def get_media(self, media_id: str) -> Optional[Media]:
        with get_session(self._engine) as session:
            record = session.get(MediaRecord, media_id)
            if record is None:
                return None
            return _to_media(record, album_from_record(record.album))

    def list_media(self, album_id: str) -> list[Media]:
        with get_session(self._engine) as session:
            records = session.execute(
                select(MediaRecord).where(MediaRecord.album_id == album_id).order_by(MediaRecord.filename)
            ).scalars()
            return [_to_media(record, album_from_record(record.album)) for record in records]


def _to_media(record: MediaRecord, album: Album) -> Media:
    return Media(
        id=record.id,
        album=album,
        filename=record.filename,
        media_type=MediaType(record.media_type),
        hash=record.hash,
        captured_at=record.captured_at,
        width=record.width,
        height=record.height,
    )

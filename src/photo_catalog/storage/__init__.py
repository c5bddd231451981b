from .db import get_engine, get_session, init_db
from .fs import ContentReader, FilesystemDatastore
from .models import AlbumRecord, Base, MediaRecord

__all__ = [
    "AlbumRecord",
    "Base",
    "ContentReader",
    "FilesystemDatastore",
    "MediaRecord",
    "get_engine",
    "get_session",
    "init_db",
]

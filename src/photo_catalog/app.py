import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .config import Settings, settings as default_settings
from .services import AlbumService, MediaService, SyncManager
from .storage import FilesystemDatastore, get_engine, init_db
from .telemetry.log import setup_logging

logger = logging.getLogger("photo_catalog")


@dataclass
class Application:
    settings: Settings
    engine: Engine
    datastore: FilesystemDatastore
    albums: AlbumService
    media: MediaService
    sync: SyncManager

    def close(self) -> None:
        self.sync.shutdown()
        self.engine.dispose()


def create_application(settings: Optional[Settings] = None) -> Application:
    """Wire storage, catalog services and the sync manager from settings."""
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info(
        "boot",
        extra={"event": "boot", "service": settings.APP_NAME, "version": settings.VERSION},
    )

    engine = init_db(get_engine(settings.DB_PATH))
    datastore = FilesystemDatastore(settings.DATA_ROOT, settings.MEDIA_EXTENSIONS)
    albums = AlbumService(engine, datastore)
    media = MediaService(engine, datastore)
    sync = SyncManager(
        walker=datastore,
        albums=albums,
        media=media,
        max_running_jobs=settings.MAX_RUNNING_JOBS,
        keep_period=settings.JOB_KEEP_PERIOD,
        history_limit=settings.JOB_HISTORY_LIMIT,
    )
    # Only the folder name is logged to avoid leaking absolute paths
    logger.info("data root ready", extra={"event": "storage.initialized", "data_root": settings.DATA_ROOT.name})
    return Application(settings=settings, engine=engine, datastore=datastore, albums=albums, media=media, sync=sync)

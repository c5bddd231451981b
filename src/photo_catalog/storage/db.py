from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

# Engine used by get_session() when none is passed in; set by get_engine/init_db.
_default_engine: Optional[Engine] = None
_factories: dict[Engine, sessionmaker] = {}


def _sqlite_url(path: Union[str, Path]) -> str:
    # SQLAlchemy wants forward slashes, also on Windows
    return f"sqlite:///{Path(path).resolve().as_posix()}"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(path: Optional[Union[str, Path]] = None) -> Engine:
    """Return a SQLite engine for the catalog.

    - ``None`` or ``"memory"``: an in-memory database whose single connection
      is shared by every thread.
    - A filesystem path: a file database; missing parent folders are created.

    Foreign keys are enforced on every connection.
    """
    global _default_engine

    if path is None or path == "memory":
        engine = sa.create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        engine = sa.create_engine(_sqlite_url(path), connect_args={"check_same_thread": False})

    event.listen(engine, "connect", _enable_foreign_keys)
    _default_engine = engine
    return engine


def init_db(engine: Optional[Engine] = None) -> Engine:
    """Create the albums and media tables. Without an engine an in-memory one is used."""
    global _default_engine

    engine = engine if engine is not None else get_engine(None)
    Base.metadata.create_all(engine)
    _default_engine = engine

    # Backend name only; the URL may carry a local path
    logger.info("storage.init_db completed; backend=%s", engine.url.get_backend_name())
    return engine


def _session_factory(engine: Engine) -> sessionmaker:
    if engine not in _factories:
        _factories[engine] = sessionmaker(bind=engine, expire_on_commit=False)
    return _factories[engine]


@contextmanager
def get_session(engine: Optional[Engine] = None) -> Iterator[Session]:
    """Yield a session bound to ``engine`` (or the last engine set up).

    Commits when the block succeeds, rolls back and re-raises when it fails,
    and always closes the session.
    """
    if engine is None:
        engine = _default_engine if _default_engine is not None else init_db(None)

    session: Session = _session_factory(engine)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

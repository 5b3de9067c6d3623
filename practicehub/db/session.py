"""Engine and session management for the application database.

The engine is created lazily from :func:`get_database_settings` so tests and
scripts can point the application at another database with
:func:`configure_engine` before the first request is served.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Iterator, Optional

import sqlalchemy as sa
import structlog
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from practicehub.db.config import get_database_settings
from practicehub.db.models import Base

logger = structlog.get_logger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _create_engine() -> Engine:
    settings = get_database_settings()
    engine = sa.create_engine(settings.url, **settings.engine_options())
    if settings.is_sqlite:

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):  # type: ignore[override]
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
            finally:
                cursor.close()

    logger.info("database_engine_created", dialect=engine.dialect.name)
    return engine


def configure_engine(engine: Engine) -> None:
    """Bind the module-level session factory to ``engine``."""

    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


def get_engine() -> Engine:
    if _engine is None:
        configure_engine(_create_engine())
    assert _engine is not None
    return _engine


def SessionLocal() -> Session:
    get_engine()
    assert _session_factory is not None
    return _session_factory()


def initialise_schema(engine: Optional[Engine] = None) -> None:
    """Create all tables known to :data:`Base` if they are missing."""

    Base.metadata.create_all(bind=engine or get_engine())


@contextmanager
def session_scope() -> Iterator[Session]:
    """Context manager yielding a session that commits on success."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request scoped session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


__all__ = [
    "configure_engine",
    "get_engine",
    "SessionLocal",
    "initialise_schema",
    "session_scope",
    "get_session",
]

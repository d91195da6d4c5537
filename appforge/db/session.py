"""Engine and session factory for the AppForge persistence collaborator."""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from appforge.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings, **engine_kwargs) -> Engine:
    """Create an engine for ``settings.database_url``.

    SQLite gets ``NullPool`` and enforced foreign keys; other backends use the
    default queue pool with pre-ping.
    """
    if settings.is_sqlite:
        engine_kwargs.setdefault("poolclass", NullPool)
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)

    engine = create_engine(settings.database_url, echo=settings.database_echo, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug("Created database engine", extra={"dialect": engine.dialect.name})
    return engine


engine = build_engine(get_settings())

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

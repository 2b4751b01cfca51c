"""Declarative base, engine lifecycle and transaction scope for the fusion tables."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from importlib import import_module
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, close_all_sessions, sessionmaker

from ..utils.config import DatabasePoolSettings, get_settings

DEFAULT_DATABASE_URL = "sqlite:///./fusion_ingestor.db"

# Modules whose mapped classes must be registered before create_all or autogenerate.
MODEL_MODULES = (
    "fusion_ingestor.models.integration",
    "fusion_ingestor.models.fusion",
)


class Base(DeclarativeBase):
    pass


_ENGINE: Engine | None = None
_SESSION_FACTORY: sessionmaker[Session] | None = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def load_models() -> None:
    """Import every model module so ``Base.metadata`` knows all eight tables."""

    for module in MODEL_MODULES:
        import_module(module)


def _engine_options(database_url: str, pool: DatabasePoolSettings) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}

    options: dict[str, Any] = {
        "pool_size": pool.pool_size,
        "max_overflow": pool.max_overflow,
        "pool_timeout": pool.timeout,
        "pool_pre_ping": pool.pre_ping,
    }
    if pool.recycle_seconds > 0:
        options["pool_recycle"] = pool.recycle_seconds
    return options


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # SQLite ignores ON DELETE rules on integration references unless asked.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> Engine:
    """Return the shared engine, creating it and any missing tables on first use."""

    global _ENGINE
    if _ENGINE is None:
        settings = get_settings()
        database_url = settings.database_url or DEFAULT_DATABASE_URL
        engine = create_engine(database_url, **_engine_options(database_url, settings.database))
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        load_models()
        Base.metadata.create_all(bind=engine)
        _ENGINE = engine
    return _ENGINE


def get_session_factory() -> sessionmaker[Session]:
    """Return the session factory; rows stay readable after commit."""

    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        _SESSION_FACTORY = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _SESSION_FACTORY


@contextmanager
def session_scope(session_factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any error."""

    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose the shared engine so the next call picks up fresh settings."""

    global _ENGINE, _SESSION_FACTORY
    if _SESSION_FACTORY is not None:
        close_all_sessions()
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_FACTORY = None

"""SQLite engine, schema bootstrap and transactional sessions.

The engine is created lazily from ``Settings.database_path`` and cached for
the process; tests call ``reset_repository_state`` after pointing the settings
at a fresh file.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from careledger.config import get_settings
from careledger.db.models import Base

logger = logging.getLogger(__name__)

# Milliseconds a writer waits for a competing triage decision to commit.
SQLITE_BUSY_TIMEOUT_MS = 30_000


class _RepositoryState:
    engine: Optional[Engine] = None
    sessions: Optional[sessionmaker[Session]] = None


_state = _RepositoryState()


def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def _create_schema(engine: Engine) -> None:
    try:
        Base.metadata.create_all(engine)
    except OperationalError as exc:
        # Two processes bootstrapping the same file can race on CREATE TABLE.
        if "already exists" not in str(exc).lower():
            raise
        logger.debug("Schema already present: %s", exc)


def get_engine(database_path: Path | None = None) -> Engine:
    """Return the process-wide engine, creating the database file on first use."""

    if _state.engine is not None:
        return _state.engine

    path = database_path or get_settings().database_path
    path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(f"sqlite:///{path}", echo=False)
    event.listen(engine, "connect", _on_connect)
    _create_schema(engine)

    _state.engine = engine
    _state.sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    logger.debug("Opened ledger database at %s", path)
    return engine


def get_session() -> Session:
    if _state.sessions is None:
        get_engine()
    assert _state.sessions is not None  # for mypy
    return _state.sessions()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on any exception."""

    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_repository_state() -> None:
    """Dispose the cached engine so the next call reopens from current settings."""

    if _state.engine is not None:
        _state.engine.dispose()
    _state.engine = None
    _state.sessions = None


__all__ = ["get_engine", "get_session", "session_scope", "reset_repository_state"]

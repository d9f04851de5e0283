# python
"""Database engine and session utilities.

This module builds the synchronous SQLite engine and session factory used by
the stores, and the ``atomic`` unit-of-work boundary every multi-statement
operation runs in. Nothing here is a module-level singleton: callers create an
engine, open a session and hand it to each service's constructor.
"""
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.exceptions.base import ConstraintViolationError
from models import Base

logger = logging.getLogger(__name__)

_ATOMIC_DEPTH_KEY = "atomic_depth"


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    url = (url or settings.active_database_url).strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not configured (e.g. DATABASE_URL=sqlite:///./todos.db).")

    kwargs = {"echo": settings.db_echo if echo is None else echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database.
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=True)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """
    All-or-nothing unit of work.

    The outermost block commits when it exits cleanly and rolls back every
    effect when anything inside raises. Nested blocks join the enclosing
    transaction, so services can compose each other's operations.
    """
    depth = session.info.get(_ATOMIC_DEPTH_KEY, 0)
    session.info[_ATOMIC_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception:
        if depth == 0:
            session.rollback()
            logger.warning("Transaction rolled back", exc_info=True)
        raise
    finally:
        session.info[_ATOMIC_DEPTH_KEY] = depth


def flush_or_raise(session: Session, action: str) -> None:
    """Flush pending changes, surfacing engine constraint failures as domain errors."""
    try:
        session.flush()
    except IntegrityError as e:
        raise ConstraintViolationError(
            f"Failed to {action}: constraint violated",
            details={"reason": str(e.orig)},
        ) from e

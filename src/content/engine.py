"""SQLAlchemy engine and session construction.

Components receive an engine (or a ``ContentStore`` built on one) as a
constructor argument; nothing here keeps module-level state.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inkpress.shared.errors import ConfigurationError

# Seconds a SQLite connection waits on a locked database before failing.
SQLITE_BUSY_TIMEOUT = 30


def make_engine(url: str | None, *, echo: bool = False) -> Engine:
    """Create an engine for a database URL.

    Raises:
        ConfigurationError: If no URL is configured.
    """
    if not url:
        raise ConfigurationError(
            "DATABASE_URL is not set. Export it or add [database] url to .inkpress.toml"
        )

    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database.
            return create_engine(
                url, echo=echo, connect_args=connect_args, poolclass=StaticPool
            )
        return create_engine(url, echo=echo, connect_args=connect_args)

    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error.

    Usage:
        with session_scope(factory) as session:
            session.add(obj)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

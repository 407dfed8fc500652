"""Database configuration and session management.

The SQLAlchemy engine and session factory are process-wide and created on
first use. :func:`reset_engine` disposes the connection pool so tests and
reconfiguration start from a clean state.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core import get_settings


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """
    Return the engine bound to the configured database URL, creating it once.

    Returns:
        Engine: Shared SQLAlchemy engine.
    """
    global _engine
    if _engine is None:
        url = get_settings().DATABASE_URL
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(
            url, connect_args=connect_args, pool_pre_ping=True, future=True
        )
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return the session factory bound to :func:`get_engine`."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            autocommit=False,
            future=True,
        )
    return _session_factory


def reset_engine() -> None:
    """Dispose the connection pool and forget the engine and session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=engine or get_engine())


def get_db():
    """
    Provide a SQLAlchemy database session.

    This function is used as a FastAPI dependency.
    It yields a database session and ensures it is
    properly closed after the request is completed.
    """

    db: Session = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()

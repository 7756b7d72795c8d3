"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via get_db() dependency
- transaction() context manager for mutations
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from insights.db.engine import get_engine

_SessionLocal: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine (default engine if None)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def configure_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Bind the process-wide session factory to a specific engine.

    The app factory calls this when handed an engine explicitly (tests do).
    """
    global _SessionLocal
    _SessionLocal = create_session_factory(engine)
    return _SessionLocal


def get_session_factory() -> sessionmaker[Session]:
    """Get or lazily create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a session closed after the request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Commit on success, roll back and re-raise on exception.

    Usage:
        with transaction(db):
            db.add(...)
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise

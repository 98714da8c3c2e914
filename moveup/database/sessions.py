"""Session factory bound lazily to the configured engine."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from .engines import get_engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

_bound = False


def init_session_factory() -> None:
    """Bind the session factory to the engine (idempotent)."""
    global _bound
    if not _bound:
        SessionLocal.configure(bind=get_engine())
        _bound = True


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    init_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

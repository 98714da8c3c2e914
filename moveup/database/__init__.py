"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Generator

from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base

from .engines import get_engine
from .sessions import SessionLocal, init_session_factory

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    init_session_factory()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create all tables on the configured engine."""
    # Register mappers before create_all
    from .. import models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ensured on %s", engine.url.render_as_string(hide_password=True))


__all__ = ["Base", "SessionLocal", "get_db", "get_engine", "init_db"]

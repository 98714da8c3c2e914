"""Database engine factory."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from ..core.config import settings

logger = logging.getLogger(__name__)

_ENGINE: Optional[Engine] = None
_ENGINE_LOCK = threading.Lock()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine with dialect-appropriate pooling."""
    kwargs: dict[str, Any] = {"echo": echo}
    if _is_sqlite(database_url):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in {"sqlite://", "sqlite:///"}:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_size=10, max_overflow=5, pool_pre_ping=True, pool_recycle=1800)

    engine = create_engine(database_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        if _is_sqlite(database_url):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        logger.debug("Database connection established")

    return engine


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is not None:
        return _ENGINE
    with _ENGINE_LOCK:
        if _ENGINE is None:
            _ENGINE = build_engine(settings.database_url, echo=settings.sql_echo)
        return _ENGINE

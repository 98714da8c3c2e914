"""
Time helpers for MoveUp.

All timestamps are stored and compared in UTC. Services take a ``Clock`` so
tests can pin "now".
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)

# moveup/services/base.py
"""
Base Service Pattern for MoveUp

Provides common functionality for all service classes including:
- Transaction management (nested scopes share one commit)
- Post-commit event dispatch
- Logging
- Performance monitoring
"""

from contextlib import ExitStack, contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.entity_lock import EntityLockRegistry
from ..core.exceptions import ServiceException
from ..core.timezone_utils import Clock, utc_now
from ..events.booking_events import BookingEvent, dispatch_all
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_DEPTH_KEY = "moveup.transaction_depth"
_EVENTS_KEY = "moveup.pending_events"
_LOCKS_KEY = "moveup.transaction_locks"
_EFFECTS_KEY = "moveup.external_effects"


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            db: Database session
            clock: Source of "now"; defaults to the wall clock in UTC
        """
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Scopes nest: services sharing a session (the lifecycle service calling
        the ledger) commit once, when the outermost scope exits. Events queued
        with :meth:`publish` are dispatched only after that commit.
        Locks taken with :meth:`hold_until_commit` are released after the
        commit or rollback.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically
        """
        info = self.db.info
        depth = info.get(_DEPTH_KEY, 0)
        info[_DEPTH_KEY] = depth + 1
        outermost = depth == 0
        if outermost:
            info[_LOCKS_KEY] = ExitStack()
        try:
            yield self.db
            if outermost:
                self.db.commit()
                self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            if outermost:
                self.db.rollback()
                self._discard_pending(info)
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            if outermost:
                self.db.rollback()
                self._discard_pending(info)
            raise
        finally:
            info[_DEPTH_KEY] = depth
            if outermost:
                info.pop(_EFFECTS_KEY, None)
                info.pop(_LOCKS_KEY).close()

        if outermost:
            events: List[BookingEvent] = info.pop(_EVENTS_KEY, [])
            dispatch_all(events)

    def hold_until_commit(self, locks: EntityLockRegistry, key: str) -> None:
        """
        Take the entity lock for ``key`` until the outermost transaction ends.

        Writes made under a nested scope stay uncommitted until the outer
        scope exits, so the lock guarding them has to live as long.
        """
        stack: Optional[ExitStack] = self.db.info.get(_LOCKS_KEY)
        if stack is None:
            raise RuntimeError("hold_until_commit() requires an open transaction()")
        stack.enter_context(locks.hold(key))

    def record_external_effect(
        self, operation: str, reference: Optional[str], **context: Any
    ) -> None:
        """
        Note a payment provider change made inside the current transaction.

        The provider cannot be rolled back with the database; if the
        transaction rolls back these are logged for reconciliation.
        """
        self.db.info.setdefault(_EFFECTS_KEY, []).append(
            {"operation": operation, "provider_reference": reference, **context}
        )

    def _discard_pending(self, info: Dict[str, Any]) -> None:
        info.pop(_EVENTS_KEY, None)
        for effect in info.pop(_EFFECTS_KEY, []):
            self.logger.error("unrecorded_provider_effect", extra=effect)

    def publish(self, event: BookingEvent) -> None:
        """Queue an event for dispatch once the current transaction commits."""
        self.db.info.setdefault(_EVENTS_KEY, []).append(event)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("booking.create")
            def create_booking(self, data):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                success = False
                error_type = None
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time
                    # Only log if it's actually slow
                    if elapsed > 1.0:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            setattr(wrapper, "_operation_name", operation_name)
            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})


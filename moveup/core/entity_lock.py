"""Per-entity exclusive sections for bookings and wallets."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Any, Dict, Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .exceptions import EntityLockTimeout

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


def wallet_lock_key(wallet_id: str) -> str:
    return f"wallet:{wallet_id}:mutex"


def instructor_wallet_lock_key(instructor_id: str) -> str:
    return f"instructor:{instructor_id}:wallet"


class EntityLockRegistry:
    """
    Hands out one re-entrant lock per entity key.

    Operations on different keys never contend. When a Redis client is
    supplied, a Redis lock is taken after the local one so that several
    worker processes are serialised as well.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 10.0,
        ttl_s: int = 90,
        redis_client: Optional[Redis] = None,
        namespace: str = "moveup",
    ) -> None:
        self.timeout_s = timeout_s
        self.ttl_s = ttl_s
        self.namespace = namespace
        self._redis = redis_client
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._held = threading.local()

    @classmethod
    def from_url(cls, redis_url: Optional[str], **kwargs: Any) -> "EntityLockRegistry":
        client: Optional[Redis] = None
        if redis_url:
            client = Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        return cls(redis_client=client, **kwargs)

    def _local_lock(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def _namespaced_key(self, key: str) -> str:
        return f"{self.namespace}:lock:{key}"

    def _depths(self) -> Dict[str, int]:
        depths = getattr(self._held, "depths", None)
        if depths is None:
            depths = {}
            self._held.depths = depths
        return depths

    def is_held(self, key: str) -> bool:
        """Whether the calling thread currently holds ``key``."""
        return self._depths().get(key, 0) > 0

    @contextmanager
    def hold(self, key: str, timeout_s: Optional[float] = None) -> Iterator[None]:
        """Hold the exclusive section for ``key`` or raise EntityLockTimeout."""
        wait = self.timeout_s if timeout_s is None else timeout_s
        local = self._local_lock(key)
        if not local.acquire(timeout=wait):
            prometheus_metrics.record_entity_lock("acquire", "blocked")
            logger.warning("entity_lock_timeout", extra={"key": key, "timeout_s": wait})
            raise EntityLockTimeout(key, wait)

        depths = self._depths()
        depth = depths.get(key, 0)
        distributed = None
        try:
            # Re-entry by the same thread reuses the Redis lock it already owns
            if self._redis is not None and depth == 0:
                redis_lock = self._redis.lock(
                    self._namespaced_key(key), timeout=self.ttl_s, blocking_timeout=wait
                )
                if not redis_lock.acquire():
                    prometheus_metrics.record_entity_lock("acquire", "blocked")
                    logger.warning(
                        "entity_lock_redis_timeout", extra={"key": key, "timeout_s": wait}
                    )
                    raise EntityLockTimeout(key, wait)
                distributed = redis_lock
            prometheus_metrics.record_entity_lock("acquire", "success")
            depths[key] = depth + 1
            yield
        finally:
            depths[key] = depth
            if distributed is not None and distributed.owned():
                distributed.release()
            local.release()
            prometheus_metrics.record_entity_lock("release", "success")

    @contextmanager
    def booking(self, booking_id: str) -> Iterator[None]:
        with self.hold(booking_lock_key(booking_id)):
            yield

    @contextmanager
    def wallet(self, wallet_id: str) -> Iterator[None]:
        with self.hold(wallet_lock_key(wallet_id)):
            yield

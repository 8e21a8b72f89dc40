"""
Per-tutor scheduling lock.

Booking creation, rescheduling and acceptance all read a tutor's calendar and
then write to it. Holding this lock around the read-check-write sequence keeps
two requests for the same tutor from both passing the conflict check.

Redis ``SET NX EX`` is used when ``REDIS_URL`` is configured so the lock spans
workers. Without Redis (or when Redis errors), a process-local lock registry is
used instead. The lock never fails open: if it cannot be taken within the wait
window the caller gets a ServiceException.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, Optional

from redis import Redis
import ulid

from app.core.config import settings
from app.core.exceptions import ServiceException
from app.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_LOCAL_LOCKS: Dict[str, threading.Lock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_POLL_INTERVAL_SECONDS = 0.05

# Delete only if we still own the key
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def _lock_key(tutor_id: str) -> str:
    return f"tutoring:lock:tutor:{tutor_id}:schedule"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("scheduling_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _local_lock_for(tutor_id: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(tutor_id)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[tutor_id] = lock
        return lock


def _busy(tutor_id: str) -> ServiceException:
    return ServiceException(
        "Tutor schedule is busy, please retry",
        code="SCHEDULING_BUSY",
        details={"tutor_id": tutor_id},
    )


@contextmanager
def _local_schedule_lock(tutor_id: str, wait_s: float) -> Iterator[None]:
    lock = _local_lock_for(tutor_id)
    if not lock.acquire(timeout=wait_s):
        prometheus_metrics.record_scheduling_lock("acquire", "blocked")
        raise _busy(tutor_id)
    prometheus_metrics.record_scheduling_lock("acquire", "local")
    try:
        yield
    finally:
        lock.release()
        prometheus_metrics.record_scheduling_lock("release", "local")


def _redis_acquire(client: Redis, key: str, token: str, ttl_s: int, wait_s: float) -> Optional[bool]:
    """Poll SET NX until acquired or the wait expires. None means Redis failed."""
    deadline = time.monotonic() + wait_s
    while True:
        try:
            if client.set(key, token, nx=True, ex=ttl_s):
                return True
        except Exception as exc:
            prometheus_metrics.record_scheduling_lock("acquire", "error")
            logger.warning(
                "scheduling_lock_redis_acquire_failed",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return None
        if time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL_SECONDS)


def _redis_release(client: Redis, key: str, token: str) -> None:
    try:
        deleted = client.eval(_RELEASE_SCRIPT, 1, key, token)
        prometheus_metrics.record_scheduling_lock("release", "success" if deleted else "expired")
    except Exception as exc:
        prometheus_metrics.record_scheduling_lock("release", "error")
        logger.warning(
            "scheduling_lock_redis_release_failed",
            extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def tutor_schedule_lock(
    tutor_id: str,
    ttl_s: Optional[int] = None,
    wait_s: float = 5.0,
) -> Iterator[None]:
    """
    Serialize schedule mutations for one tutor.

    Raises:
        ServiceException: code SCHEDULING_BUSY when the lock stays held
            by another request for longer than ``wait_s``.
    """
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    client = _get_sync_redis()
    if client is None:
        with _local_schedule_lock(tutor_id, wait_s):
            yield
        return

    key = _lock_key(tutor_id)
    token = str(ulid.ULID())
    acquired = _redis_acquire(client, key, token, ttl, wait_s)
    if acquired is None:
        logger.warning(
            "scheduling_lock_falling_back_to_local",
            extra={"tutor_id": tutor_id},
        )
        with _local_schedule_lock(tutor_id, wait_s):
            yield
        return
    if not acquired:
        prometheus_metrics.record_scheduling_lock("acquire", "blocked")
        raise _busy(tutor_id)

    prometheus_metrics.record_scheduling_lock("acquire", "success")
    try:
        yield
    finally:
        _redis_release(client, key, token)


def reset_scheduling_locks() -> None:
    """Drop cached clients and local locks. Used by tests."""
    global _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        _SYNC_REDIS = None
    with _LOCAL_LOCKS_GUARD:
        _LOCAL_LOCKS.clear()

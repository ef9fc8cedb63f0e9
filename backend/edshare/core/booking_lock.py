from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
from typing import Iterator, Optional

from redis import Redis
import ulid

from edshare.core.config import settings
from edshare.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

# Marker token when Redis is unavailable and the caller proceeds unlocked
UNLOCKED = ""

# Delete the key only while it still holds our token, so an expired lock
# re-taken by another request is left alone.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _lock_key(tutor_id: str, booking_date: date) -> str:
    return f"edshare:lock:tutor:{tutor_id}:{booking_date.isoformat()}"


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
                socket_timeout=1.0,
                socket_connect_timeout=1.0,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def reset_lock_client() -> None:
    """Drop the cached client so the next call reconnects."""
    global _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        _SYNC_REDIS = None


def acquire_slot_lock(
    tutor_id: str, booking_date: date, ttl_s: Optional[int] = None
) -> Optional[str]:
    """
    Try to take the tutor/date mutex.

    Returns the owner token needed to release the lock, None when another
    request holds it, or ``UNLOCKED`` when Redis is unreachable; the
    database re-check stays authoritative either way.
    """
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    lock_context = {"tutor_id": tutor_id, "booking_date": booking_date.isoformat()}
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        logger.debug("booking_lock_skipped", extra=lock_context)
        return UNLOCKED
    token = str(ulid.ULID())
    try:
        acquired = client.set(_lock_key(tutor_id, booking_date), token, nx=True, ex=ttl)
        if acquired:
            prometheus_metrics.record_booking_lock("acquire", "success")
            return token
        prometheus_metrics.record_booking_lock("acquire", "blocked")
        return None
    except Exception as exc:
        prometheus_metrics.record_booking_lock("acquire", "error")
        logger.warning(
            "booking_lock_acquire_failed",
            extra={**lock_context, "error": str(exc), "error_type": type(exc).__name__},
        )
        return UNLOCKED


def release_slot_lock(tutor_id: str, booking_date: date, token: str) -> None:
    """Release the lock if ``token`` still owns it."""
    client = _get_sync_redis()
    if client is None or token == UNLOCKED:
        return
    try:
        deleted = client.eval(_RELEASE_SCRIPT, 1, _lock_key(tutor_id, booking_date), token)
        if deleted:
            prometheus_metrics.record_booking_lock("release", "success")
        else:
            prometheus_metrics.record_booking_lock("release", "not_found")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_release_failed",
            extra={
                "tutor_id": tutor_id,
                "booking_date": booking_date.isoformat(),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def slot_lock(tutor_id: str, booking_date: date, ttl_s: Optional[int] = None) -> Iterator[bool]:
    token = acquire_slot_lock(tutor_id, booking_date, ttl_s=ttl_s)
    try:
        yield token is not None
    finally:
        if token is not None:
            release_slot_lock(tutor_id, booking_date, token)

"""
Redis Tracking Throttle Utilities

Counts failed verifications of a tracking link so that the postal code /
email check cannot be brute forced. The counter lives in a Redis key with a
TTL; once it reaches the limit, verification of that token is refused until
the key expires.

Key structure:
    tracking:{token}:failed  ->  value: failed attempts  ->  TTL: lockout window

Redis being unavailable never blocks tracking: the throttle is skipped and
the failure is logged.
"""

import logging
import redis
from warranty.core.config import settings

logger = logging.getLogger(__name__)

# Redis connection pool (singleton)
_redis_pool = None


def _get_redis_connection() -> redis.Redis:
    """Get or create a Redis connection from the pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
        )
    return redis.Redis(connection_pool=_redis_pool)


def get_tracking_key(token: str) -> str:
    """Build the Redis key for a tracking token's failed attempts."""
    return f"tracking:{token}:failed"


def is_tracking_locked(token: str) -> bool:
    """
    True when the token has reached the maximum number of failed verifications.

    Returns False when the throttle is disabled or Redis is unreachable.
    """
    if not settings.REDIS_ENABLED:
        return False
    try:
        r = _get_redis_connection()
        attempts = r.get(get_tracking_key(token))
        return attempts is not None and int(attempts) >= settings.TRACKING_MAX_FAILED_ATTEMPTS
    except Exception as e:
        logger.error(f"Failed to read tracking throttle for token: {e}")
        return False


def register_failed_attempt(token: str) -> int:
    """
    Count one failed verification.

    The lockout window starts with the first failure.

    Returns:
        The number of failed attempts in the current window, 0 if not counted.
    """
    if not settings.REDIS_ENABLED:
        return 0
    try:
        r = _get_redis_connection()
        key = get_tracking_key(token)
        attempts = r.incr(key)
        if attempts == 1:
            r.expire(key, settings.TRACKING_LOCKOUT_MINUTES * 60)
        if attempts >= settings.TRACKING_MAX_FAILED_ATTEMPTS:
            logger.warning(
                f"Tracking link locked after {attempts} failed verifications "
                f"({settings.TRACKING_LOCKOUT_MINUTES}min)"
            )
        return attempts
    except Exception as e:
        logger.error(f"Failed to count failed tracking verification: {e}")
        return 0


def clear_failed_attempts(token: str) -> bool:
    """Reset the counter after a successful verification."""
    if not settings.REDIS_ENABLED:
        return False
    try:
        r = _get_redis_connection()
        r.delete(get_tracking_key(token))
        return True
    except Exception as e:
        logger.error(f"Failed to clear tracking throttle: {e}")
        return False


def check_redis_connection() -> bool:
    """Check if Redis is reachable."""
    if not settings.REDIS_ENABLED:
        return False
    try:
        r = _get_redis_connection()
        return r.ping()
    except Exception as e:
        logger.error(f"Redis connection check failed: {e}")
        return False

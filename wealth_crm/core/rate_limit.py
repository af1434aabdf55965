"""Rate limiting for the CRM API (slowapi, Redis-backed when reachable)."""

import logging

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from wealth_crm.core.config import settings


logger = logging.getLogger(__name__)

MEMORY_STORAGE = "memory://"
# Graph-backed endpoints (OAuth connect, sync) on top of the global limit
SYNC_RATE_LIMIT = "10/minute"


def _default_limits() -> list[str]:
    if settings.TESTING or settings.RATE_LIMIT_API <= 0:
        return []
    return [f"{settings.RATE_LIMIT_API}/minute"]


def _storage_uri() -> str:
    """Shared Redis storage so limits hold across workers; in-memory otherwise."""
    if settings.TESTING:
        return MEMORY_STORAGE
    try:
        redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return MEMORY_STORAGE
    return settings.REDIS_URL


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    default_limits=_default_limits(),
    enabled=not settings.TESTING,
)

"""
Request rate limiting (slowapi).

Counters live in Redis when it is enabled and reachable, so limits hold
across workers; otherwise each process counts in memory.
"""
import logging

import redis
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.config import settings

logger = logging.getLogger(__name__)


def _storage_uri() -> str:
    if not settings.redis_enabled:
        return "memory://"
    try:
        redis.from_url(settings.redis_url, socket_connect_timeout=5).ping()
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis unavailable for rate limiting ({e}); counting in memory")
        return "memory://"
    logger.info("Rate limit counters stored in Redis")
    return settings.redis_url


def client_identifier(request: Request) -> str:
    """API key prefix when the caller sends one, else the client address."""
    api_key = request.headers.get(settings.api_key_header)
    if api_key:
        return f"key:{api_key[:8]}"
    return f"ip:{get_remote_address(request)}"


def get_rate_limit_string() -> str:
    """Per-minute and per-hour limits applied to KPI and batch endpoints."""
    return f"{settings.rate_limit_per_minute}/minute;{settings.rate_limit_per_hour}/hour"


limiter = Limiter(
    key_func=client_identifier,
    enabled=settings.rate_limit_enabled,
    storage_uri=_storage_uri(),
    strategy="fixed-window",
)

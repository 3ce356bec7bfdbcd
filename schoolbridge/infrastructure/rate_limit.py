import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings

# Counters are shared across workers only when the storage is Redis.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def storage_status() -> str:
    """Reachability of the limiter's Redis storage, reported by /api/health."""
    uri = settings.RATE_LIMIT_STORAGE_URI
    if not uri.startswith("redis"):
        return "disabled"
    client = redis.from_url(uri, socket_connect_timeout=2, socket_timeout=2)
    try:
        client.ping()
    except redis.RedisError:
        return "unavailable"
    finally:
        client.close()
    return "ok"

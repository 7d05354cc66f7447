# config/cache.py
import logging
from typing import Optional
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError
from config.settings import settings

_client: Optional[Redis] = None

logger = logging.getLogger(__name__)


async def get_redis() -> Redis:
    """Shared job-store connection. Created lazily and pinged once so startup fails fast."""
    global _client
    if _client is None:
        client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=False,  # repositories decode JSON bytes themselves
            socket_keepalive=True,
            health_check_interval=30,
        )
        await client.ping()
        _client = client
    return _client


async def redis_available() -> bool:
    try:
        r = await get_redis()
        return bool(await r.ping())
    except (RedisError, OSError):
        logger.warning("redis.ping.failed url_scheme=%s", settings.REDIS_URL.split(":", 1)[0])
        return False


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

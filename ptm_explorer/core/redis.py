from typing import Optional

import redis.asyncio as aioredis

from ptm_explorer.config import get_settings

_pool: Optional[aioredis.Redis] = None


async def get_redis() -> Optional[aioredis.Redis]:
    """Shared redis client, or None when no REDIS_URL is configured."""
    global _pool
    url = get_settings().REDIS_URL
    if not url:
        return None
    if _pool is None:
        _pool = aioredis.from_url(url, decode_responses=True)
    return _pool


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None

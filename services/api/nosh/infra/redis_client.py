"""Process-wide Redis clients.

The asyncio client serves idempotency and readiness; the sync client serves
the learn/cards locks, which run inside threadpool workers.
"""

import logging
from typing import Optional

from redis import Redis as SyncRedis
from redis.asyncio import Redis as AsyncRedis

from ..settings import settings

logger = logging.getLogger("nosh.redis")

_redis_async: Optional[AsyncRedis] = None
_redis_sync: Optional[SyncRedis] = None


async def get_redis() -> AsyncRedis:
    global _redis_async
    if _redis_async is None:
        _redis_async = AsyncRedis.from_url(settings.redis_url, decode_responses=True)
    return _redis_async


def get_sync_redis() -> SyncRedis:
    global _redis_sync
    if _redis_sync is None:
        _redis_sync = SyncRedis.from_url(settings.redis_url, decode_responses=True)
    return _redis_sync


def set_clients(async_client: Optional[AsyncRedis], sync_client: Optional[SyncRedis]) -> None:
    """Swap the shared clients (tests inject fakeredis here)."""
    global _redis_async, _redis_sync
    _redis_async = async_client
    _redis_sync = sync_client


async def ping_redis() -> bool:
    try:
        r = await get_redis()
        return bool(await r.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        return False


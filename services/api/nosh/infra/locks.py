import logging
import time
import uuid
from contextlib import contextmanager
from typing import Iterator

from ..exceptions import ConcurrencyConflictError
from .redis_client import get_sync_redis

logger = logging.getLogger("nosh.locks")

# Delete only if the caller still owns the lock
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def learn_lock_key(cuisine: str) -> str:
    return f"nosh:lock:learn:{cuisine.lower()}"


def cards_lock_key(recipe_id: str) -> str:
    return f"nosh:lock:cards:{recipe_id}"


@contextmanager
def redis_lock(key: str, ttl_sec: int, wait_sec: float = 0, poll_sec: float = 0.1) -> Iterator[str]:
    """
    Single-writer lock on a Redis key (SET NX EX with an owner token).

    wait_sec=0 means try once. Release is an atomic compare-and-delete, so
    an expired lock that someone else re-acquired is left alone.

    Raises ConcurrencyConflictError if the lock cannot be obtained in time.
    """
    r = get_sync_redis()
    token = str(uuid.uuid4())
    deadline = time.monotonic() + wait_sec

    while not r.set(key, token, nx=True, ex=ttl_sec):
        if time.monotonic() >= deadline:
            raise ConcurrencyConflictError("Lock is held by another worker", key=key)
        time.sleep(poll_sec)

    try:
        yield token
    finally:
        try:
            r.eval(_RELEASE_SCRIPT, 1, key, token)
        except Exception as e:
            logger.warning(f"Failed to release lock {key}: {e}")

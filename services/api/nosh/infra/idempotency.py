import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Union, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ..exceptions import ConcurrencyConflictError
from .redis_client import get_redis

logger = logging.getLogger("nosh.idempotency")

DONE_TTL_SEC = 60 * 60 * 24
PROCESSING_TTL_SEC = 300


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_request(method: str, path: str, body_bytes: bytes) -> str:
    h = hashlib.sha256()
    h.update(method.encode("utf-8"))
    h.update(b"|")
    h.update(path.encode("utf-8"))
    h.update(b"|")
    h.update(body_bytes or b"")
    return h.hexdigest()


def _idemp_redis_key(scope: str, route_key: str, idem_key: str) -> str:
    return f"nosh:idemp:{scope}:{route_key}:{idem_key}"


async def idempotency_precheck(
    request: Request, *, scope: str, route_key: str
) -> Union[None, tuple[str, str], JSONResponse]:
    """Check the optional Idempotency-Key header.

    Returns:
        None if the header is absent (proceed without idempotency),
        (redis_key, request_hash) if the caller should proceed and later store the result,
        JSONResponse if a stored response should be replayed.

    Raises ConcurrencyConflictError if the key is in flight or reused with a different payload.
    """
    idem_key = request.headers.get("Idempotency-Key")
    if not idem_key:
        return None

    body_bytes = await request.body()
    req_hash = _hash_request(request.method, request.url.path, body_bytes)

    rkey = _idemp_redis_key(scope, route_key, idem_key)
    r = await get_redis()

    raw = await r.get(rkey)
    if raw:
        data = json.loads(raw)
        if data.get("request_hash") and data["request_hash"] != req_hash:
            raise ConcurrencyConflictError("Idempotency-Key reused with different request payload", key=idem_key)
        if data.get("state") == "done":
            return JSONResponse(content=data.get("body"), status_code=int(data.get("status", 200)))
        raise ConcurrencyConflictError("Request with this Idempotency-Key is still processing. Retry shortly.", key=idem_key)

    processing_payload = {
        "state": "processing",
        "status": None,
        "body": None,
        "created_at": _iso_now(),
        "completed_at": None,
        "request_hash": req_hash,
    }
    ok = await r.set(rkey, json.dumps(processing_payload), ex=PROCESSING_TTL_SEC, nx=True)
    if not ok:
        # someone else won the race
        raise ConcurrencyConflictError("Request with this Idempotency-Key is still processing. Retry shortly.", key=idem_key)

    return (rkey, req_hash)


async def idempotency_store_result(redis_key: str, req_hash: str, *, status: int, body: dict):
    r = await get_redis()
    payload = {
        "state": "done",
        "status": int(status),
        "body": body,
        "created_at": None,
        "completed_at": _iso_now(),
        "request_hash": req_hash,
    }
    await r.set(redis_key, json.dumps(payload), ex=DONE_TTL_SEC)


async def idempotency_clear_key(redis_key: str):
    """Clear key on error so the client can retry."""
    try:
        r = await get_redis()
        await r.delete(redis_key)
    except Exception as e:
        logger.warning(f"Failed to clear idempotency key {redis_key}: {e}")

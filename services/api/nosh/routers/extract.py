"""Recipe extraction API router.

Endpoints:
- POST /api/recipe-extract - Convert a recipe source into a NOSH recipe + sacred analysis
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_operator
from ..infra.idempotency import idempotency_precheck, idempotency_store_result, idempotency_clear_key
from ..schemas import RecipeExtractRequest, RecipeExtractResponse
from ..services.extraction import recipe_extractor
from ..settings import settings

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)
logger = logging.getLogger("nosh.extract")


@router.post("/recipe-extract", response_model=RecipeExtractResponse)
@limiter.limit(lambda: settings.extract_rate_limit)
async def recipe_extract(
    request: Request,
    payload: RecipeExtractRequest,
    db: Session = Depends(get_db),
    operator: str = Depends(require_operator),
):
    """
    Extract a recipe from text, a URL, or an uploaded file reference.

    Optional Idempotency-Key: a retry with the same key and body replays the
    first response instead of creating a second recipe.
    """
    # Reject unusable input before touching Redis or the database
    recipe_extractor.validate_request(payload)

    pre = await idempotency_precheck(request, scope=operator, route_key="recipe_extract")
    if isinstance(pre, JSONResponse):
        return pre

    try:
        result = await run_in_threadpool(recipe_extractor.extract, db, payload, operator)
    except Exception:
        if pre:
            await idempotency_clear_key(pre[0])
        raise

    if pre:
        redis_key, req_hash = pre
        await idempotency_store_result(redis_key, req_hash, status=200, body=result.model_dump(mode="json"))
    return result

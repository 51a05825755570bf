from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..infra.redis_client import ping_redis

router = APIRouter()


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    redis_ok = await ping_redis()

    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        pass
    return {"ok": True, "redis_ok": redis_ok, "db_ok": db_ok}

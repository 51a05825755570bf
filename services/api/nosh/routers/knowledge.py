"""Cuisine knowledge API router.

Endpoints:
- GET /api/knowledge - All learned cuisines, most-learned first
- GET /api/knowledge/{cuisine} - One cuisine
- POST /api/knowledge/{cuisine}/relearn - Recompute a cuisine now (operator)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.text import normalize_cuisine
from ..db import get_db
from ..deps import require_operator
from ..exceptions import NotFoundError
from ..models import KnowledgeBase
from ..schemas import KnowledgeBaseOut
from ..services.knowledge import knowledge_learner

router = APIRouter()


@router.get("/knowledge", response_model=list[KnowledgeBaseOut])
def list_knowledge(db: Session = Depends(get_db)):
    return (
        db.query(KnowledgeBase)
        .order_by(KnowledgeBase.recipe_count.desc(), KnowledgeBase.cuisine)
        .all()
    )


@router.get("/knowledge/{cuisine}", response_model=KnowledgeBaseOut)
def get_knowledge(cuisine: str, db: Session = Depends(get_db)):
    row = db.get(KnowledgeBase, normalize_cuisine(cuisine))
    if not row:
        raise NotFoundError("No knowledge learned for cuisine", cuisine=cuisine)
    return row


@router.post("/knowledge/{cuisine}/relearn", response_model=KnowledgeBaseOut)
def relearn_knowledge(
    cuisine: str,
    db: Session = Depends(get_db),
    operator: str = Depends(require_operator),
):
    row = knowledge_learner.learn(db, cuisine)
    if row is None:
        raise NotFoundError("Not enough analyses to learn this cuisine", cuisine=cuisine)
    return row

"""Workflow card API router.

Endpoints:
- POST /api/recipe-generate-cards - (Re)generate the cook-mode cards for a recipe
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_operator
from ..schemas import GenerateCardsRequest, GenerateCardsResponse
from ..services.cards import card_generator

router = APIRouter()


@router.post("/recipe-generate-cards", response_model=GenerateCardsResponse)
def generate_cards(
    payload: GenerateCardsRequest,
    db: Session = Depends(get_db),
    operator: str = Depends(require_operator),
):
    return card_generator.generate(db, payload.recipe_id)
